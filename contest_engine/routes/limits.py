"""
contest_engine/routes/limits.py
Per-client rate limits for write endpoints (slowapi).
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from contest_engine.config.feature_flags import feature_flags

WRITE_LIMIT = os.getenv("RATE_LIMIT_WRITE", "60/minute")

limiter = Limiter(key_func=get_remote_address, enabled=feature_flags.FEATURE_RATE_LIMITING)
