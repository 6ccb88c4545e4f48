"""
contest_engine/config/settings.py
Runtime settings read from the environment (.env is loaded first).
"""
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from contest_engine.config.feature_flags import get_bool_env

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./contest_engine.db"

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8000",
]


class Settings:
    """Process configuration. Build with load_settings() or pass values directly in tests."""

    def __init__(
        self,
        database_url: str = DEFAULT_DATABASE_URL,
        db_echo: bool = False,
        environment: str = "development",
        log_level: str = "INFO",
        allowed_origins: Optional[List[str]] = None,
        auth_token_secret: str = "dev-secret-key-change-in-production",
        auth_token_algorithm: str = "HS256",
        sqlite_busy_timeout: float = 30.0,
    ):
        self.database_url = database_url
        self.db_echo = db_echo
        self.environment = environment
        self.log_level = log_level
        self.allowed_origins = list(DEFAULT_ORIGINS) + list(allowed_origins or [])
        self.auth_token_secret = auth_token_secret
        self.auth_token_algorithm = auth_token_algorithm
        self.sqlite_busy_timeout = sqlite_busy_timeout

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load .env (override=True so the file wins) and build Settings from os.environ."""
    load_dotenv(dotenv_path=env_file or ENV_FILE, override=True)

    extra_origins = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]

    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        db_echo=get_bool_env("DB_ECHO", False),
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        allowed_origins=extra_origins,
        auth_token_secret=os.getenv("AUTH_TOKEN_SECRET", "dev-secret-key-change-in-production"),
        auth_token_algorithm=os.getenv("AUTH_TOKEN_ALGORITHM", "HS256"),
        sqlite_busy_timeout=float(os.getenv("SQLITE_BUSY_TIMEOUT", "30")),
    )
