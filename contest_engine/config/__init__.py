from contest_engine.config.settings import Settings, load_settings
from contest_engine.config.feature_flags import feature_flags, get_bool_env

__all__ = ["Settings", "load_settings", "feature_flags", "get_bool_env"]
