"""
Feature Flags Configuration

Boolean switches for optional behaviour of the engine.
All flags are loaded from environment variables.
"""
import os


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


class FeatureFlags:
    """
    Feature flags for the engine.

    To add a new flag, declare it here as a class attribute loaded
    through get_bool_env and read it through `feature_flags`.
    """

    # Per-client limits on write endpoints (slowapi)
    FEATURE_RATE_LIMITING: bool = get_bool_env('FEATURE_RATE_LIMITING', True)

    # Audit rows for lifecycle transitions, freezes and captaincy transfers
    FEATURE_ACTIVITY_LOG: bool = get_bool_env('FEATURE_ACTIVITY_LOG', True)

    @classmethod
    def is_enabled(cls, flag_name: str) -> bool:
        """Check if a feature flag is enabled."""
        return getattr(cls, flag_name, False)

    @classmethod
    def reload(cls) -> None:
        """Re-read every flag from the environment."""
        cls.FEATURE_RATE_LIMITING = get_bool_env('FEATURE_RATE_LIMITING', True)
        cls.FEATURE_ACTIVITY_LOG = get_bool_env('FEATURE_ACTIVITY_LOG', True)


feature_flags = FeatureFlags()
