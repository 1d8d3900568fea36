"""Application configuration and recorder settings."""

from .loader import (
    APP_CONFIG_SCHEMA,
    REALTIME_CONFIG_SCHEMA,
    extract_env_variable,
    get_realtime_config,
    load_app_config,
)
from .settings import RealtimeDefaults, RecorderSettings, scoped_overrides

__all__ = [
    "APP_CONFIG_SCHEMA",
    "REALTIME_CONFIG_SCHEMA",
    "RealtimeDefaults",
    "RecorderSettings",
    "extract_env_variable",
    "get_realtime_config",
    "load_app_config",
    "scoped_overrides",
]
