"""Configuration package exports."""

from .loader import CONFIG_ENV_VAR, ConfigLoader
from .models import (
    AppConfig,
    DatabaseConfig,
    DatabaseType,
    FeedConfig,
    LoggingConfig,
    ScheduleConfig,
    ServerConfig,
    SyncConfig,
)

__all__ = [
    "AppConfig",
    "CONFIG_ENV_VAR",
    "ConfigLoader",
    "DatabaseConfig",
    "DatabaseType",
    "FeedConfig",
    "LoggingConfig",
    "ScheduleConfig",
    "ServerConfig",
    "SyncConfig",
]
