"""Pydantic models describing the blacklist-sync process configuration."""

from __future__ import annotations

from datetime import time
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class DatabaseType(str, Enum):
    """Relational engines the entry store can run on."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"


class DatabaseConfig(BaseModel):
    """Connection target for the selected engine."""

    type: DatabaseType
    host: str | None = None
    port: int | None = None
    name: str | None = None
    user: str | None = None
    password: str | None = None
    path: Path | None = None
    pool_size: int = Field(default=8, ge=1)
    pool_timeout: float = Field(default=5.0, gt=0)

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)

    @model_validator(mode="after")
    def _require_engine_params(self) -> "DatabaseConfig":
        if self.type is DatabaseType.SQLITE:
            if self.path is None:
                raise ValueError("Database path is required for sqlite")
            return self
        missing = [
            label
            for label, value in (
                ("host", self.host),
                ("port", self.port),
                ("name", self.name),
                ("user", self.user),
                ("password", self.password),
            )
            if value in (None, "")
        ]
        if missing:
            raise ValueError(
                f"Database {', '.join(missing)} required for {self.type.value}"
            )
        return self


class FeedConfig(BaseModel):
    """AbuseIPDB access; a missing key disables reconciliation for the feed."""

    api_key: str | None = None
    base_url: str = "https://api.abuseipdb.com/api/v2"
    timeout: float = Field(default=30.0, gt=0)
    confidence_threshold: int = Field(default=100, ge=0, le=100)

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_key_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def enabled(self) -> bool:
        return self.api_key is not None


class SyncConfig(BaseModel):
    """Age thresholds driving re-verification and hard expiry."""

    expiration_days: int = Field(default=14, ge=1)
    stale_days: int = Field(default=28, ge=1)

    @property
    def misconfigured(self) -> bool:
        """Stale entries would be swept before they are ever re-verified."""

        return self.stale_days <= self.expiration_days


class ScheduleConfig(BaseModel):
    """When the daily reconciliation pass runs."""

    run_at: time = Field(default=time(0, 0))
    watch_interval: float = Field(default=60.0, gt=0)
    startup_max_age_hours: float = Field(default=24.0, gt=0)

    @field_validator("run_at", mode="before")
    @classmethod
    def _coerce_time(cls, value: Any) -> Any:
        if isinstance(value, str):
            return time.fromisoformat(value.strip())
        if isinstance(value, int):
            # YAML reads an unquoted 00:00 as a sexagesimal integer (minutes)
            hours, minutes = divmod(value, 60)
            return time(hours % 24, minutes)
        return value


class ServerConfig(BaseModel):
    listen: str = "::"
    port: int = Field(default=8080, ge=0, le=65535)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: Path | None = None

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        name = value.upper()
        if name not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "NONE"):
            raise ValueError(f"Unsupported log level: {value}")
        return name


class AppConfig(BaseModel):
    """Complete process configuration, fixed for the process lifetime."""

    database: DatabaseConfig
    feed: FeedConfig = Field(default_factory=FeedConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "DatabaseType",
    "FeedConfig",
    "LoggingConfig",
    "ScheduleConfig",
    "ServerConfig",
    "SyncConfig",
]
