"""Configuration loading helpers for blacklist-sync."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import AppConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_ENV_VAR = "BLACKLIST_SYNC_CONFIG"


def _read_file(path: Path) -> dict:
    if path.suffix not in CONFIG_EXTENSIONS:
        raise ConfigError(f"Unsupported configuration format: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    return data


def _merge(base: dict, overrides: Mapping[str, Any]) -> dict:
    """Deep-merge ``overrides`` into a copy of ``base``; ``None`` values are ignored."""

    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(dict(merged[key]), value)
        elif isinstance(value, Mapping):
            nested = _merge({}, value)
            if nested:
                merged[key] = nested
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Resolve, read and validate the process configuration."""

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self.env = os.environ if env is None else env

    def resolve_path(self, path: Path | str | None) -> Path | None:
        if path:
            return Path(path).expanduser()
        env_path = self.env.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser()
        return None

    def load(
        self,
        path: Path | str | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> AppConfig:
        payload: dict = {}
        resolved = self.resolve_path(path)
        if resolved is not None:
            if not resolved.exists():
                raise ConfigError(f"Configuration file not found: {resolved}")
            try:
                payload = _read_file(resolved)
            except (yaml.YAMLError, json.JSONDecodeError) as exc:
                raise ConfigError(f"Unable to parse {resolved}: {exc}") from exc
        if overrides:
            payload = _merge(payload, overrides)
        if "database" not in payload:
            raise ConfigError("Database Type is required")
        try:
            return AppConfig.model_validate(payload)
        except ValidationError as exc:
            raise ConfigError(_format_validation_error(exc)) from exc


def _format_validation_error(exc: ValidationError) -> str:
    lines = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "config"
        lines.append(f"{location}: {error['msg']}")
    return "Invalid configuration: " + "; ".join(lines)


__all__ = ["CONFIG_ENV_VAR", "CONFIG_EXTENSIONS", "ConfigLoader"]
