"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path

import structlog

_LOGGING_INITIALISED = False
LOGGER_NAME = "blacklist_sync"

# Level used when output is silenced entirely (``-sss`` on the CLI).
SILENT = logging.CRITICAL + 10


def verbosity_to_level(verbose: int = 0, silent: int = 0) -> str:
    """Map repeated ``-v``/``-s`` flags onto a logging level name."""

    if verbose and silent:
        raise ValueError("--verbose and --silent are mutually exclusive")
    if verbose:
        # trace collapses onto debug
        return "DEBUG"
    if silent == 1:
        return "WARNING"
    if silent == 2:
        return "ERROR"
    if silent > 2:
        return "NONE"
    return "INFO"


def _resolve_level(level: str) -> int:
    name = level.upper()
    if name == "NONE":
        return SILENT
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logging(level: str = "INFO", log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED

    if not _LOGGING_INITIALISED:
        numeric = _resolve_level(level)
        handlers: dict[str, dict] = {
            "console": {
                "class": "logging.StreamHandler",
                "level": numeric,
                "formatter": "json",
            },
        }
        if log_dir is not None:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            handlers["app_file"] = {
                "class": "logging.FileHandler",
                "level": max(numeric, logging.INFO),
                "filename": str(log_dir / "blacklist-sync.log"),
                "formatter": "json",
            }
            handlers["error_file"] = {
                "class": "logging.FileHandler",
                "level": max(numeric, logging.ERROR),
                "filename": str(log_dir / "error.log"),
                "formatter": "json",
            }
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": handlers,
                "loggers": {
                    LOGGER_NAME: {
                        "handlers": list(handlers),
                        "level": numeric,
                        "propagate": False,
                    },
                },
            }
        )

        # structlog renders the event dict into ``extra`` so the JSON formatter
        # emits every bound key as a top-level field.
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.filter_by_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.render_to_log_kwargs,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(LOGGER_NAME)


def component_logger(component: str) -> structlog.BoundLogger:
    """Return the application logger bound to a component name."""

    return configure_logging().bind(component=component)


__all__ = ["SILENT", "component_logger", "configure_logging", "verbosity_to_level"]
