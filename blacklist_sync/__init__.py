"""Locally persisted, continuously refreshed IP blacklist."""

__version__ = "0.3.0"
