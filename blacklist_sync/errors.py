"""Exception hierarchy shared across blacklist-sync components."""

from __future__ import annotations


class BlacklistSyncError(Exception):
    """Base class for all application errors."""


class ConfigError(BlacklistSyncError):
    """Configuration is missing or invalid; fatal before startup."""


class PoolUnavailable(BlacklistSyncError):
    """The connection pool could not hand out a live connection.

    Callers treat this as retryable: nothing was written or lost.
    """


class StoreError(BlacklistSyncError):
    """A store operation failed at the database level."""


class FeedParseError(BlacklistSyncError):
    """The feed answered successfully but its body could not be read."""


__all__ = [
    "BlacklistSyncError",
    "ConfigError",
    "FeedParseError",
    "PoolUnavailable",
    "StoreError",
]
