"""Entry store SPI and the per-engine implementations."""

from __future__ import annotations

from ..config import DatabaseConfig, DatabaseType
from .base import EntryStore
from .mysql_store import MySQLEntryStore
from .postgres_store import PostgresEntryStore
from .sqlite_store import SQLiteEntryStore

_STORES: dict[DatabaseType, type] = {
    DatabaseType.POSTGRES: PostgresEntryStore,
    DatabaseType.MYSQL: MySQLEntryStore,
    DatabaseType.SQLITE: SQLiteEntryStore,
}


def build_store(config: DatabaseConfig) -> EntryStore:
    """Create the store (and its connection pool) for the configured engine."""

    try:
        store_cls = _STORES[config.type]
    except KeyError:  # pragma: no cover - DatabaseType is closed
        raise ValueError(f"Unsupported database type: {config.type}") from None
    return store_cls.from_config(config)


__all__ = [
    "EntryStore",
    "MySQLEntryStore",
    "PostgresEntryStore",
    "SQLiteEntryStore",
    "build_store",
]
