"""SQLite implementation of the entry store (embedded-file engine)."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Sequence

from ..config import DatabaseConfig, DatabaseType
from ..infra import ConnectionPool
from .base import EntryStore

# Fixed-width text so lexicographic comparison matches chronological order.
TIME_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class SQLiteEntryStore(EntryStore):
    """Entries kept in a local SQLite file; upserts use ``INSERT OR REPLACE``."""

    engine = DatabaseType.SQLITE
    placeholder = "?"
    driver_errors = (sqlite3.Error,)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "SQLiteEntryStore":
        path = config.path
        path.parent.mkdir(parents=True, exist_ok=True)

        def connect() -> sqlite3.Connection:
            conn = sqlite3.connect(
                path,
                timeout=config.pool_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.execute("PRAGMA journal_mode=WAL")
            return conn

        pool = ConnectionPool(
            connect,
            max_size=config.pool_size,
            timeout=config.pool_timeout,
            driver_errors=cls.driver_errors,
            label=cls.engine.value,
        )
        return cls(pool)

    def schema_statements(self) -> Sequence[str]:
        return (
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                ip BLOB NOT NULL,
                ip_type SMALLINT NOT NULL,
                backend_type SMALLINT NOT NULL,
                last_update TEXT NOT NULL,
                PRIMARY KEY (ip, ip_type)
            )
            """,
            f"CREATE INDEX IF NOT EXISTS {self.table}_last_update_idx ON {self.table} (last_update)",
        )

    def upsert_sql(self) -> str:
        return (
            f"INSERT OR REPLACE INTO {self.table} (ip, ip_type, backend_type, last_update) "
            "VALUES (?, ?, ?, ?)"
        )

    def grouped_by_day_sql(self) -> str:
        return f"""
            SELECT
                COUNT(*) AS entries,
                MIN(last_update) AS window_start,
                MAX(last_update) AS window_end
            FROM {self.table}
            GROUP BY CAST(strftime('%s', last_update) AS INTEGER) / 86400
            ORDER BY window_start DESC
        """

    def encode_time(self, value: datetime) -> Any:
        return super().encode_time(value).strftime(TIME_FORMAT)


__all__ = ["SQLiteEntryStore"]
