"""PostgreSQL implementation of the entry store."""

from __future__ import annotations

from typing import Any, Sequence

import psycopg2

from ..config import DatabaseConfig, DatabaseType
from ..infra import ConnectionPool
from .base import EntryStore


class PostgresEntryStore(EntryStore):
    """Entries in PostgreSQL; upserts use ``INSERT ... ON CONFLICT DO UPDATE``."""

    engine = DatabaseType.POSTGRES
    driver_errors = (psycopg2.Error,)
    connection_errors = (psycopg2.OperationalError, psycopg2.InterfaceError)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "PostgresEntryStore":
        def connect() -> Any:
            conn = psycopg2.connect(
                host=config.host,
                port=config.port,
                dbname=config.name,
                user=config.user,
                password=config.password,
                connect_timeout=max(int(config.pool_timeout), 1),
            )
            conn.autocommit = True
            return conn

        pool = ConnectionPool(
            connect,
            max_size=config.pool_size,
            timeout=config.pool_timeout,
            validate=lambda conn: conn.closed == 0,
            driver_errors=cls.driver_errors,
            label=cls.engine.value,
        )
        return cls(pool)

    def schema_statements(self) -> Sequence[str]:
        return (
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                ip BYTEA NOT NULL,
                ip_type SMALLINT NOT NULL,
                backend_type SMALLINT NOT NULL,
                last_update TIMESTAMP NOT NULL,
                PRIMARY KEY (ip, ip_type)
            )
            """,
            f"CREATE INDEX IF NOT EXISTS {self.table}_last_update_idx ON {self.table} (last_update)",
        )

    def upsert_sql(self) -> str:
        return (
            f"INSERT INTO {self.table} (ip, ip_type, backend_type, last_update) "
            "VALUES (%s, %s, %s, %s) "
            "ON CONFLICT (ip, ip_type) DO UPDATE SET "
            "backend_type = EXCLUDED.backend_type, last_update = EXCLUDED.last_update"
        )

    def grouped_by_day_sql(self) -> str:
        return f"""
            SELECT
                COUNT(*) AS entries,
                MIN(last_update) AS window_start,
                MAX(last_update) AS window_end
            FROM {self.table}
            GROUP BY floor(extract(epoch FROM last_update) / 86400)
            ORDER BY window_start DESC
        """


__all__ = ["PostgresEntryStore"]
