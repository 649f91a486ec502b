"""MySQL / MariaDB implementation of the entry store."""

from __future__ import annotations

from typing import Any, Sequence

import pymysql

from ..config import DatabaseConfig, DatabaseType
from ..infra import ConnectionPool
from .base import EntryStore


def _ping(conn: Any) -> bool:
    conn.ping(reconnect=False)
    return True


class MySQLEntryStore(EntryStore):
    """Entries in MySQL; upserts use ``REPLACE INTO``."""

    engine = DatabaseType.MYSQL
    driver_errors = (pymysql.MySQLError,)
    connection_errors = (pymysql.err.OperationalError, pymysql.err.InterfaceError)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "MySQLEntryStore":
        def connect() -> Any:
            return pymysql.connect(
                host=config.host,
                port=config.port,
                user=config.user,
                password=config.password,
                database=config.name,
                autocommit=True,
                connect_timeout=max(int(config.pool_timeout), 1),
                # day buckets are computed with UNIX_TIMESTAMP on UTC values
                init_command="SET time_zone = '+00:00'",
            )

        pool = ConnectionPool(
            connect,
            max_size=config.pool_size,
            timeout=config.pool_timeout,
            validate=_ping,
            driver_errors=cls.driver_errors,
            label=cls.engine.value,
        )
        return cls(pool)

    def schema_statements(self) -> Sequence[str]:
        return (
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                ip VARBINARY(16) NOT NULL,
                ip_type SMALLINT NOT NULL,
                backend_type SMALLINT NOT NULL,
                last_update DATETIME(6) NOT NULL,
                PRIMARY KEY (ip, ip_type),
                INDEX {self.table}_last_update_idx (last_update)
            )
            """,
        )

    def upsert_sql(self) -> str:
        return (
            f"REPLACE INTO {self.table} (ip, ip_type, backend_type, last_update) "
            "VALUES (%s, %s, %s, %s)"
        )

    def grouped_by_day_sql(self) -> str:
        return f"""
            SELECT
                COUNT(*) AS entries,
                MIN(last_update) AS window_start,
                MAX(last_update) AS window_end
            FROM {self.table}
            GROUP BY UNIX_TIMESTAMP(last_update) DIV 86400
            ORDER BY window_start DESC
        """


__all__ = ["MySQLEntryStore"]
