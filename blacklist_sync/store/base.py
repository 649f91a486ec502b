"""Entry store contract shared by every database engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, ClassVar, Iterable, Sequence

from ..config import DatabaseType
from ..entry import AddressFamily, BlacklistEntry, DayBucket, SourceBackend
from ..errors import PoolUnavailable, StoreError
from ..infra import ConnectionPool
from ..logging_conf import component_logger

COLUMNS = "ip, ip_type, backend_type, last_update"


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class EntryStore(ABC):
    """Typed repository over blacklist entries.

    Subclasses supply the engine-specific SQL (schema, conflict-resolving
    upsert, day bucketing) and value conversions; every operation below is
    written once against those hooks. Each operation checks out its own
    pooled connection and runs as its own unit of work.
    """

    engine: ClassVar[DatabaseType]
    placeholder: ClassVar[str] = "%s"
    table: ClassVar[str] = "blacklist"
    driver_errors: ClassVar[tuple[type[BaseException], ...]] = ()
    # Errors meaning the connection itself is gone, not just the current row.
    connection_errors: ClassVar[tuple[type[BaseException], ...]] = ()

    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool
        self.logger = component_logger("store").bind(engine=self.engine.value)

    # ------------------------------------------------------------------
    # Engine hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def schema_statements(self) -> Sequence[str]:
        """DDL creating the blacklist table if it does not exist."""

    @abstractmethod
    def upsert_sql(self) -> str:
        """Insert one row, overwriting backend and timestamp on key conflict."""

    @abstractmethod
    def grouped_by_day_sql(self) -> str:
        """Count, min and max ``last_update`` per 24 hour window, newest first."""

    def encode_time(self, value: datetime) -> Any:
        return _naive_utc(value)

    def decode_time(self, value: Any) -> datetime:
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        return _naive_utc(value)

    def decode_address(self, value: Any) -> bytes:
        return bytes(value)

    def encode_address(self, value: bytes) -> Any:
        return value

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def ensure_schema(self) -> None:
        for statement in self.schema_statements():
            self._execute(statement)
        self.logger.debug("schema_ready", table=self.table)

    def upsert_many(self, entries: Iterable[BlacklistEntry]) -> tuple[int, int]:
        """Insert or overwrite each entry; returns ``(inserted_or_updated, errors)``.

        A failing row is counted and logged without aborting the batch. Losing
        the connection itself raises :class:`StoreError`.
        """

        sql = self.upsert_sql()
        operations = 0
        errors = 0
        try:
            with self.pool.acquire() as conn:
                cursor = conn.cursor()
                try:
                    for entry in entries:
                        operations += 1
                        try:
                            cursor.execute(sql, self._row(entry))
                        except self.connection_errors:
                            raise
                        except self.driver_errors as exc:
                            errors += 1
                            self.logger.error(
                                "upsert_failed", address=entry.to_plain(), error=str(exc)
                            )
                finally:
                    cursor.close()
        except self.driver_errors as exc:
            raise StoreError(f"Upsert aborted after {operations} rows: {exc}") from exc
        self.logger.debug(
            "store_completed", inserted_or_updated=operations - errors, errors=errors
        )
        return operations - errors, errors

    def select_aged_by_source(
        self,
        backend: SourceBackend,
        older_than: datetime,
        oldest_first: bool = True,
    ) -> list[BlacklistEntry]:
        direction = "ASC" if oldest_first else "DESC"
        rows = self._query(
            self._sql(
                f"SELECT {COLUMNS} FROM {{table}} "
                f"WHERE last_update < {{p}} AND backend_type = {{p}} "
                f"ORDER BY last_update {direction}"
            ),
            (self.encode_time(older_than), int(backend)),
        )
        return [self._entry(row) for row in rows]

    def update_verified_at(self, entry: BlacklistEntry, now: datetime) -> bool:
        """Move ``last_update`` forward to ``now``; never backwards."""

        updated = self._execute(
            self._sql(
                "UPDATE {table} SET last_update = {p} "
                "WHERE ip = {p} AND ip_type = {p} AND last_update < {p}"
            ),
            (
                self.encode_time(now),
                self.encode_address(entry.address),
                int(entry.family),
                self.encode_time(now),
            ),
        )
        if updated:
            entry.last_verified_at = _naive_utc(now)
        return updated > 0

    def delete_by_key(self, entry: BlacklistEntry) -> bool:
        deleted = self._execute(
            self._sql("DELETE FROM {table} WHERE ip = {p} AND ip_type = {p}"),
            (self.encode_address(entry.address), int(entry.family)),
        )
        return deleted > 0

    def delete_older_than(self, threshold: datetime) -> int:
        return self._execute(
            self._sql("DELETE FROM {table} WHERE last_update < {p}"),
            (self.encode_time(threshold),),
        )

    def count(self) -> int:
        rows = self._query(self._sql("SELECT COUNT(*) FROM {table}"))
        return int(rows[0][0]) if rows else 0

    def grouped_by_day(self) -> list[DayBucket]:
        return [
            DayBucket(
                count=int(count),
                window_start=self.decode_time(start),
                window_end=self.decode_time(end),
            )
            for count, start, end in self._query(self.grouped_by_day_sql())
        ]

    def list_all(self) -> list[BlacklistEntry]:
        rows = self._query(self._sql(f"SELECT {COLUMNS} FROM {{table}}"))
        return [self._entry(row) for row in rows]

    def latest(self) -> BlacklistEntry | None:
        """Most recently verified entry across all sources."""

        rows = self._query(
            self._sql(f"SELECT {COLUMNS} FROM {{table}} ORDER BY last_update DESC LIMIT 1")
        )
        return self._entry(rows[0]) if rows else None

    def is_reachable(self) -> bool:
        try:
            with self.pool.acquire():
                return True
        except PoolUnavailable:
            return False

    def close(self) -> None:
        self.pool.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _sql(self, template: str) -> str:
        return template.format(table=self.table, p=self.placeholder)

    def _row(self, entry: BlacklistEntry) -> tuple:
        return (
            self.encode_address(entry.address),
            int(entry.family),
            int(entry.backend),
            self.encode_time(entry.last_verified_at),
        )

    def _entry(self, row: Sequence[Any]) -> BlacklistEntry:
        ip, ip_type, backend_type, last_update = row
        return BlacklistEntry(
            address=self.decode_address(ip),
            family=AddressFamily(int(ip_type)),
            backend=SourceBackend(int(backend_type)),
            last_verified_at=self.decode_time(last_update),
        )

    def _execute(self, sql: str, params: tuple | None = None) -> int:
        try:
            with self.pool.acquire() as conn:
                cursor = conn.cursor()
                try:
                    if params is None:
                        cursor.execute(sql)
                    else:
                        cursor.execute(sql, params)
                    return max(cursor.rowcount, 0)
                finally:
                    cursor.close()
        except self.driver_errors as exc:
            self.logger.error("statement_failed", error=str(exc))
            raise StoreError(str(exc)) from exc

    def _query(self, sql: str, params: tuple | None = None) -> list[tuple]:
        try:
            with self.pool.acquire() as conn:
                cursor = conn.cursor()
                try:
                    if params is None:
                        cursor.execute(sql)
                    else:
                        cursor.execute(sql, params)
                    return [tuple(row) for row in cursor.fetchall()]
                finally:
                    cursor.close()
        except self.driver_errors as exc:
            self.logger.error("query_failed", error=str(exc))
            raise StoreError(str(exc)) from exc


__all__ = ["EntryStore"]
