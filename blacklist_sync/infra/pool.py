"""Thread-safe pool of DB-API connections shared by the API and the synchronizer."""

from __future__ import annotations

from collections import deque
from contextlib import contextmanager
from threading import Condition, Lock
from time import monotonic
from typing import Any, Callable, Deque, Iterator

from ..errors import PoolUnavailable
from ..logging_conf import component_logger


class ConnectionPool:
    """Bounded pool handing out one connection per logical operation.

    ``connect`` opens a new driver connection. ``validate`` (optional) is used
    to drop idle connections that went away and connections that raised a
    driver error while checked out.
    """

    def __init__(
        self,
        connect: Callable[[], Any],
        *,
        max_size: int = 8,
        timeout: float = 5.0,
        validate: Callable[[Any], bool] | None = None,
        driver_errors: tuple[type[BaseException], ...] = (),
        label: str = "database",
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._connect = connect
        self._validate = validate
        self._driver_errors = driver_errors + (OSError,)
        self.max_size = max_size
        self.timeout = timeout
        self.label = label
        self._idle: Deque[Any] = deque()
        self._lock = Lock()
        self._available = Condition(self._lock)
        self._created = 0
        self._closed = False
        self.logger = component_logger("pool").bind(engine=label)

    @property
    def size(self) -> int:
        with self._lock:
            return self._created

    @property
    def idle(self) -> int:
        with self._lock:
            return len(self._idle)

    @contextmanager
    def acquire(self) -> Iterator[Any]:
        """Check out a live connection, returned to the pool on every exit path."""

        conn = self._checkout()
        failed = False
        try:
            yield conn
        except self._driver_errors:
            failed = True
            raise
        finally:
            self._release(conn, failed)

    def close(self) -> None:
        with self._available:
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
            self._created -= len(idle)
            self._available.notify_all()
        for conn in idle:
            self._close_quietly(conn)

    # ------------------------------------------------------------------
    def _checkout(self) -> Any:
        deadline = monotonic() + self.timeout
        while True:
            conn = None
            with self._available:
                while True:
                    if self._closed:
                        raise PoolUnavailable(f"{self.label} pool is closed")
                    if self._idle:
                        conn = self._idle.pop()
                        break
                    if self._created < self.max_size:
                        self._created += 1
                        break
                    remaining = deadline - monotonic()
                    if remaining <= 0:
                        raise PoolUnavailable(
                            f"{self.label} pool exhausted ({self.max_size} connections in use)"
                        )
                    self._available.wait(remaining)

            if conn is None:
                return self._open()
            if self._is_alive(conn):
                return conn
            self.logger.debug("stale_connection_dropped")
            self._discard(conn)

    def _open(self) -> Any:
        try:
            return self._connect()
        except self._driver_errors as exc:
            with self._available:
                self._created -= 1
                self._available.notify()
            self.logger.error("connect_failed", error=str(exc))
            raise PoolUnavailable(f"Unable to connect to {self.label}: {exc}") from exc

    def _release(self, conn: Any, failed: bool) -> None:
        if failed and not self._is_alive(conn):
            self._discard(conn)
            return
        with self._available:
            if self._closed:
                self._created -= 1
                discard = True
            else:
                self._idle.append(conn)
                discard = False
            self._available.notify()
        if discard:
            self._close_quietly(conn)

    def _discard(self, conn: Any) -> None:
        with self._available:
            self._created -= 1
            self._available.notify()
        self._close_quietly(conn)

    def _is_alive(self, conn: Any) -> bool:
        if self._validate is None:
            return True
        try:
            return bool(self._validate(conn))
        except self._driver_errors:
            return False

    def _close_quietly(self, conn: Any) -> None:
        try:
            conn.close()
        except self._driver_errors as exc:
            self.logger.debug("connection_close_failed", error=str(exc))


__all__ = ["ConnectionPool"]
