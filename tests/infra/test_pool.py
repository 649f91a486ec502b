from __future__ import annotations

import threading
import time

import pytest

from blacklist_sync.errors import PoolUnavailable
from blacklist_sync.infra import ConnectionPool


class DriverError(Exception):
    pass


class FakeConnection:
    def __init__(self, ident: int) -> None:
        self.ident = ident
        self.alive = True
        self.closed = False

    def close(self) -> None:
        self.closed = True


class Connector:
    def __init__(self, fail: int = 0) -> None:
        self.opened: list[FakeConnection] = []
        self.fail = fail

    def __call__(self) -> FakeConnection:
        if self.fail:
            self.fail -= 1
            raise DriverError("connection refused")
        conn = FakeConnection(len(self.opened))
        self.opened.append(conn)
        return conn


def _pool(connector: Connector, **kwargs) -> ConnectionPool:
    kwargs.setdefault("max_size", 2)
    kwargs.setdefault("timeout", 0.05)
    return ConnectionPool(connector, driver_errors=(DriverError,), **kwargs)


def test_connections_are_reused() -> None:
    connector = Connector()
    pool = _pool(connector)

    with pool.acquire() as first:
        pass
    with pool.acquire() as second:
        pass

    assert first is second
    assert len(connector.opened) == 1
    assert pool.size == 1
    assert pool.idle == 1


def test_exhausted_pool_raises_after_timeout() -> None:
    pool = _pool(Connector(), max_size=1)

    with pool.acquire():
        with pytest.raises(PoolUnavailable, match="exhausted"):
            with pool.acquire():
                pass

    with pool.acquire():
        pass


def test_waiter_gets_released_connection() -> None:
    pool = _pool(Connector(), max_size=1, timeout=2.0)
    acquired: list[FakeConnection] = []
    release = threading.Event()

    def holder() -> None:
        with pool.acquire() as conn:
            acquired.append(conn)
            release.wait(1.0)

    thread = threading.Thread(target=holder)
    thread.start()
    while not acquired:
        time.sleep(0.01)
    release.set()
    with pool.acquire() as conn:
        assert conn is acquired[0]
    thread.join()


def test_connect_failure_frees_the_slot() -> None:
    connector = Connector(fail=1)
    pool = _pool(connector, max_size=1)

    with pytest.raises(PoolUnavailable, match="connection refused"):
        with pool.acquire():
            pass
    assert pool.size == 0

    with pool.acquire() as conn:
        assert conn is connector.opened[0]


def test_connection_returned_when_body_raises() -> None:
    pool = _pool(Connector())

    with pytest.raises(RuntimeError):
        with pool.acquire():
            raise RuntimeError("boom")

    assert pool.idle == 1


def test_dead_connection_is_discarded_after_driver_error() -> None:
    connector = Connector()
    pool = _pool(connector, validate=lambda conn: conn.alive)

    with pytest.raises(DriverError):
        with pool.acquire() as conn:
            conn.alive = False
            raise DriverError("server closed the connection")

    assert conn.closed
    assert pool.size == 0
    with pool.acquire() as fresh:
        assert fresh is not conn


def test_stale_idle_connection_is_replaced() -> None:
    connector = Connector()
    pool = _pool(connector, validate=lambda conn: conn.alive)

    with pool.acquire() as conn:
        pass
    conn.alive = False

    with pool.acquire() as fresh:
        assert fresh is not conn
    assert conn.closed
    assert pool.size == 1


def test_closed_pool_refuses_checkout() -> None:
    connector = Connector()
    pool = _pool(connector)
    with pool.acquire():
        pass

    pool.close()

    assert connector.opened[0].closed
    with pytest.raises(PoolUnavailable, match="closed"):
        with pool.acquire():
            pass


def test_invalid_size() -> None:
    with pytest.raises(ValueError):
        ConnectionPool(Connector(), max_size=0)
