"""Shared fixtures: an on-disk SQLite store, entry builders and a scripted feed."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from blacklist_sync.config import DatabaseConfig, DatabaseType, SyncConfig
from blacklist_sync.entry import BlacklistEntry, SourceBackend
from blacklist_sync.store import SQLiteEntryStore, build_store

NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def sqlite_config(tmp_path: Path) -> DatabaseConfig:
    return DatabaseConfig(type=DatabaseType.SQLITE, path=tmp_path / "blacklist.db", pool_size=4, pool_timeout=1.0)


@pytest.fixture
def store(sqlite_config: DatabaseConfig) -> Iterable[SQLiteEntryStore]:
    instance = build_store(sqlite_config)
    instance.ensure_schema()
    yield instance
    instance.close()


@pytest.fixture
def make_entry() -> Callable[..., BlacklistEntry]:
    def _builder(
        address: str,
        age_days: float = 0,
        backend: SourceBackend = SourceBackend.ABUSEIPDB,
        reference: datetime = NOW,
    ) -> BlacklistEntry:
        entry = BlacklistEntry.parse(address, backend, reference - timedelta(days=age_days))
        assert entry is not None, address
        return entry

    return _builder


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(expiration_days=14, stale_days=28)


class ScriptedFeed:
    """Feed double answering checks from a mapping and recording every call."""

    backend = SourceBackend.ABUSEIPDB

    def __init__(self, snapshot: str | None = None, checks: dict[str, Any] | None = None) -> None:
        self.snapshot = snapshot
        self.checks = checks or {}
        self.checked: list[str] = []
        self.snapshot_calls = 0

    def fetch_snapshot(self) -> str | None:
        self.snapshot_calls += 1
        return self.snapshot

    def check_address(self, address: str) -> bool | None:
        self.checked.append(address)
        result = self.checks.get(address)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self) -> None:
        return


@pytest.fixture
def scripted_feed() -> Callable[..., ScriptedFeed]:
    return ScriptedFeed
