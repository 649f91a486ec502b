from __future__ import annotations

from datetime import datetime

import pytest

from blacklist_sync.entry import (
    AddressFamily,
    BlacklistEntry,
    DayBucket,
    SourceBackend,
    parse_snapshot,
)


def test_parse_ipv4_and_ipv6(now: datetime) -> None:
    v4 = BlacklistEntry.parse("9.9.9.9", SourceBackend.ABUSEIPDB, now)
    v6 = BlacklistEntry.parse(" ::1 ", SourceBackend.ABUSEIPDB, now)

    assert v4 is not None and v6 is not None
    assert v4.address == bytes([9, 9, 9, 9])
    assert v4.family is AddressFamily.IPV4
    assert v4.key == (bytes([9, 9, 9, 9]), 0)
    assert v4.last_verified_at == now
    assert len(v6.address) == 16
    assert v6.family is AddressFamily.IPV6
    assert v6.to_plain() == "::1"


@pytest.mark.parametrize("text", ["", "garbage-line", "300.1.1.1", "1.2.3"])
def test_parse_rejects_malformed_addresses(text: str) -> None:
    assert BlacklistEntry.parse(text, SourceBackend.ABUSEIPDB) is None


def test_parse_snapshot_skips_blank_and_malformed_lines(now: datetime) -> None:
    entries = parse_snapshot("9.9.9.9\ngarbage-line\n\n::1\n", SourceBackend.ABUSEIPDB, now)

    assert [entry.to_plain() for entry in entries] == ["9.9.9.9", "::1"]
    assert all(entry.last_verified_at == now for entry in entries)
    assert all(entry.backend is SourceBackend.ABUSEIPDB for entry in entries)


def test_unknown_codes_are_preserved() -> None:
    family = AddressFamily(7)
    backend = SourceBackend(3)

    assert int(family) == 7
    assert family.name == "UNKNOWN_7"
    assert not family.is_known
    assert AddressFamily.IPV6.is_known
    assert int(backend) == 3
    assert not backend.is_known


def test_to_plain_requires_known_family_and_enough_bytes(now: datetime) -> None:
    unknown = BlacklistEntry(b"\x01\x02\x03\x04", AddressFamily(7), SourceBackend.ABUSEIPDB, now)
    short = BlacklistEntry(b"\x01\x02", AddressFamily.IPV4, SourceBackend.ABUSEIPDB, now)
    padded = BlacklistEntry(b"\x0a\x00\x00\x01\xff", AddressFamily.IPV4, SourceBackend.ABUSEIPDB, now)

    assert unknown.to_plain() is None
    assert short.to_plain() is None
    assert padded.to_plain() == "10.0.0.1"


def test_day_bucket_as_dict() -> None:
    bucket = DayBucket(
        count=3,
        window_start=datetime(2024, 6, 1, 0, 30),
        window_end=datetime(2024, 6, 1, 23, 0),
    )

    assert bucket.as_dict() == {
        "count": 3,
        "last_update_start": "2024-06-01 00:30:00",
        "last_update_end": "2024-06-01 23:00:00",
    }
