"""Blacklist entry model and feed line parsing."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import Iterable


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored by every engine."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class _PreservingEnum(IntEnum):
    """IntEnum that keeps unrecognised on-wire codes as pseudo-members."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            member = int.__new__(cls, value)
            member._name_ = f"UNKNOWN_{value}"
            member._value_ = value
            return member
        return None

    @property
    def is_known(self) -> bool:
        return self._name_ in type(self).__members__


class AddressFamily(_PreservingEnum):
    IPV4 = 0
    IPV6 = 1


class SourceBackend(_PreservingEnum):
    ABUSEIPDB = 0


@dataclass(slots=True)
class BlacklistEntry:
    """One blacklisted address, keyed by (address, family)."""

    address: bytes
    family: AddressFamily
    backend: SourceBackend
    last_verified_at: datetime

    @classmethod
    def parse(
        cls, text: str, backend: SourceBackend, now: datetime | None = None
    ) -> "BlacklistEntry | None":
        """Build an entry from its textual address, or ``None`` if it does not parse."""

        try:
            ip = ipaddress.ip_address(text.strip())
        except ValueError:
            return None
        family = AddressFamily.IPV4 if ip.version == 4 else AddressFamily.IPV6
        return cls(
            address=ip.packed,
            family=family,
            backend=backend,
            last_verified_at=now or utcnow(),
        )

    @property
    def key(self) -> tuple[bytes, int]:
        return self.address, int(self.family)

    def to_plain(self) -> str | None:
        if self.family is AddressFamily.IPV4 and len(self.address) >= 4:
            return str(ipaddress.IPv4Address(self.address[:4]))
        if self.family is AddressFamily.IPV6 and len(self.address) >= 16:
            return str(ipaddress.IPv6Address(self.address[:16]))
        return None


@dataclass(slots=True)
class DayBucket:
    """Entry count for one 24-hour window of ``last_verified_at``."""

    count: int
    window_start: datetime
    window_end: datetime

    def as_dict(self) -> dict:
        return {
            "count": self.count,
            "last_update_start": str(self.window_start),
            "last_update_end": str(self.window_end),
        }


def parse_snapshot(
    text: str, backend: SourceBackend, now: datetime | None = None
) -> list[BlacklistEntry]:
    """Parse a newline separated snapshot, skipping blank and malformed lines."""

    now = now or utcnow()
    return list(_iter_entries(text.splitlines(), backend, now))


def _iter_entries(
    lines: Iterable[str], backend: SourceBackend, now: datetime
) -> Iterable[BlacklistEntry]:
    for line in lines:
        if not line.strip():
            continue
        entry = BlacklistEntry.parse(line, backend, now)
        if entry is not None:
            yield entry


__all__ = [
    "AddressFamily",
    "BlacklistEntry",
    "DayBucket",
    "SourceBackend",
    "parse_snapshot",
    "utcnow",
]
