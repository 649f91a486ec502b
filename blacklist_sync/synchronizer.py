"""Reconciliation pass: bulk ingest, aged re-verification, hard expiry sweep."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from threading import Lock
from time import monotonic
from typing import Callable

from .config import SyncConfig
from .entry import parse_snapshot, utcnow
from .errors import FeedParseError, PoolUnavailable, StoreError
from .feed import AbuseIpDbClient
from .logging_conf import component_logger
from .store import EntryStore


@dataclass(slots=True)
class SyncReport:
    """Counters collected during one reconciliation pass."""

    started_at: datetime
    fetched: int = 0
    inserted: int = 0
    ingest_errors: int = 0
    updated: int = 0
    deleted: int = 0
    update_errors: int = 0
    delete_errors: int = 0
    check_errors: int = 0
    halted: bool = False
    expired: int = 0
    aborted: str | None = None
    duration: float = field(default=0.0)

    def as_dict(self) -> dict:
        payload = asdict(self)
        payload["started_at"] = self.started_at.isoformat()
        return payload


class Synchronizer:
    """Run reconciliation passes against the entry store.

    Passes are single-flight: a call made while another pass is running
    returns ``None`` immediately instead of waiting.
    """

    def __init__(
        self,
        store: EntryStore,
        feed: AbuseIpDbClient | None,
        config: SyncConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.feed = feed
        self.config = config
        self.clock = clock
        self.logger = component_logger("synchronizer")
        self._running = Lock()
        self.last_report: SyncReport | None = None

    @property
    def running(self) -> bool:
        return self._running.locked()

    def run_pass(self) -> SyncReport | None:
        if not self._running.acquire(blocking=False):
            self.logger.info("sync_skipped", reason="pass already running")
            return None
        try:
            return self._run_pass()
        finally:
            self._running.release()

    # ------------------------------------------------------------------
    def _run_pass(self) -> SyncReport:
        now = self.clock()
        started = monotonic()
        report = SyncReport(started_at=now)
        self.logger.info("updating_blacklist", started_at=now.isoformat())
        try:
            if self.feed is not None:
                self._sync_feed(self.feed, now, report)
            else:
                self.logger.debug("feed_disabled", feed="abuseipdb")
            self.logger.debug("deleting_stale_ips")
            self._expire(now, report)
        except (PoolUnavailable, StoreError) as exc:
            report.aborted = str(exc)
            self.logger.error("sync_aborted", error=str(exc))
        report.duration = round(monotonic() - started, 3)
        self.last_report = report
        self.logger.info("sync_completed", **report.as_dict())
        return report

    def _sync_feed(self, feed: AbuseIpDbClient, now: datetime, report: SyncReport) -> None:
        started = monotonic()
        self.logger.info("fetching_feed", feed="abuseipdb")
        snapshot = feed.fetch_snapshot()
        if snapshot is not None:
            self._ingest(snapshot, now, report)
        self.logger.debug("updating_old_ips", feed="abuseipdb")
        self._reverify(feed, now, report)
        self.logger.info(
            "feed_completed", feed="abuseipdb", seconds=round(monotonic() - started, 3)
        )

    def _ingest(self, snapshot: str, now: datetime, report: SyncReport) -> None:
        entries = parse_snapshot(snapshot, AbuseIpDbClient.backend, now)
        report.fetched = len(entries)
        self.logger.debug("storing_feed", entries=len(entries))
        report.inserted, report.ingest_errors = self.store.upsert_many(entries)

    def _reverify(self, feed: AbuseIpDbClient, now: datetime, report: SyncReport) -> None:
        threshold = now - timedelta(days=self.config.expiration_days)
        stale = now - timedelta(days=self.config.stale_days)
        aged = self.store.select_aged_by_source(feed.backend, threshold, oldest_first=True)
        # entries past the stale threshold are removed by the sweep whatever the feed says
        doomed = sum(1 for entry in aged if entry.last_verified_at < stale)
        if doomed:
            self.logger.debug("skipping_stale_ips", entries=doomed)
            aged = aged[doomed:]
        for index, entry in enumerate(aged):
            address = entry.to_plain()
            if address is None:
                self.logger.warning("unconvertible_entry", family=int(entry.family))
                continue
            self.logger.debug("checking_ip", address=address)
            try:
                listed = feed.check_address(address)
            except FeedParseError as exc:
                report.check_errors += 1
                self.logger.warning("check_response_invalid", address=address, error=str(exc))
                continue
            if listed is None:
                # Quota guard: everything behind this entry waits for the next pass.
                self.logger.warning(
                    "verification_halted",
                    address=address,
                    remaining=len(aged) - index,
                )
                report.halted = True
                break
            if listed:
                self._refresh(entry, now, report)
            else:
                self._remove(entry, report)
        self.logger.debug(
            "update_completed",
            updated=report.updated,
            deleted=report.deleted,
            errors=report.update_errors + report.delete_errors + report.check_errors,
        )

    def _refresh(self, entry, now: datetime, report: SyncReport) -> None:
        try:
            updated = self.store.update_verified_at(entry, now)
        except StoreError as exc:
            report.update_errors += 1
            self.logger.error("update_failed", address=entry.to_plain(), error=str(exc))
            return
        if updated:
            report.updated += 1
        else:
            self.logger.debug("update_skipped", address=entry.to_plain())

    def _remove(self, entry, report: SyncReport) -> None:
        try:
            deleted = self.store.delete_by_key(entry)
        except StoreError as exc:
            report.delete_errors += 1
            self.logger.error("delete_failed", address=entry.to_plain(), error=str(exc))
            return
        if deleted:
            report.deleted += 1

    def _expire(self, now: datetime, report: SyncReport) -> None:
        threshold = now - timedelta(days=self.config.stale_days)
        report.expired = self.store.delete_older_than(threshold)
        self.logger.debug("removal_completed", deleted=report.expired)


__all__ = ["SyncReport", "Synchronizer"]
