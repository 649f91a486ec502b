"""APScheduler wrapper driving the daily reconciliation pass."""

from __future__ import annotations

from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleConfig
from ..entry import utcnow
from ..errors import PoolUnavailable, StoreError
from ..logging_conf import component_logger
from ..synchronizer import Synchronizer

DAILY_JOB_ID = "sync::daily"
WATCHDOG_JOB_ID = "sync::watchdog"


class SyncScheduler:
    """Own the background timer thread that triggers reconciliation passes.

    One pass runs at startup when the store is stale, then one per day at
    ``ScheduleConfig.run_at``. A watchdog job re-arms the daily job and runs a
    missed pass when the process slept through the scheduled time.
    """

    def __init__(self, synchronizer: Synchronizer, config: ScheduleConfig) -> None:
        self.synchronizer = synchronizer
        self.config = config
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.logger = component_logger("scheduler")
        self.started = False
        self.last_run_date = None

    def start(self) -> None:
        if self.started:
            return
        self.run_if_stale()
        self._arm_daily()
        self.scheduler.add_job(
            self.watchdog,
            trigger=IntervalTrigger(seconds=self.config.watch_interval),
            id=WATCHDOG_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.started = True
        self.logger.info("apscheduler_started", run_at=self.config.run_at.isoformat())

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def needs_refresh(self, now: datetime | None = None) -> bool:
        """True when the store is empty or its newest entry is too old."""

        now = now or utcnow()
        latest = self.synchronizer.store.latest()
        if latest is None:
            return True
        threshold = now - timedelta(hours=self.config.startup_max_age_hours)
        if latest.last_verified_at <= threshold:
            return True
        self.last_run_date = latest.last_verified_at.date()
        return False

    def run_if_stale(self) -> bool:
        try:
            stale = self.needs_refresh()
        except (PoolUnavailable, StoreError) as exc:
            self.logger.error("startup_check_failed", error=str(exc))
            return False
        if not stale:
            self.logger.info("startup_sync_skipped", reason="data is fresh")
            return False
        self.trigger()
        return True

    def trigger(self) -> None:
        """Run one pass; a no-op when one is already in flight."""

        report = self.synchronizer.run_pass()
        if report is not None:
            self.last_run_date = report.started_at.date()

    def watchdog(self) -> None:
        if self.scheduler.get_job(DAILY_JOB_ID) is None:
            self.logger.warning("daily_job_missing", action="re-armed")
            self._arm_daily()
        if self._missed_today(utcnow()) and not self.synchronizer.running:
            self.logger.warning("missed_daily_run", action="running now")
            self.trigger()

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs

    # ------------------------------------------------------------------
    def _arm_daily(self) -> None:
        self.scheduler.add_job(
            self.trigger,
            trigger=self._daily_trigger(),
            id=DAILY_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
        )

    def _daily_trigger(self) -> CronTrigger:
        run_at = self.config.run_at
        return CronTrigger(
            hour=run_at.hour, minute=run_at.minute, second=run_at.second, timezone="UTC"
        )

    def _missed_today(self, now: datetime) -> bool:
        if self.last_run_date is None:
            return False
        scheduled = datetime.combine(now.date(), self.config.run_at)
        return now >= scheduled and self.last_run_date < now.date()


__all__ = ["DAILY_JOB_ID", "SyncScheduler", "WATCHDOG_JOB_ID"]
