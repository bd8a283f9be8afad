"""Task registry: owns one APScheduler cron job per active schedule.

Trigger state lives only in memory. ``bootstrap()`` rebuilds it from storage
at process start and ``sync()`` keeps it aligned with storage afterwards
(schedules added, edited, disabled, or deleted by another process, and
enablement instants that have since passed).
"""

import logging
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from leadscout.core.db import list_schedules
from leadscout.core.schemas import Schedule, utc_now
from leadscout.scheduler.cron import to_cron_trigger, to_crontab, to_trigger
from leadscout.scheduler.guard import ExecutionGuard

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "registry:sync"


def job_id_for(schedule_id: str) -> str:
    return f"schedule:{schedule_id}"


class TaskRegistry:
    """Maps schedule ids to live triggers bound to the execution guard.

    Usage::

        registry = TaskRegistry(conn, guard, timezone=settings.scheduler.tzinfo)
        registry.bootstrap()
        registry.start()
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        guard: ExecutionGuard,
        *,
        scheduler: AsyncIOScheduler | None = None,
        timezone: tzinfo = ZoneInfo("UTC"),
        misfire_grace_seconds: int = 300,
        sync_interval_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._conn = conn
        self._guard = guard
        self._timezone = timezone
        self._misfire_grace = misfire_grace_seconds
        self._sync_interval = sync_interval_seconds
        self._clock = clock
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._lock = threading.Lock()
        # schedule id -> updated_at of the row the trigger was built from
        self._registered: dict[str, datetime] = {}

    def register(self, schedule: Schedule) -> bool:
        """Create (or replace) the trigger for ``schedule``.

        Returns True if a trigger is active afterwards. Disabled schedules and
        schedules whose enablement instant is still ahead are left unregistered.
        """
        if not schedule.enabled:
            logger.info("Schedule '%s' is disabled - not registered", schedule.name)
            return False
        if schedule.enabled_at > self._clock():
            logger.info(
                "Schedule '%s' enabled from %s - not registered yet",
                schedule.name, schedule.enabled_at.isoformat(),
            )
            return False

        job_id = job_id_for(schedule.id)
        try:
            spec = to_trigger(schedule)
            trigger = to_cron_trigger(spec, self._timezone)
            with self._lock:
                if self._scheduler.get_job(job_id) is not None:
                    self._scheduler.remove_job(job_id)
                self._scheduler.add_job(
                    self._guard.fire,
                    trigger=trigger,
                    args=[schedule.id],
                    id=job_id,
                    name=schedule.name,
                    max_instances=1,
                    coalesce=True,
                    misfire_grace_time=self._misfire_grace,
                )
                self._registered[schedule.id] = schedule.updated_at
        except Exception:
            logger.exception("Failed to register schedule '%s' (%s)", schedule.name, schedule.id)
            return False

        logger.info(
            "Registered schedule '%s' (%s) at '%s'", schedule.name, schedule.id, to_crontab(spec),
        )
        return True

    def unregister(self, schedule_id: str) -> bool:
        """Stop and discard the trigger for ``schedule_id``. No-op if absent."""
        job_id = job_id_for(schedule_id)
        with self._lock:
            removed = self._registered.pop(schedule_id, None) is not None
            if self._scheduler.get_job(job_id) is not None:
                self._scheduler.remove_job(job_id)
                removed = True
        if removed:
            logger.info("Unregistered schedule %s", schedule_id)
        return removed

    def refresh(self, schedule: Schedule) -> bool:
        """Re-register after a mutation."""
        self.unregister(schedule.id)
        return self.register(schedule)

    def bootstrap(self) -> int:
        """Register every persisted schedule. Returns the number registered."""
        count = sum(1 for s in list_schedules(self._conn) if self.register(s))
        logger.info("Bootstrapped %d active schedules", count)
        return count

    def sync(self) -> None:
        """Reconcile live triggers with storage."""
        now = self._clock()
        stored = {s.id: s for s in list_schedules(self._conn)}

        for schedule_id in self.registered_ids() - stored.keys():
            self.unregister(schedule_id)

        for schedule in stored.values():
            active = schedule.enabled and schedule.enabled_at <= now
            registered_at = self._registered.get(schedule.id)
            if not active:
                if registered_at is not None:
                    self.unregister(schedule.id)
            elif registered_at != schedule.updated_at:
                self.refresh(schedule)

    def registered_ids(self) -> set[str]:
        with self._lock:
            return set(self._registered)

    def get_job(self, schedule_id: str) -> Job | None:
        return self._scheduler.get_job(job_id_for(schedule_id))

    def start(self) -> None:
        """Start firing triggers (requires a running event loop)."""
        if self._sync_interval > 0:
            self._scheduler.add_job(
                self._sync_job,
                "interval",
                seconds=self._sync_interval,
                id=SYNC_JOB_ID,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self._scheduler.start()
        for job in self._scheduler.get_jobs():
            logger.info("Scheduled job: %s - next run: %s", job.id, job.next_run_time)

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler shutdown complete")

    async def _sync_job(self) -> None:
        try:
            self.sync()
        except Exception:
            logger.exception("Schedule sync failed")
