"""Execution guard: decides at fire time whether a schedule's run may proceed.

Run state per schedule: idle → running (``pending``) → success | error.
At most one run per schedule id is in flight, whether fired by a trigger or
requested manually, and across processes sharing one database: a run starts
only after it claims the row's ``pending`` state in storage. Pipeline
exceptions are recorded, never propagated.
"""

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo

from leadscout.core.db import claim_run, get_schedule, record_run_state
from leadscout.core.schemas import RunStatus, Schedule, utc_now
from leadscout.pipeline.orchestrator import ScheduleRunner
from leadscout.scheduler.cron import next_run_after

logger = logging.getLogger(__name__)


class FireOutcome(str, Enum):
    """What happened to a single fire."""

    DROPPED = "dropped"  # a run for this schedule is already in flight
    SKIPPED = "skipped"  # missing, disabled, or before its enablement instant
    SUCCESS = "success"
    ERROR = "error"


class ExecutionGuard:
    """Serializes runs per schedule and records their run state.

    The schedule is re-read from storage on every fire, so edits and
    enablement changes apply without re-registration.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        runner: ScheduleRunner,
        *,
        timezone: tzinfo = ZoneInfo("UTC"),
        clock: Callable[[], datetime] = utc_now,
        stale_after: timedelta = timedelta(hours=6),
    ) -> None:
        self._conn = conn
        self._runner = runner
        self._timezone = timezone
        self._clock = clock
        self._stale_after = stale_after
        self._running: set[str] = set()

    def is_running(self, schedule_id: str) -> bool:
        return schedule_id in self._running

    async def fire(self, schedule_id: str, *, honor_enablement: bool = True) -> FireOutcome:
        """Run the schedule's pipeline once unless a run is already in flight.

        ``honor_enablement=False`` is used for manual runs: the enabled flag and
        enablement instant are ignored, the single-run rule is not.
        """
        if schedule_id in self._running:
            logger.warning("Schedule %s is still running - fire dropped", schedule_id)
            return FireOutcome.DROPPED

        schedule = get_schedule(self._conn, schedule_id)
        if schedule is None:
            logger.warning("Schedule %s no longer exists - fire skipped", schedule_id)
            return FireOutcome.SKIPPED

        now = self._clock()
        if honor_enablement:
            if not schedule.enabled:
                logger.info("Schedule '%s' is disabled - fire skipped", schedule.name)
                return FireOutcome.SKIPPED
            if schedule.enabled_at > now:
                logger.info(
                    "Schedule '%s' not enabled until %s - fire skipped",
                    schedule.name, schedule.enabled_at.isoformat(),
                )
                return FireOutcome.SKIPPED

        if not claim_run(self._conn, schedule_id, now, now - self._stale_after):
            logger.warning(
                "Schedule '%s' is running in another process - fire dropped", schedule.name,
            )
            return FireOutcome.DROPPED

        self._running.add(schedule_id)
        try:
            logger.info("Running schedule '%s' (%s)", schedule.name, schedule_id)
            try:
                summary = await self._runner(schedule)
            except Exception:
                logger.exception("Schedule '%s' run failed", schedule.name)
                status = RunStatus.ERROR
            else:
                logger.info(
                    "Schedule '%s' finished: %d leads saved", schedule.name, summary.total_saved,
                )
                status = RunStatus.SUCCESS

            status = self._finish(schedule, status)
        finally:
            self._running.discard(schedule_id)

        return FireOutcome.SUCCESS if status is RunStatus.SUCCESS else FireOutcome.ERROR

    def _finish(self, schedule: Schedule, status: RunStatus) -> RunStatus:
        """Record the final run state; a failed write leaves the row as ``error``."""
        try:
            next_run = next_run_after(schedule, self._clock(), self._timezone)
            record_run_state(self._conn, schedule.id, status, next_run_at=next_run)
        except (ValueError, OverflowError, sqlite3.Error):
            logger.exception("Could not record run state for schedule '%s'", schedule.name)
        else:
            return status

        try:
            record_run_state(self._conn, schedule.id, RunStatus.ERROR)
        except sqlite3.Error:
            logger.exception(
                "Schedule '%s' left pending until its claim goes stale", schedule.name,
            )
        return RunStatus.ERROR
