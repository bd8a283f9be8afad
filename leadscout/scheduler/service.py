"""Schedule service: validated CRUD that keeps the trigger registry in step.

Every mutation is persisted first, then re-read and re-registered, so the
registry always works from the stored row.
"""

import logging
import sqlite3
import uuid
from collections.abc import Callable
from datetime import datetime, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from leadscout.core import db
from leadscout.core.schemas import Schedule, ScheduleFields, utc_now
from leadscout.scheduler.cron import next_run_after
from leadscout.scheduler.guard import ExecutionGuard, FireOutcome
from leadscout.scheduler.registry import TaskRegistry

logger = logging.getLogger(__name__)


class ScheduleService:
    """Entry point for creating, editing, deleting and manually running schedules."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        registry: TaskRegistry,
        guard: ExecutionGuard,
        *,
        timezone: tzinfo = ZoneInfo("UTC"),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._conn = conn
        self._registry = registry
        self._guard = guard
        self._timezone = timezone
        self._clock = clock

    def create(self, payload: dict[str, Any] | ScheduleFields) -> Schedule:
        """Validate and persist a new schedule, then register it.

        Raises:
            pydantic.ValidationError: If the payload is malformed.
        """
        fields = (
            payload if isinstance(payload, ScheduleFields)
            else ScheduleFields.model_validate(payload)
        )
        now = self._clock()
        data = fields.model_dump()
        if data["enabled_at"] is None:
            data["enabled_at"] = now
        schedule = Schedule(id=uuid.uuid4().hex, created_at=now, updated_at=now, **data)
        schedule.next_run_at = next_run_after(schedule, now, self._timezone)

        db.create_schedule(self._conn, schedule)
        logger.info("Created schedule '%s' (%s)", schedule.name, schedule.id)
        self._registry.register(schedule)
        return schedule

    def update(self, schedule_id: str, changes: dict[str, Any]) -> Schedule | None:
        """Merge ``changes`` into a schedule, re-validate, persist and refresh.

        Re-enabling a disabled schedule without an explicit ``enabled_at``
        starts its enablement window now. Returns None if the id is unknown.

        Raises:
            pydantic.ValidationError: If the merged fields are malformed.
        """
        current = db.get_schedule(self._conn, schedule_id)
        if current is None:
            return None

        merged = {**current.fields(), **changes}
        if merged.get("enabled") and not current.enabled and "enabled_at" not in changes:
            merged["enabled_at"] = self._clock()
        fields = ScheduleFields.model_validate(merged)

        updated = current.model_copy(update={
            name: getattr(fields, name)
            for name in ScheduleFields.model_fields
            if name != "enabled_at"
        })
        updated.enabled_at = fields.enabled_at or current.enabled_at
        updated.next_run_at = next_run_after(updated, self._clock(), self._timezone)
        db.update_schedule(self._conn, updated)

        stored = db.get_schedule(self._conn, schedule_id)
        if stored is None:
            # Deleted concurrently
            self._registry.unregister(schedule_id)
            return None
        logger.info("Updated schedule '%s' (%s)", stored.name, stored.id)
        self._registry.refresh(stored)
        return stored

    def delete(self, schedule_id: str) -> bool:
        """Delete a schedule and stop its trigger. Returns False if unknown."""
        self._registry.unregister(schedule_id)
        deleted = db.delete_schedule(self._conn, schedule_id)
        if deleted:
            logger.info("Deleted schedule %s", schedule_id)
        return deleted

    async def run_now(self, schedule_id: str) -> FireOutcome:
        """Run a schedule immediately through the execution guard.

        The enablement window is ignored; a run already in flight is not.
        """
        logger.info("Manual run requested for schedule %s", schedule_id)
        return await self._guard.fire(schedule_id, honor_enablement=False)

    def get(self, schedule_id: str) -> Schedule | None:
        return db.get_schedule(self._conn, schedule_id)

    def list_all(self) -> list[Schedule]:
        return db.list_schedules(self._conn)
