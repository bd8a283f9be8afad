"""Schedule timing → trigger translation.

A schedule's timing is held as a small tagged variant (Daily, Weekly, Monthly)
and only rendered as a crontab string for display and logs. Day-of-week
follows the crontab convention: 0 = Sunday.
"""

import calendar
from datetime import datetime, timedelta, tzinfo
from typing import Literal

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, ConfigDict, Field

from leadscout.core.schemas import Schedule

# Index = crontab day-of-week number. Names avoid APScheduler's 0 = Monday numbering.
_DOW_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


class Daily(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["daily"] = "daily"
    hour: int = Field(default=0, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)


class Weekly(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["weekly"] = "weekly"
    hour: int = Field(default=0, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    day_of_week: int = Field(default=0, ge=0, le=6)


class Monthly(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["monthly"] = "monthly"
    hour: int = Field(default=0, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    day_of_month: int = Field(default=1, ge=1, le=31)


TriggerSpec = Daily | Weekly | Monthly


def to_trigger(schedule: Schedule) -> TriggerSpec:
    """Translate a schedule's timing fields into a trigger spec.

    Total over stored schedules: an unknown frequency falls back to daily,
    absent hour/minute/day-of-week default to 0 and day-of-month to 1.

    Raises:
        pydantic.ValidationError: If a timing field is out of range.
    """
    hour = schedule.hour or 0
    minute = schedule.minute or 0
    if schedule.frequency == "weekly":
        return Weekly(hour=hour, minute=minute, day_of_week=schedule.day_of_week or 0)
    if schedule.frequency == "monthly":
        return Monthly(hour=hour, minute=minute, day_of_month=schedule.day_of_month or 1)
    return Daily(hour=hour, minute=minute)


def to_crontab(spec: TriggerSpec) -> str:
    """Render a spec as a five-field crontab expression (``m h dom mon dow``)."""
    if isinstance(spec, Weekly):
        return f"{spec.minute} {spec.hour} * * {spec.day_of_week}"
    if isinstance(spec, Monthly):
        return f"{spec.minute} {spec.hour} {spec.day_of_month} * *"
    return f"{spec.minute} {spec.hour} * * *"


def to_cron_trigger(spec: TriggerSpec, timezone: tzinfo) -> CronTrigger:
    """Build the APScheduler trigger for a spec."""
    if isinstance(spec, Weekly):
        return CronTrigger(
            day_of_week=_DOW_NAMES[spec.day_of_week],
            hour=spec.hour,
            minute=spec.minute,
            timezone=timezone,
        )
    if isinstance(spec, Monthly):
        return CronTrigger(
            day=spec.day_of_month, hour=spec.hour, minute=spec.minute, timezone=timezone,
        )
    return CronTrigger(hour=spec.hour, minute=spec.minute, timezone=timezone)


def next_run_after(schedule: Schedule, now: datetime, timezone: tzinfo) -> datetime:
    """Advance ``now`` by one period and set the configured hour:minute.

    Daily adds 1 day, weekly 7 days, monthly 1 calendar month (day clamped to
    the month's length). The result is always strictly after ``now``.
    """
    spec = to_trigger(schedule)
    local = now.astimezone(timezone)
    if isinstance(spec, Weekly):
        base = local + timedelta(days=7)
    elif isinstance(spec, Monthly):
        base = _add_month(local)
    else:
        base = local + timedelta(days=1)
    return base.replace(hour=spec.hour, minute=spec.minute, second=0, microsecond=0)


def _add_month(value: datetime) -> datetime:
    year, month = (value.year + 1, 1) if value.month == 12 else (value.year, value.month + 1)
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
