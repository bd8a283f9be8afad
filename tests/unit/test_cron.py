"""Tests for schedule → trigger translation and next-run computation."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from leadscout.core.schemas import Schedule
from leadscout.scheduler.cron import (
    Daily,
    Monthly,
    Weekly,
    next_run_after,
    to_cron_trigger,
    to_crontab,
    to_trigger,
)

UTC = ZoneInfo("UTC")


def _schedule(**overrides: object) -> Schedule:
    defaults: dict[str, object] = {"id": "s1", "name": "n", "frequency": "daily", "hour": 9}
    defaults.update(overrides)
    return Schedule(**defaults)  # type: ignore[arg-type]


def _fires(trigger, start: datetime, count: int) -> list[datetime]:  # type: ignore[no-untyped-def]
    """Collect the next ``count`` fire times after ``start``."""
    fires: list[datetime] = []
    previous = None
    now = start
    for _ in range(count):
        nxt = trigger.get_next_fire_time(previous, now)
        fires.append(nxt)
        previous = nxt
        now = nxt + timedelta(seconds=1)
    return fires


class TestToTrigger:
    def test_daily(self) -> None:
        assert to_trigger(_schedule(hour=9, minute=15)) == Daily(hour=9, minute=15)

    def test_daily_ignores_day_fields(self) -> None:
        spec = to_trigger(_schedule(day_of_week=3, day_of_month=20))
        assert spec == Daily(hour=9, minute=0)

    def test_weekly(self) -> None:
        spec = to_trigger(_schedule(frequency="weekly", hour=9, minute=30, day_of_week=3))
        assert spec == Weekly(hour=9, minute=30, day_of_week=3)

    def test_monthly(self) -> None:
        spec = to_trigger(_schedule(frequency="monthly", hour=6, day_of_month=15))
        assert spec == Monthly(hour=6, minute=0, day_of_month=15)

    def test_unknown_frequency_falls_back_to_daily(self) -> None:
        assert to_trigger(_schedule(frequency="hourly", hour=7, minute=5)) == Daily(hour=7, minute=5)

    def test_missing_day_fields_default(self) -> None:
        assert to_trigger(_schedule(frequency="weekly")) == Weekly(hour=9, day_of_week=0)
        assert to_trigger(_schedule(frequency="monthly")) == Monthly(hour=9, day_of_month=1)

    def test_out_of_range_stored_value_raises(self) -> None:
        with pytest.raises(ValidationError):
            to_trigger(_schedule(hour=25))


class TestToCrontab:
    def test_daily(self) -> None:
        assert to_crontab(Daily(hour=9, minute=5)) == "5 9 * * *"

    def test_weekly(self) -> None:
        assert to_crontab(Weekly(hour=9, minute=30, day_of_week=3)) == "30 9 * * 3"

    def test_monthly(self) -> None:
        assert to_crontab(Monthly(hour=0, minute=0, day_of_month=31)) == "0 0 31 * *"


class TestCronTrigger:
    def test_daily_fires_every_day_at_time(self) -> None:
        trigger = to_cron_trigger(Daily(hour=9, minute=15), UTC)
        start = datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
        fires = _fires(trigger, start, 3)
        assert [f.day for f in fires] == [2, 3, 4]
        assert all((f.hour, f.minute) == (9, 15) for f in fires)

    def test_weekly_wednesday_0930(self) -> None:
        # 2024-05-01 is a Wednesday; day_of_week=3 counts from Sunday=0.
        trigger = to_cron_trigger(Weekly(hour=9, minute=30, day_of_week=3), UTC)
        start = datetime(2024, 4, 28, 0, 0, tzinfo=UTC)
        fires = _fires(trigger, start, 3)
        assert [f.date().isoformat() for f in fires] == ["2024-05-01", "2024-05-08", "2024-05-15"]
        assert all(f.strftime("%A %H:%M") == "Wednesday 09:30" for f in fires)

    def test_weekly_sunday_is_zero(self) -> None:
        trigger = to_cron_trigger(Weekly(hour=8, day_of_week=0), UTC)
        [fire] = _fires(trigger, datetime(2024, 5, 1, tzinfo=UTC), 1)
        assert fire.strftime("%A") == "Sunday"

    def test_monthly_day(self) -> None:
        trigger = to_cron_trigger(Monthly(hour=6, day_of_month=15), UTC)
        fires = _fires(trigger, datetime(2024, 5, 20, tzinfo=UTC), 2)
        assert [(f.month, f.day, f.hour) for f in fires] == [(6, 15, 6), (7, 15, 6)]

    def test_timezone_respected(self) -> None:
        taipei = ZoneInfo("Asia/Taipei")
        trigger = to_cron_trigger(Daily(hour=9), taipei)
        [fire] = _fires(trigger, datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc), 1)
        assert fire.astimezone(taipei).hour == 9
        assert fire.astimezone(timezone.utc).hour == 1


class TestNextRunAfter:
    def test_daily_adds_one_day(self) -> None:
        now = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        nxt = next_run_after(_schedule(hour=9, minute=15), now, UTC)
        assert nxt == datetime(2024, 5, 2, 9, 15, tzinfo=UTC)

    def test_weekly_adds_seven_days(self) -> None:
        now = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        sched = _schedule(frequency="weekly", hour=9, minute=30, day_of_week=3)
        assert next_run_after(sched, now, UTC) == datetime(2024, 5, 8, 9, 30, tzinfo=UTC)

    def test_monthly_adds_one_month(self) -> None:
        now = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)
        sched = _schedule(frequency="monthly", hour=6, day_of_month=15)
        assert next_run_after(sched, now, UTC) == datetime(2024, 6, 15, 6, 0, tzinfo=UTC)

    def test_monthly_clamps_short_month(self) -> None:
        now = datetime(2024, 1, 31, 10, 0, tzinfo=timezone.utc)
        sched = _schedule(frequency="monthly", hour=6, day_of_month=31)
        assert next_run_after(sched, now, UTC) == datetime(2024, 2, 29, 6, 0, tzinfo=UTC)

    def test_monthly_december_rolls_year(self) -> None:
        now = datetime(2024, 12, 10, 10, 0, tzinfo=timezone.utc)
        sched = _schedule(frequency="monthly", hour=6, day_of_month=10)
        assert next_run_after(sched, now, UTC) == datetime(2025, 1, 10, 6, 0, tzinfo=UTC)

    def test_unknown_frequency_is_daily(self) -> None:
        now = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert next_run_after(_schedule(frequency="?"), now, UTC).day == 2

    def test_local_timezone(self) -> None:
        taipei = ZoneInfo("Asia/Taipei")
        now = datetime(2024, 5, 1, 20, 0, tzinfo=timezone.utc)  # 04:00 May 2 in Taipei
        nxt = next_run_after(_schedule(hour=9), now, taipei)
        assert nxt == datetime(2024, 5, 3, 9, 0, tzinfo=taipei)

    @pytest.mark.parametrize("frequency", ["daily", "weekly", "monthly", "bogus"])
    def test_strictly_after_now(self, frequency: str) -> None:
        now = datetime(2024, 5, 1, 23, 59, tzinfo=timezone.utc)
        sched = _schedule(frequency=frequency, hour=0, minute=0, day_of_week=1, day_of_month=1)
        assert next_run_after(sched, now, UTC) > now
