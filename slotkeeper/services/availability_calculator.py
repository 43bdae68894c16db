"""
Next-available-day calculation.

Pure functions over plain value objects: no database access, no clock reads.
The service layer loads ORM rows, converts them with the ``from_*`` helpers and
passes ``now`` explicitly, so the result is a deterministic function of its
inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pytz

from ..core.constants import (
    DEFAULT_HORIZON_DAYS,
    LATE_BOOKING_CUTOFF_HOUR,
    MIN_SERVICE_DURATION_MINUTES,
)
from ..core.timezone_utils import get_business_timezone, js_day_of_week, local_date, to_business_time


def parse_hhmm(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""
    hours, _, minutes = value.partition(":")
    return int(hours) * 60 + int(minutes or 0)


@dataclass(frozen=True)
class TimeWindow:
    start_minute: int
    end_minute: int

    @property
    def minutes(self) -> int:
        return max(0, self.end_minute - self.start_minute)

    @classmethod
    def from_slot(cls, slot: Mapping[str, str]) -> "TimeWindow":
        return cls(parse_hhmm(slot["start"]), parse_hhmm(slot["end"]))


@dataclass(frozen=True)
class DaySchedule:
    """Open windows of one weekday (0 = Sunday)."""

    day_of_week: int
    is_open: bool
    windows: Tuple[TimeWindow, ...] = ()

    @property
    def capacity_minutes(self) -> int:
        if not self.is_open:
            return 0
        return sum(window.minutes for window in self.windows)

    @property
    def has_open_window(self) -> bool:
        return self.is_open and len(self.windows) > 0

    @classmethod
    def from_record(cls, day_of_week: int, is_open: bool, slots: Iterable[Mapping[str, str]]):
        return cls(
            day_of_week=day_of_week,
            is_open=bool(is_open),
            windows=tuple(TimeWindow.from_slot(slot) for slot in (slots or [])),
        )


@dataclass(frozen=True)
class BlackoutRange:
    start_at: datetime
    end_at: datetime
    is_all_day: bool = True

    def covers(self, day: date, tz: pytz.BaseTzInfo) -> bool:
        """All-day ranges close every local date from start to end, inclusive."""
        if not self.is_all_day:
            return False
        return local_date(self.start_at, tz) <= day <= local_date(self.end_at, tz)


@dataclass(frozen=True)
class BookedInterval:
    start_at: datetime
    end_at: datetime

    @property
    def minutes(self) -> int:
        return int((self.end_at - self.start_at).total_seconds() // 60)


def start_offset(now: datetime, tz: pytz.BaseTzInfo, cutoff_hour: int = LATE_BOOKING_CUTOFF_HOUR) -> int:
    """0 to start scanning today, 1 when it is too late in the day to book."""
    return 1 if to_business_time(now, tz).hour >= cutoff_hour else 0


def _booked_minutes_by_day(
    appointments: Iterable[BookedInterval], tz: pytz.BaseTzInfo
) -> Dict[date, int]:
    booked: Dict[date, int] = {}
    for appointment in appointments:
        day = local_date(appointment.start_at, tz)
        booked[day] = booked.get(day, 0) + appointment.minutes
    return booked


def compute_next_available(
    weekly: Sequence[DaySchedule],
    exceptions: Sequence[BlackoutRange],
    appointments: Sequence[BookedInterval],
    now: datetime,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    tz: Optional[pytz.BaseTzInfo] = None,
    cutoff_hour: int = LATE_BOOKING_CUTOFF_HOUR,
    min_duration_minutes: int = MIN_SERVICE_DURATION_MINUTES,
) -> Optional[date]:
    """
    Earliest local date with enough free minutes to book, or None.

    Day offsets are counted from today: scanning starts at today (or tomorrow
    after the cutoff hour) and stops before ``today + horizon_days``.

    The capacity check compares aggregate free minutes against the minimum
    duration; it does not look for a contiguous gap of that length.
    """
    zone = tz or get_business_timezone()
    schedule_by_day = {day.day_of_week: day for day in weekly}
    if not any(day.has_open_window for day in schedule_by_day.values()):
        return None

    today = local_date(now, zone)
    all_day_exceptions: List[BlackoutRange] = [e for e in exceptions if e.is_all_day]
    booked_by_day = _booked_minutes_by_day(appointments, zone)

    for offset in range(start_offset(now, zone, cutoff_hour), horizon_days):
        day = today + timedelta(days=offset)
        schedule = schedule_by_day.get(js_day_of_week(day))
        if schedule is None or not schedule.has_open_window:
            continue
        if any(blackout.covers(day, zone) for blackout in all_day_exceptions):
            continue
        free_minutes = schedule.capacity_minutes - booked_by_day.get(day, 0)
        if free_minutes >= min_duration_minutes:
            return day
    return None
