"""
Timezone utilities for the booking subsystem.

All instants are stored and compared in UTC. Day boundaries, weekdays and the
late-booking cutoff are evaluated in the business timezone.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

import pytz

from .config import settings


def get_business_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    """
    Get the business timezone.

    Args:
        name: Optional IANA name overriding the configured one

    Returns:
        pytz timezone object
    """
    return pytz.timezone(name or settings.business_timezone)


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are assumed to be UTC."""
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def to_business_time(dt: datetime, tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    return ensure_utc(dt).astimezone(tz or get_business_timezone())


def local_date(dt: datetime, tz: Optional[pytz.BaseTzInfo] = None) -> date:
    """Calendar date of an instant in the business timezone."""
    return to_business_time(dt, tz).date()


def local_day_start_utc(day: date, tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """
    UTC instant of local midnight for a calendar day.

    Uses pytz localize so DST transitions resolve to the correct offset.
    """
    zone = tz or get_business_timezone()
    return zone.localize(datetime.combine(day, time.min)).astimezone(pytz.UTC)


def local_day_bounds_utc(
    day: date, tz: Optional[pytz.BaseTzInfo] = None
) -> Tuple[datetime, datetime]:
    """Half-open [start, end) UTC bounds of a local calendar day."""
    zone = tz or get_business_timezone()
    return local_day_start_utc(day, zone), local_day_start_utc(day + timedelta(days=1), zone)


def js_day_of_week(day: date) -> int:
    """Weekday number with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def format_local(dt: datetime, fmt: str, tz: Optional[pytz.BaseTzInfo] = None) -> str:
    return to_business_time(dt, tz).strftime(fmt)
