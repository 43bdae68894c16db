from datetime import date, datetime, timedelta

import pytz

from slotkeeper.core.timezone_utils import js_day_of_week, local_day_bounds_utc, local_day_start_utc
from slotkeeper.services.availability_calculator import (
    BlackoutRange,
    BookedInterval,
    DaySchedule,
    compute_next_available,
    parse_hhmm,
    start_offset,
)

PARIS = pytz.timezone("Europe/Paris")
WORKDAY = [{"start": "09:00", "end": "12:00"}, {"start": "14:00", "end": "18:00"}]

MONDAY = date(2026, 1, 5)


def paris(year, month, day, hour, minute=0):
    return PARIS.localize(datetime(year, month, day, hour, minute)).astimezone(pytz.UTC)


def week(open_days=(1, 2, 3, 4, 5), slots=WORKDAY):
    return [
        DaySchedule.from_record(day, day in open_days, slots if day in open_days else [])
        for day in range(7)
    ]


def compute(weekly, now, exceptions=(), appointments=(), **kwargs):
    return compute_next_available(weekly, list(exceptions), list(appointments), now, tz=PARIS, **kwargs)


def test_parse_hhmm():
    assert parse_hhmm("09:00") == 540
    assert parse_hhmm("18:30") == 1110
    assert parse_hhmm("7") == 420


def test_js_day_of_week_starts_on_sunday():
    assert js_day_of_week(date(2026, 1, 4)) == 0
    assert js_day_of_week(MONDAY) == 1
    assert js_day_of_week(date(2026, 1, 10)) == 6


def test_all_days_closed_returns_none():
    assert compute(week(open_days=()), paris(2026, 1, 5, 10)) is None


def test_open_days_without_windows_count_as_closed():
    weekly = [DaySchedule.from_record(day, True, []) for day in range(7)]
    assert compute(weekly, paris(2026, 1, 5, 10)) is None


def test_today_is_returned_when_open_before_cutoff():
    assert compute(week(), paris(2026, 1, 5, 10)) == MONDAY


def test_weekend_skips_to_next_open_weekday():
    assert compute(week(), paris(2026, 1, 10, 10)) == date(2026, 1, 12)


def test_sunday_is_day_zero():
    assert compute(week(open_days=(0,)), paris(2026, 1, 5, 10)) == date(2026, 1, 11)


def test_after_cutoff_starts_tomorrow():
    assert start_offset(paris(2026, 1, 5, 18, 30), PARIS) == 1
    assert start_offset(paris(2026, 1, 5, 17, 59), PARIS) == 0
    assert compute(week(), paris(2026, 1, 5, 18, 30)) == date(2026, 1, 6)


def test_cutoff_is_evaluated_in_business_time():
    # 17:30 UTC is 18:30 in Paris during winter
    now = datetime(2026, 1, 5, 17, 30, tzinfo=pytz.UTC)
    assert compute(week(), now) == date(2026, 1, 6)


def test_fully_booked_day_is_skipped():
    appointments = [
        BookedInterval(paris(2026, 1, 5, 9), paris(2026, 1, 5, 12)),
        BookedInterval(paris(2026, 1, 5, 14), paris(2026, 1, 5, 18)),
    ]
    assert compute(week(), paris(2026, 1, 5, 8), appointments=appointments) == date(2026, 1, 6)


def test_partial_capacity_needs_minimum_duration():
    weekly = week(open_days=(1,), slots=[{"start": "09:00", "end": "10:15"}])
    now = paris(2026, 1, 5, 7)

    hour_booked = [BookedInterval(paris(2026, 1, 5, 9), paris(2026, 1, 5, 10))]
    assert compute(weekly, now, appointments=hour_booked) == date(2026, 1, 12)

    forty_five_booked = [BookedInterval(paris(2026, 1, 5, 9), paris(2026, 1, 5, 9, 45))]
    assert compute(weekly, now, appointments=forty_five_booked) == MONDAY


def test_all_day_exception_closes_each_covered_day():
    blackout = BlackoutRange(paris(2026, 1, 5, 0), paris(2026, 1, 6, 23, 59), is_all_day=True)
    assert compute(week(), paris(2026, 1, 5, 10), exceptions=[blackout]) == date(2026, 1, 7)


def test_partial_day_exception_is_ignored():
    blackout = BlackoutRange(paris(2026, 1, 5, 9), paris(2026, 1, 5, 12), is_all_day=False)
    assert compute(week(), paris(2026, 1, 5, 8), exceptions=[blackout]) == MONDAY


def test_horizon_bounds_the_scan():
    now = paris(2026, 1, 5, 10)
    sunday_only = week(open_days=(0,))
    # Sunday is offset 6 from Monday
    assert compute(sunday_only, now, horizon_days=6) is None
    assert compute(sunday_only, now, horizon_days=7) == date(2026, 1, 11)


def test_same_inputs_give_same_result():
    now = paris(2026, 1, 7, 19)
    appointments = [BookedInterval(paris(2026, 1, 8, 9), paris(2026, 1, 8, 18))]
    first = compute(week(), now, appointments=appointments)
    assert first == compute(week(), now, appointments=appointments)
    assert first == date(2026, 1, 9)


def test_result_never_precedes_today():
    now = paris(2026, 1, 5, 10)
    result = compute(week(), now)
    assert result >= MONDAY
    assert result < MONDAY + timedelta(days=60)


def test_local_midnight_across_dst_change():
    # Clocks go forward in Paris on 2026-03-29
    assert local_day_start_utc(date(2026, 3, 29), PARIS) == datetime(2026, 3, 28, 23, 0, tzinfo=pytz.UTC)
    assert local_day_start_utc(date(2026, 3, 30), PARIS) == datetime(2026, 3, 29, 22, 0, tzinfo=pytz.UTC)
    start, end = local_day_bounds_utc(date(2026, 3, 29), PARIS)
    assert end - start == timedelta(hours=23)
