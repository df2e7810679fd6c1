"""Turns recurring weekly slots into concrete UTC intervals.

Day-of-week and wall-clock comparisons are always made in the slot's own
timezone; a slot starting late in the evening in Asia/Tokyo lands on the
previous UTC calendar day.
"""

from datetime import date, datetime, time

import pytz

from booking_engine.core.timeutil import localize, utc_to_local
from booking_engine.models.availability_slot import AvailabilitySlot
from booking_engine.scheduling.intervals import Interval


def parse_clock(value: str | None) -> int:
    """``HH:MM`` as minutes since midnight."""
    if not value:
        return 0
    hour, minute = (int(part) for part in value.split(':'))
    return hour * 60 + minute


def clock_to_time(value: str) -> time:
    minutes = parse_clock(value)
    return time(minutes // 60, minutes % 60)


def js_day_of_week(value: date) -> int:
    """Day of week numbered from Sunday = 0."""
    return (value.weekday() + 1) % 7


def slot_timezone(slot: AvailabilitySlot, default_timezone: str) -> str:
    return slot.timezone or default_timezone


def is_effective_on(slot: AvailabilitySlot, local_date: date) -> bool:
    if slot.effective_from is not None and local_date < slot.effective_from:
        return False
    if slot.effective_to is not None and local_date > slot.effective_to:
        return False
    return True


def slot_applies_on(slot: AvailabilitySlot, local_date: date) -> bool:
    """Whether ``slot`` contributes a window on ``local_date`` (a date in the slot's timezone)."""
    return (
        bool(slot.is_active)
        and js_day_of_week(local_date) == slot.day_of_week
        and is_effective_on(slot, local_date)
    )


def materialize(slot: AvailabilitySlot, local_date: date, default_timezone: str) -> Interval:
    tz_name = slot_timezone(slot, default_timezone)
    start = localize(local_date, clock_to_time(slot.start_time), tz_name)
    end = localize(local_date, clock_to_time(slot.end_time), tz_name)
    return Interval(start.astimezone(pytz.utc), end.astimezone(pytz.utc))


def _minutes_of_day(value: datetime) -> int:
    return value.hour * 60 + value.minute


def covers(slot: AvailabilitySlot, start_utc: datetime, end_utc: datetime, default_timezone: str) -> bool:
    """Whether the requested interval sits inside ``slot`` on a single local day."""
    tz_name = slot_timezone(slot, default_timezone)
    local_start = utc_to_local(start_utc, tz_name)
    local_end = utc_to_local(end_utc, tz_name)

    if js_day_of_week(local_start.date()) != slot.day_of_week:
        return False
    if js_day_of_week(local_end.date()) != slot.day_of_week:
        return False
    if not slot.is_active or not is_effective_on(slot, local_start.date()):
        return False

    return (
        _minutes_of_day(local_start) >= parse_clock(slot.start_time)
        and _minutes_of_day(local_end) <= parse_clock(slot.end_time)
    )


def clock_ranges_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    return not (parse_clock(end_a) <= parse_clock(start_b) or parse_clock(start_a) >= parse_clock(end_b))
