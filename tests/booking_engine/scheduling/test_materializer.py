from datetime import date, datetime

import pytz

from booking_engine.models.availability_slot import AvailabilitySlot
from booking_engine.scheduling.materializer import (
    clock_ranges_overlap,
    covers,
    js_day_of_week,
    materialize,
    parse_clock,
    slot_applies_on,
)


def build_slot(**overrides) -> AvailabilitySlot:
    values = {
        'admin_id': 1,
        'meeting_type': 'new_student_evaluation',
        'day_of_week': 1,
        'start_time': '09:00',
        'end_time': '12:00',
        'timezone': 'UTC',
        'is_active': True,
    }
    values.update(overrides)
    return AvailabilitySlot(**values)


def test_parse_clock_returns_minutes_since_midnight() -> None:
    assert parse_clock('00:00') == 0
    assert parse_clock('09:30') == 570
    assert parse_clock('23:59') == 1439


def test_js_day_of_week_counts_from_sunday() -> None:
    assert js_day_of_week(date(2024, 5, 5)) == 0
    assert js_day_of_week(date(2024, 5, 6)) == 1
    assert js_day_of_week(date(2024, 5, 11)) == 6


def test_materialize_is_deterministic() -> None:
    slot = build_slot()

    first = materialize(slot, date(2024, 5, 6), 'UTC')
    second = materialize(slot, date(2024, 5, 6), 'UTC')

    assert first == second
    assert first.start == datetime(2024, 5, 6, 9, 0, tzinfo=pytz.utc)
    assert first.end == datetime(2024, 5, 6, 12, 0, tzinfo=pytz.utc)


def test_tokyo_morning_slot_lands_on_previous_utc_day() -> None:
    slot = build_slot(timezone='Asia/Tokyo', start_time='08:00', end_time='10:00')

    window = materialize(slot, date(2024, 5, 6), 'UTC')

    assert slot_applies_on(slot, date(2024, 5, 6))
    assert window.start == datetime(2024, 5, 5, 23, 0, tzinfo=pytz.utc)
    assert window.end == datetime(2024, 5, 6, 1, 0, tzinfo=pytz.utc)
    assert covers(slot, window.start, window.end, 'UTC')


def test_materialize_follows_daylight_saving_offset() -> None:
    slot = build_slot(timezone='America/New_York', day_of_week=0, start_time='09:00', end_time='10:00')

    before_switch = materialize(slot, date(2024, 3, 3), 'UTC')
    after_switch = materialize(slot, date(2024, 3, 10), 'UTC')

    assert before_switch.start == datetime(2024, 3, 3, 14, 0, tzinfo=pytz.utc)
    assert after_switch.start == datetime(2024, 3, 10, 13, 0, tzinfo=pytz.utc)
    assert after_switch.duration_minutes == 60


def test_slot_applies_on_honours_effective_dates_and_active_flag() -> None:
    slot = build_slot(effective_from=date(2024, 5, 1), effective_to=date(2024, 5, 31))

    assert slot_applies_on(slot, date(2024, 5, 6))
    assert not slot_applies_on(slot, date(2024, 6, 3))
    assert not slot_applies_on(slot, date(2024, 5, 7))

    slot.is_active = False
    assert not slot_applies_on(slot, date(2024, 5, 6))


def test_covers_rejects_requests_spilling_past_slot_end() -> None:
    slot = build_slot()

    assert covers(slot, datetime(2024, 5, 6, 11, 30, tzinfo=pytz.utc), datetime(2024, 5, 6, 12, 0, tzinfo=pytz.utc), 'UTC')
    assert not covers(slot, datetime(2024, 5, 6, 11, 45, tzinfo=pytz.utc), datetime(2024, 5, 6, 12, 15, tzinfo=pytz.utc), 'UTC')
    assert not covers(slot, datetime(2024, 5, 7, 9, 0, tzinfo=pytz.utc), datetime(2024, 5, 7, 9, 30, tzinfo=pytz.utc), 'UTC')


def test_clock_ranges_overlap_allows_adjacent_ranges() -> None:
    assert clock_ranges_overlap('09:00', '10:00', '09:30', '11:00')
    assert not clock_ranges_overlap('09:00', '10:00', '10:00', '11:00')
