from datetime import datetime, timedelta

import pytest
import pytz

from booking_engine.core.errors import (
    BlockedByTimeOff,
    BlockedByVacation,
    Conflict,
    MeetingsDisabled,
    OutsideAvailability,
    UnsupportedType,
)
from booking_engine.scheduling.validator import BookingValidator


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 5, 6, hour, minute, tzinfo=pytz.utc)


@pytest.fixture
def validator(db_session, settings):
    return BookingValidator(db_session, settings)


@pytest.fixture
def buffered_admin(make_admin, make_slot, make_meeting):
    admin = make_admin(evaluation_buffer_minutes=10)
    make_slot(admin, start_time='09:00', end_time='17:00')
    meeting = make_meeting(admin, at(14), at(14, 30))
    return admin, meeting


def test_request_just_outside_buffer_is_accepted(validator, buffered_admin) -> None:
    admin, _ = buffered_admin

    slot = validator.assert_available(admin, 'new_student_evaluation', at(14, 40), at(15, 10))

    assert slot.admin_id == admin.id


def test_request_inside_buffer_conflicts_with_existing_meeting(validator, buffered_admin) -> None:
    admin, meeting = buffered_admin

    with pytest.raises(Conflict) as exception_info:
        validator.assert_available(admin, 'new_student_evaluation', at(14, 35), at(15, 5))

    assert exception_info.value.meta == {'conflict_id': meeting.id}
    assert exception_info.value.status_code == 409


def test_cancelled_meeting_does_not_conflict(validator, make_admin, make_slot, make_meeting) -> None:
    admin = make_admin()
    make_slot(admin, start_time='09:00', end_time='17:00')
    make_meeting(admin, at(10), at(10, 30), status='cancelled')

    validator.assert_available(admin, 'new_student_evaluation', at(10), at(10, 30))


def test_request_outside_every_slot_is_rejected(validator, make_admin, make_slot) -> None:
    admin = make_admin()
    make_slot(admin, start_time='09:00', end_time='12:00')

    with pytest.raises(OutsideAvailability):
        validator.assert_available(admin, 'new_student_evaluation', at(11, 45), at(12, 15))

    with pytest.raises(OutsideAvailability):
        validator.assert_available(
            admin, 'new_student_evaluation', at(9) + timedelta(days=1), at(9, 30) + timedelta(days=1),
        )


def test_slot_for_another_meeting_type_does_not_cover(validator, make_admin, make_slot) -> None:
    admin = make_admin()
    make_slot(admin, meeting_type='teacher_sync', start_time='09:00', end_time='12:00')

    with pytest.raises(OutsideAvailability):
        validator.assert_available(admin, 'new_student_evaluation', at(9), at(9, 30))


def test_vacation_blocks_request(validator, make_admin, make_slot, make_vacation) -> None:
    admin = make_admin()
    make_slot(admin, start_time='09:00', end_time='17:00')
    vacation = make_vacation(at(0), at(23, 59), name='Eid')

    with pytest.raises(BlockedByVacation) as exception_info:
        validator.assert_available(admin, 'new_student_evaluation', at(10), at(10, 30))

    assert exception_info.value.meta == {'vacation_id': vacation.id, 'name': 'Eid'}


def test_time_off_blocks_request(validator, make_admin, make_slot, make_time_off) -> None:
    admin = make_admin()
    make_slot(admin, start_time='09:00', end_time='17:00')
    period = make_time_off(admin, at(13), at(15))

    with pytest.raises(BlockedByTimeOff) as exception_info:
        validator.assert_available(admin, 'new_student_evaluation', at(14, 30), at(15))

    assert exception_info.value.meta == {'time_off_id': period.id}
    validator.assert_available(admin, 'new_student_evaluation', at(15), at(15, 30))


def test_another_admins_time_off_does_not_block(validator, make_admin, make_slot, make_time_off) -> None:
    admin = make_admin()
    other_admin = make_admin()
    make_slot(admin, start_time='09:00', end_time='17:00')
    make_time_off(other_admin, at(9), at(17))

    validator.assert_available(admin, 'new_student_evaluation', at(10), at(10, 30))


def test_disabled_admin_and_unknown_type_are_rejected(validator, make_admin, make_slot) -> None:
    admin = make_admin(meetings_enabled=False)
    make_slot(admin, start_time='09:00', end_time='17:00')

    with pytest.raises(MeetingsDisabled):
        validator.assert_available(admin, 'new_student_evaluation', at(10), at(10, 30))

    with pytest.raises(UnsupportedType):
        validator.assert_available(admin, 'lunch', at(10), at(10, 30))
