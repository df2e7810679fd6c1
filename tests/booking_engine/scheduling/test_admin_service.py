from datetime import date, datetime

import pytest
import pytz

from booking_engine.core.errors import Forbidden, InvalidRequest, NotFound, SlotOverlap, UnsupportedType
from booking_engine.models.availability_slot import AvailabilitySlot
from booking_engine.models.unavailable_period import UnavailablePeriod
from booking_engine.scheduling.admin_service import AdminAvailabilityService
from booking_engine.scheduling.admins import SqlAdminResolver
from booking_engine.scheduling.booking import Requester


@pytest.fixture
def service(db_session, settings):
    return AdminAvailabilityService(db_session, SqlAdminResolver(db_session), settings)


def slot_payload(**overrides) -> dict:
    payload = {
        'meeting_type': 'new_student_evaluation',
        'day_of_week': 1,
        'start_time': '09:00',
        'end_time': '12:00',
        'effective_from': date(2024, 1, 1),
    }
    payload.update(overrides)
    return payload


def test_create_slot_defaults_timezone_capacity_and_priority(service, make_admin) -> None:
    admin = make_admin(meeting_timezone='Africa/Cairo')

    slot = service.create_availability_slot(admin.id, slot_payload(label='Morning'))

    assert slot.id is not None
    assert slot.admin_id == admin.id
    assert slot.timezone == 'Africa/Cairo'
    assert slot.capacity == 1
    assert slot.priority == 1
    assert slot.is_active is True
    assert slot.label == 'Morning'
    assert slot.duration_minutes == 180


def test_create_slot_rejects_overlap_with_sibling(service, make_admin) -> None:
    admin = make_admin()
    service.create_availability_slot(admin.id, slot_payload())

    with pytest.raises(SlotOverlap):
        service.create_availability_slot(admin.id, slot_payload(start_time='11:00', end_time='13:00'))

    adjacent = service.create_availability_slot(admin.id, slot_payload(start_time='12:00', end_time='13:00'))
    other_day = service.create_availability_slot(admin.id, slot_payload(day_of_week=2))
    other_type = service.create_availability_slot(admin.id, slot_payload(meeting_type='teacher_sync'))

    _, slots = service.list_availability_slots(admin.id)
    assert len(slots) == 4
    assert {adjacent.id, other_day.id, other_type.id} <= {slot.id for slot in slots}


@pytest.mark.parametrize(
    'overrides',
    [
        {'day_of_week': 7},
        {'start_time': '9am'},
        {'start_time': '12:00', 'end_time': '09:00'},
        {'timezone': 'Nowhere/City'},
        {'capacity': 6},
        {'priority': 0},
        {'effective_from': date(2024, 6, 1), 'effective_to': date(2024, 5, 1)},
    ],
)
def test_create_slot_validates_fields(service, make_admin, db_session, overrides: dict) -> None:
    admin = make_admin()

    with pytest.raises(InvalidRequest):
        service.create_availability_slot(admin.id, slot_payload(**overrides))

    assert db_session.query(AvailabilitySlot).count() == 0


def test_create_slot_rejects_unknown_meeting_type(service, make_admin) -> None:
    admin = make_admin()

    with pytest.raises(UnsupportedType):
        service.create_availability_slot(admin.id, slot_payload(meeting_type='lunch'))


def test_update_slot_rechecks_overlap_and_rolls_back(service, make_admin, db_session) -> None:
    admin = make_admin()
    morning = service.create_availability_slot(admin.id, slot_payload())
    afternoon = service.create_availability_slot(admin.id, slot_payload(start_time='13:00', end_time='15:00'))

    with pytest.raises(SlotOverlap):
        service.update_availability_slot(admin.id, afternoon.id, {'start_time': '11:00'})

    db_session.refresh(afternoon)
    assert afternoon.start_time == '13:00'

    updated = service.update_availability_slot(admin.id, morning.id, {'end_time': '13:00', 'label': 'Long morning'})
    assert updated.end_time == '13:00'
    assert updated.label == 'Long morning'


def test_update_slot_requires_ownership(service, make_admin) -> None:
    owner = make_admin()
    other_admin = make_admin()
    slot = service.create_availability_slot(owner.id, slot_payload())

    with pytest.raises(NotFound):
        service.update_availability_slot(other_admin.id, slot.id, {'label': 'Mine now'})


def test_delete_slot_is_soft_and_blocks_reactivation_overlap(service, make_admin) -> None:
    admin = make_admin()
    slot = service.create_availability_slot(admin.id, slot_payload())

    assert service.delete_availability_slot(admin.id, slot.id) is True

    _, slots = service.list_availability_slots(admin.id)
    assert [(item.id, item.is_active) for item in slots] == [(slot.id, False)]
    _, active_slots = service.list_availability_slots(admin.id, include_inactive=False)
    assert active_slots == []

    service.create_availability_slot(admin.id, slot_payload(start_time='10:00', end_time='11:00'))
    with pytest.raises(SlotOverlap):
        service.update_availability_slot(admin.id, slot.id, {'is_active': True})


def test_create_time_off_from_local_date_and_clock_times(service, make_admin) -> None:
    admin = make_admin(meeting_timezone='Africa/Cairo')

    period = service.create_meeting_time_off(admin.id, {
        'date': '2024-05-06',
        'start_time': '10:00',
        'end_time': '12:00',
        'description': 'Dentist',
    })

    assert period.timezone == 'Africa/Cairo'
    assert period.start_date_time == datetime(2024, 5, 6, 7, 0)
    assert period.end_date_time == datetime(2024, 5, 6, 9, 0)
    assert period.is_active is True


def test_create_time_off_from_absolute_datetimes(service, make_admin) -> None:
    admin = make_admin()

    period = service.create_meeting_time_off(admin.id, {
        'start_date_time': datetime(2024, 5, 6, 10, 0, tzinfo=pytz.utc),
        'end_date_time': datetime(2024, 5, 6, 11, 0, tzinfo=pytz.utc),
    })

    assert period.start_date_time == datetime(2024, 5, 6, 10, 0)
    assert period.end_date_time == datetime(2024, 5, 6, 11, 0)


@pytest.mark.parametrize(
    'payload',
    [
        {},
        {'date': '2024-05-06', 'start_time': '12:00', 'end_time': '10:00'},
        {'date': 'not-a-date', 'start_time': '10:00', 'end_time': '12:00'},
        {'date': '2024-05-06', 'start_time': '10:00', 'end_time': '12:00', 'timezone': 'Bad/Zone'},
    ],
)
def test_create_time_off_rejects_invalid_payloads(service, make_admin, db_session, payload: dict) -> None:
    admin = make_admin()

    with pytest.raises(InvalidRequest):
        service.create_meeting_time_off(admin.id, payload)

    assert db_session.query(UnavailablePeriod).count() == 0


def test_list_and_delete_time_off(service, make_admin, make_time_off) -> None:
    admin = make_admin()
    period = make_time_off(
        admin,
        datetime(2024, 5, 6, 10, 0, tzinfo=pytz.utc),
        datetime(2024, 5, 6, 11, 0, tzinfo=pytz.utc),
    )
    range_start = datetime(2024, 5, 1, tzinfo=pytz.utc)
    range_end = datetime(2024, 5, 31, tzinfo=pytz.utc)

    _, periods = service.list_meeting_time_off(admin.id, range_start, range_end)
    assert [item.id for item in periods] == [period.id]

    service.delete_meeting_time_off(admin.id, period.id)

    _, periods = service.list_meeting_time_off(admin.id, range_start, range_end)
    assert periods == []
    _, all_periods = service.list_meeting_time_off(admin.id, range_start, range_end, include_inactive=True)
    assert [item.is_active for item in all_periods] == [False]

    with pytest.raises(NotFound):
        service.delete_meeting_time_off(admin.id, 999)


def test_list_meetings_is_scoped_by_role(service, make_admin, make_user, make_meeting) -> None:
    admin = make_admin()
    other_admin = make_admin()
    guardian = make_user('guardian')
    start = datetime(2024, 5, 6, 10, 0, tzinfo=pytz.utc)
    end = datetime(2024, 5, 6, 10, 30, tzinfo=pytz.utc)
    mine = make_meeting(admin, start, end, guardian_id=guardian.id)
    make_meeting(other_admin, start, end)

    admin_view = service.list_meetings(Requester.from_user(admin))
    guardian_view = service.list_meetings(Requester.from_user(guardian))

    assert [meeting.id for meeting in admin_view] == [mine.id]
    assert [meeting.id for meeting in guardian_view] == [mine.id]

    with pytest.raises(Forbidden):
        service.list_meetings(None)
    with pytest.raises(Forbidden):
        service.list_meetings(Requester(id=99, role='student'))


def test_list_meetings_applies_filters_and_caps_limit(service, make_admin, make_meeting, monkeypatch) -> None:
    admin = make_admin()
    first = make_meeting(admin, datetime(2024, 5, 6, 9, 0, tzinfo=pytz.utc), datetime(2024, 5, 6, 9, 30, tzinfo=pytz.utc))
    make_meeting(
        admin,
        datetime(2024, 5, 7, 9, 0, tzinfo=pytz.utc),
        datetime(2024, 5, 7, 9, 30, tzinfo=pytz.utc),
        status='cancelled',
    )

    captured = {}
    original_list_for = service.meetings.list_for

    def spy(**kwargs):
        captured.update(kwargs)
        return original_list_for(**kwargs)

    monkeypatch.setattr(service.meetings, 'list_for', spy)

    meetings = service.list_meetings(Requester.from_user(admin), {'status': 'scheduled', 'limit': 500})

    assert [meeting.id for meeting in meetings] == [first.id]
    assert captured['limit'] == 200


def test_service_without_resolver_falls_back_to_database_lookup(db_session, settings, make_admin, make_meeting) -> None:
    admin = make_admin()
    meeting = make_meeting(admin, datetime(2024, 5, 6, 9, 0, tzinfo=pytz.utc), datetime(2024, 5, 6, 9, 30, tzinfo=pytz.utc))

    service = AdminAvailabilityService(db_session, settings=settings)

    assert isinstance(service.admin_resolver, SqlAdminResolver)
    assert [item.id for item in service.list_meetings(Requester.from_user(admin))] == [meeting.id]
