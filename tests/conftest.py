import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from booking_engine.core.config import EngineSettings  # noqa: E402
from booking_engine.database import Base, init_db  # noqa: E402
from booking_engine.models.availability_slot import AvailabilitySlot  # noqa: E402
from booking_engine.models.meeting import Meeting, MeetingParticipant  # noqa: E402
from booking_engine.models.system_vacation import SystemVacation  # noqa: E402
from booking_engine.models.unavailable_period import UnavailablePeriod  # noqa: E402
from booking_engine.models.user import User  # noqa: E402


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(default_timezone='UTC', read_retry_delay_seconds=0)


@pytest.fixture
def db_session():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_user(db_session):
    counter = {'value': 0}

    def _make_user(role='guardian', **overrides):
        counter['value'] += 1
        values = {
            'email': f"{role}{counter['value']}@example.com",
            'full_name': f"{role.title()} {counter['value']}",
            'role': role,
            'is_active': True,
        }
        values.update(overrides)
        user = User(**values)
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_admin(make_user):
    def _make_admin(**overrides):
        values = {'meeting_timezone': 'UTC', 'default_buffer_minutes': 0}
        values.update(overrides)
        return make_user(role='admin', **values)

    return _make_admin


@pytest.fixture
def make_slot(db_session):
    def _make_slot(admin, meeting_type='new_student_evaluation', day_of_week=1, start_time='09:00',
                   end_time='17:00', timezone='UTC', **overrides):
        slot = AvailabilitySlot(
            admin_id=admin.id,
            meeting_type=meeting_type,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            timezone=timezone,
            capacity=1,
            priority=1,
            is_active=True,
            **overrides,
        )
        db_session.add(slot)
        db_session.commit()
        return slot

    return _make_slot


@pytest.fixture
def make_meeting(db_session):
    def _make_meeting(admin, start, end, meeting_type='new_student_evaluation', status='scheduled',
                      guardian_id=None, student_ids=(), month_key=None):
        meeting = Meeting(
            meeting_type=meeting_type,
            status=status,
            scheduled_start=start.replace(tzinfo=None),
            scheduled_end=end.replace(tzinfo=None),
            duration_minutes=int((end - start).total_seconds() // 60),
            timezone='UTC',
            admin_id=admin.id,
            guardian_id=guardian_id,
            booking_source='admin',
            month_key=month_key or start.strftime('%Y-%m'),
        )
        meeting.participants = [
            MeetingParticipant(student_id=student_id, student_name=f'Student {student_id}', is_existing_student=True)
            for student_id in student_ids
        ]
        db_session.add(meeting)
        db_session.commit()
        return meeting

    return _make_meeting


@pytest.fixture
def make_vacation(db_session):
    def _make_vacation(start, end, name='Spring Break', is_active=True):
        vacation = SystemVacation(
            name=name,
            start_date=start.replace(tzinfo=None),
            end_date=end.replace(tzinfo=None),
            timezone='UTC',
            is_active=is_active,
        )
        db_session.add(vacation)
        db_session.commit()
        return vacation

    return _make_vacation


@pytest.fixture
def make_time_off(db_session):
    def _make_time_off(admin, start, end, is_active=True):
        period = UnavailablePeriod(
            admin_id=admin.id,
            start_date_time=start.replace(tzinfo=None),
            end_date_time=end.replace(tzinfo=None),
            timezone='UTC',
            description='Out of office',
            is_active=is_active,
        )
        db_session.add(period)
        db_session.commit()
        return period

    return _make_time_off
