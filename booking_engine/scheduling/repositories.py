"""Persistence access for slots, time off, vacations and meetings.

Query bounds are aware UTC datetimes; they are converted to the naive UTC
storage form here and nowhere else.
"""

from datetime import date, datetime

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from booking_engine.core.constants import BLOCKING_STATUSES, MeetingStatus
from booking_engine.core.timeutil import from_storage, to_storage
from booking_engine.models.availability_slot import AvailabilitySlot
from booking_engine.models.meeting import Meeting, MeetingParticipant
from booking_engine.models.system_vacation import SystemVacation
from booking_engine.models.unavailable_period import UnavailablePeriod
from booking_engine.models.user import User
from booking_engine.scheduling.intervals import Interval


class SlotRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_owned(self, admin_id: int, slot_id: int) -> AvailabilitySlot | None:
        return self.db.query(AvailabilitySlot).filter(
            AvailabilitySlot.id == slot_id,
            AvailabilitySlot.admin_id == admin_id,
        ).first()

    def find(
        self,
        admin_id: int,
        meeting_type: str | None = None,
        include_inactive: bool = True,
    ) -> list[AvailabilitySlot]:
        query = self.db.query(AvailabilitySlot).filter(AvailabilitySlot.admin_id == admin_id)
        if meeting_type:
            query = query.filter(AvailabilitySlot.meeting_type == meeting_type)
        if not include_inactive:
            query = query.filter(AvailabilitySlot.is_active.is_(True))
        return query.order_by(
            AvailabilitySlot.meeting_type.asc(),
            AvailabilitySlot.day_of_week.asc(),
            AvailabilitySlot.start_time.asc(),
        ).all()

    def find_active(
        self,
        admin_id: int,
        meeting_type: str,
        effective_between: tuple[date, date] | None = None,
    ) -> list[AvailabilitySlot]:
        query = self.db.query(AvailabilitySlot).filter(
            AvailabilitySlot.admin_id == admin_id,
            AvailabilitySlot.meeting_type == meeting_type,
            AvailabilitySlot.is_active.is_(True),
        )
        if effective_between is not None:
            first_day, last_day = effective_between
            query = query.filter(
                or_(AvailabilitySlot.effective_to.is_(None), AvailabilitySlot.effective_to >= first_day),
                or_(AvailabilitySlot.effective_from.is_(None), AvailabilitySlot.effective_from <= last_day),
            )
        return query.order_by(AvailabilitySlot.day_of_week.asc(), AvailabilitySlot.start_time.asc()).all()

    def find_siblings(
        self,
        admin_id: int,
        meeting_type: str,
        day_of_week: int,
        exclude_id: int | None = None,
    ) -> list[AvailabilitySlot]:
        query = self.db.query(AvailabilitySlot).filter(
            AvailabilitySlot.admin_id == admin_id,
            AvailabilitySlot.meeting_type == meeting_type,
            AvailabilitySlot.day_of_week == day_of_week,
            AvailabilitySlot.is_active.is_(True),
        )
        if exclude_id is not None:
            query = query.filter(AvailabilitySlot.id != exclude_id)
        return query.all()

    def latest_owner(self, meeting_type: str | None = None) -> User | None:
        query = self.db.query(User).join(AvailabilitySlot, AvailabilitySlot.admin_id == User.id).filter(
            AvailabilitySlot.is_active.is_(True),
            User.role == 'admin',
            User.is_active.is_(True),
        )
        if meeting_type:
            query = query.filter(AvailabilitySlot.meeting_type == meeting_type)
        return query.order_by(AvailabilitySlot.updated_at.desc(), AvailabilitySlot.id.desc()).first()

    def save(self, slot: AvailabilitySlot) -> AvailabilitySlot:
        self.db.add(slot)
        self.db.flush()
        return slot


class TimeOffRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_owned(self, admin_id: int, time_off_id: int) -> UnavailablePeriod | None:
        return self.db.query(UnavailablePeriod).filter(
            UnavailablePeriod.id == time_off_id,
            UnavailablePeriod.admin_id == admin_id,
        ).first()

    def _overlapping_query(self, admin_id: int, window: Interval, include_inactive: bool = False):
        query = self.db.query(UnavailablePeriod).filter(
            UnavailablePeriod.admin_id == admin_id,
            UnavailablePeriod.start_date_time < to_storage(window.end),
            UnavailablePeriod.end_date_time > to_storage(window.start),
        )
        if not include_inactive:
            query = query.filter(UnavailablePeriod.is_active.is_(True))
        return query

    def find_overlapping(self, admin_id: int, window: Interval, include_inactive: bool = False) -> list[UnavailablePeriod]:
        return self._overlapping_query(admin_id, window, include_inactive).order_by(
            UnavailablePeriod.start_date_time.asc(),
        ).all()

    def first_overlapping(self, admin_id: int, window: Interval) -> UnavailablePeriod | None:
        return self._overlapping_query(admin_id, window).first()

    def save(self, period: UnavailablePeriod) -> UnavailablePeriod:
        self.db.add(period)
        self.db.flush()
        return period

    @staticmethod
    def interval_of(period: UnavailablePeriod) -> Interval:
        return Interval(from_storage(period.start_date_time), from_storage(period.end_date_time))


class VacationRepository:
    def __init__(self, db: Session):
        self.db = db

    def _overlapping_query(self, window: Interval):
        return self.db.query(SystemVacation).filter(
            SystemVacation.is_active.is_(True),
            SystemVacation.start_date < to_storage(window.end),
            SystemVacation.end_date > to_storage(window.start),
        )

    def find_overlapping(self, window: Interval) -> list[SystemVacation]:
        return self._overlapping_query(window).order_by(SystemVacation.start_date.asc()).all()

    def first_overlapping(self, window: Interval) -> SystemVacation | None:
        return self._overlapping_query(window).first()

    @staticmethod
    def interval_of(vacation: SystemVacation) -> Interval:
        return Interval(from_storage(vacation.start_date), from_storage(vacation.end_date))


class MeetingRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_blocking(self, admin_id: int, meeting_type: str, window: Interval) -> list[Meeting]:
        return self.db.query(Meeting).filter(
            Meeting.admin_id == admin_id,
            Meeting.meeting_type == meeting_type,
            Meeting.status.in_(BLOCKING_STATUSES),
            Meeting.scheduled_start < to_storage(window.end),
            Meeting.scheduled_end > to_storage(window.start),
        ).order_by(Meeting.scheduled_start.asc()).all()

    def first_conflicting(self, admin_id: int, meeting_type: str, window: Interval) -> Meeting | None:
        return self.db.query(Meeting).filter(
            Meeting.admin_id == admin_id,
            Meeting.meeting_type == meeting_type,
            Meeting.status != MeetingStatus.CANCELLED.value,
            Meeting.scheduled_start < to_storage(window.end),
            Meeting.scheduled_end > to_storage(window.start),
        ).order_by(Meeting.scheduled_start.asc()).first()

    def count_for_student_month(
        self,
        guardian_id: int,
        student_id: int,
        meeting_type: str,
        month_key: str,
    ) -> int:
        return self.db.query(func.count(func.distinct(Meeting.id))).join(
            MeetingParticipant, MeetingParticipant.meeting_id == Meeting.id,
        ).filter(
            Meeting.guardian_id == guardian_id,
            Meeting.meeting_type == meeting_type,
            Meeting.status != MeetingStatus.CANCELLED.value,
            Meeting.month_key == month_key,
            MeetingParticipant.student_id == student_id,
        ).scalar() or 0

    def list_for(
        self,
        *,
        admin_id: int | None = None,
        guardian_id: int | None = None,
        guardian_email: str | None = None,
        teacher_id: int | None = None,
        meeting_type: str | None = None,
        status: str | None = None,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
        limit: int = 50,
    ) -> list[Meeting]:
        query = self.db.query(Meeting)
        if admin_id is not None:
            query = query.filter(Meeting.admin_id == admin_id)
        guardian_conditions = []
        if guardian_id is not None:
            guardian_conditions.append(Meeting.guardian_id == guardian_id)
        if guardian_email:
            guardian_conditions.append(Meeting.guardian_email == guardian_email.strip().lower())
        if guardian_conditions:
            query = query.filter(or_(*guardian_conditions))
        if teacher_id is not None:
            query = query.filter(Meeting.teacher_id == teacher_id)
        if meeting_type:
            query = query.filter(Meeting.meeting_type == meeting_type)
        if status:
            query = query.filter(Meeting.status == status)
        if range_start is not None:
            query = query.filter(Meeting.scheduled_start >= to_storage(range_start))
        if range_end is not None:
            query = query.filter(Meeting.scheduled_start <= to_storage(range_end))
        return query.order_by(Meeting.scheduled_start.asc()).limit(limit).all()

    def save(self, meeting: Meeting) -> Meeting:
        self.db.add(meeting)
        self.db.flush()
        return meeting

    @staticmethod
    def interval_of(meeting: Meeting) -> Interval:
        return Interval(from_storage(meeting.scheduled_start), from_storage(meeting.scheduled_end))
