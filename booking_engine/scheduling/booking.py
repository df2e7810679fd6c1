"""Booking commit: duration policy, monthly quota and the atomic insert."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_engine.core.config import EngineSettings
from booking_engine.core.constants import (
    FALLBACK_DURATION_MINUTES,
    FOLLOW_UP_MONTHLY_LIMIT,
    MAX_DURATION_MINUTES,
    MEETING_DEFAULT_DURATIONS,
    BookingSource,
    MeetingStatus,
    MeetingType,
    ensure_meeting_type,
)
from booking_engine.core.errors import (
    Forbidden,
    InvalidRequest,
    MeetingServiceError,
    PersistenceUnavailable,
    QuotaExceeded,
)
from booking_engine.core.timeutil import get_timezone, local_to_utc, to_storage, utc_to_local
from booking_engine.models.availability_slot import AvailabilitySlot
from booking_engine.models.meeting import Meeting, MeetingParticipant
from booking_engine.models.user import User
from booking_engine.scheduling.admins import AdminResolver, admin_meeting_timezone, get_buffer_minutes
from booking_engine.scheduling.locking import AdminBookingLock
from booking_engine.scheduling.repositories import MeetingRepository
from booking_engine.scheduling.validator import BookingValidator

logger = logging.getLogger(__name__)


@dataclass
class Requester:
    id: int
    role: str
    email: str | None = None
    full_name: str | None = None
    phone: str | None = None
    timezone: str | None = None

    @classmethod
    def from_user(cls, user: User) -> 'Requester':
        return cls(
            id=user.id,
            role=user.role,
            email=user.email,
            full_name=user.full_name,
            phone=user.phone,
            timezone=user.timezone,
        )


@dataclass
class ParticipantInput:
    student_name: str
    student_id: int | None = None
    is_existing_student: bool = False
    is_guardian_self: bool = False
    notes: str | None = None


@dataclass
class GuardianInput:
    guardian_id: int | None = None
    guardian_name: str | None = None
    guardian_email: str | None = None
    guardian_phone: str | None = None
    timezone: str | None = None
    student_id: int | None = None


@dataclass
class TeacherInput:
    teacher_id: int | None = None
    teacher_name: str | None = None


@dataclass
class BookingRequest:
    meeting_type: str
    requested_start: datetime | None
    timezone: str | None = None
    students: list[ParticipantInput] = field(default_factory=list)
    requester: Requester | None = None
    guardian: GuardianInput = field(default_factory=GuardianInput)
    teacher: TeacherInput = field(default_factory=TeacherInput)
    notes: str = ''
    admin_id: int | None = None


@dataclass
class BookingResult:
    meeting: Meeting
    covering_slot: AvailabilitySlot
    artifacts: Any = None


def compute_duration_minutes(meeting_type: str, students: list | None = None) -> int:
    ensure_meeting_type(meeting_type)
    if meeting_type == MeetingType.NEW_STUDENT_EVALUATION.value:
        count = max(len(students or []), 1)
        return count * MEETING_DEFAULT_DURATIONS[meeting_type]
    return MEETING_DEFAULT_DURATIONS.get(meeting_type) or FALLBACK_DURATION_MINUTES


def format_month_key(instant: datetime, timezone: str) -> str:
    """``YYYY-MM`` of ``instant`` as seen in ``timezone``."""
    return utc_to_local(instant, timezone).strftime('%Y-%m')


def booking_source_for(requester: Requester | None) -> str:
    if requester is None:
        return BookingSource.PUBLIC.value
    if requester.role == 'guardian':
        return BookingSource.GUARDIAN.value
    if requester.role == 'teacher':
        return BookingSource.TEACHER.value
    return BookingSource.ADMIN.value


class QuotaEnforcer:
    """One follow-up per student per guardian per calendar month."""

    def __init__(self, db: Session, limit: int = FOLLOW_UP_MONTHLY_LIMIT):
        self.meetings = MeetingRepository(db)
        self.limit = limit

    def enforce(self, guardian_id: int | None, student_id: int | None, meeting_type: str, month_key: str) -> None:
        if not guardian_id or not student_id:
            return
        existing = self.meetings.count_for_student_month(guardian_id, student_id, meeting_type, month_key)
        if existing >= self.limit:
            raise QuotaExceeded(student_id=student_id, month_key=month_key)


class BookingService:
    def __init__(
        self,
        db: Session,
        admin_resolver: AdminResolver,
        settings: EngineSettings | None = None,
        on_committed: Callable[[Meeting, User], Any] | None = None,
        lock: AdminBookingLock | None = None,
    ):
        self.db = db
        self.admin_resolver = admin_resolver
        self.settings = settings or EngineSettings.from_env()
        self.on_committed = on_committed
        self.lock = lock or AdminBookingLock()
        self.validator = BookingValidator(db, self.settings)
        self.quota = QuotaEnforcer(db)
        self.meetings = MeetingRepository(db)

    def book_meeting(self, request: BookingRequest) -> BookingResult:
        meeting_type = ensure_meeting_type(request.meeting_type)
        if request.requested_start is None:
            raise InvalidRequest('Start time is required.')

        admin = self.admin_resolver.resolve(request.admin_id, meeting_type)
        requester = request.requester
        admin_timezone = admin_meeting_timezone(admin, self.settings)
        booking_timezone = (
            request.timezone
            or request.guardian.timezone
            or (requester.timezone if requester else None)
            or admin_timezone
        )
        get_timezone(booking_timezone)

        start_utc = local_to_utc(request.requested_start.replace(second=0, microsecond=0), booking_timezone)
        duration_minutes = compute_duration_minutes(meeting_type, request.students)
        if duration_minutes > MAX_DURATION_MINUTES:
            raise InvalidRequest('Too many participants for a single meeting.', duration_minutes=duration_minutes)
        end_utc = start_utc + timedelta(minutes=duration_minutes)

        guardian_id = requester.id if requester and requester.role == 'guardian' else request.guardian.guardian_id
        teacher_id = requester.id if requester and requester.role == 'teacher' else request.teacher.teacher_id

        student_id = None
        if meeting_type == MeetingType.CURRENT_STUDENT_FOLLOW_UP.value:
            first_student = request.students[0].student_id if request.students else None
            student_id = first_student or request.guardian.student_id
            if not student_id:
                raise InvalidRequest('Student is required for follow-up meetings.')

        if meeting_type == MeetingType.TEACHER_SYNC.value and not teacher_id:
            raise Forbidden('Only teachers can book sync meetings.')

        month_key = format_month_key(start_utc, admin_timezone)
        buffer_minutes = get_buffer_minutes(admin, meeting_type, self.settings)

        try:
            with self.lock.hold(self.db, admin.id):
                covering_slot = self.validator.assert_available(admin, meeting_type, start_utc, end_utc)
                if meeting_type == MeetingType.CURRENT_STUDENT_FOLLOW_UP.value:
                    self.quota.enforce(guardian_id, student_id, meeting_type, month_key)

                meeting = self._build_meeting(
                    request,
                    admin=admin,
                    start_utc=start_utc,
                    end_utc=end_utc,
                    duration_minutes=duration_minutes,
                    booking_timezone=booking_timezone,
                    guardian_id=guardian_id,
                    teacher_id=teacher_id,
                    month_key=month_key,
                    buffer_minutes=buffer_minutes,
                    quota_student_id=student_id,
                )
                self.meetings.save(meeting)
                self.db.commit()
        except MeetingServiceError as exc:
            self.db.rollback()
            logger.info('Booking rejected for admin %s (%s): %s', admin.id, exc.code, exc.message)
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Booking commit failed for admin %s', admin.id)
            raise PersistenceUnavailable() from exc

        self.db.refresh(meeting)
        logger.info(
            'Booked %s meeting %s for admin %s at %s',
            meeting_type, meeting.id, admin.id, start_utc.isoformat(),
        )

        artifacts = None
        if self.on_committed:
            try:
                artifacts = self.on_committed(meeting, admin)
            except Exception:
                # The meeting is already committed; losing artifacts must not fail the booking.
                logger.exception('Post-commit hook failed for meeting %s', meeting.id)
        return BookingResult(meeting=meeting, covering_slot=covering_slot, artifacts=artifacts)

    def _build_meeting(
        self,
        request: BookingRequest,
        *,
        admin: User,
        start_utc: datetime,
        end_utc: datetime,
        duration_minutes: int,
        booking_timezone: str,
        guardian_id: int | None,
        teacher_id: int | None,
        month_key: str,
        buffer_minutes: int,
        quota_student_id: int | None = None,
    ) -> Meeting:
        requester = request.requester
        guardian = request.guardian
        is_evaluation = request.meeting_type == MeetingType.NEW_STUDENT_EVALUATION.value
        guardian_email = guardian.guardian_email or (requester.email if requester else None)

        meeting = Meeting(
            meeting_type=request.meeting_type,
            status=MeetingStatus.SCHEDULED.value,
            scheduled_start=to_storage(start_utc),
            scheduled_end=to_storage(end_utc),
            duration_minutes=duration_minutes,
            timezone=booking_timezone,
            admin_id=admin.id,
            guardian_id=guardian_id,
            teacher_id=teacher_id,
            booking_source=booking_source_for(requester),
            guardian_name=guardian.guardian_name or (requester.full_name if requester else None) or guardian.guardian_email,
            guardian_email=guardian_email.strip().lower() if guardian_email else None,
            guardian_phone=guardian.guardian_phone or (requester.phone if requester else None),
            teacher_name=request.teacher.teacher_name or (
                requester.full_name if requester and requester.role == 'teacher' else None
            ),
            notes=request.notes or None,
            month_key=month_key,
            guardian_month_key=f'{guardian_id}-{month_key}' if guardian_id else None,
            teacher_month_key=f'{teacher_id}-{month_key}' if teacher_id else None,
            buffer_before_minutes=buffer_minutes,
            buffer_after_minutes=buffer_minutes,
        )
        meeting.participants = [
            MeetingParticipant(
                student_id=student.student_id,
                student_name=student.student_name,
                is_existing_student=bool(student.is_existing_student or not is_evaluation),
                is_guardian_self=bool(student.is_guardian_self),
                notes=student.notes,
            )
            for student in request.students
        ]
        if quota_student_id and quota_student_id not in meeting.student_ids:
            meeting.participants.append(MeetingParticipant(
                student_id=quota_student_id,
                student_name=f"Student {quota_student_id}",
                is_existing_student=True,
            ))
        return meeting
