from datetime import datetime
from typing import Any, Callable

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_engine.auth.dependencies import get_current_user, get_optional_requester
from booking_engine.core.config import EngineSettings
from booking_engine.core.constants import DEFAULT_MEETING_LIST_LIMIT, MAX_MEETING_LIST_LIMIT
from booking_engine.core.errors import MeetingServiceError
from booking_engine.core.timeutil import from_storage
from booking_engine.database import get_db
from booking_engine.models.meeting import Meeting
from booking_engine.models.user import User
from booking_engine.routes.common import (
    as_http_error,
    database_unavailable,
    get_admin_resolver,
    get_booking_hook,
    get_engine_settings,
)
from booking_engine.scheduling.admin_service import AdminAvailabilityService
from booking_engine.scheduling.admins import AdminResolver
from booking_engine.scheduling.booking import (
    BookingRequest,
    BookingService,
    GuardianInput,
    ParticipantInput,
    Requester,
    TeacherInput,
)

router = APIRouter(tags=['meetings'])

MAX_MEETING_NOTES_LENGTH = 2000
MAX_STUDENT_NAME_LENGTH = 120


class ParticipantPayload(BaseModel):
    student_name: str
    student_id: int | None = None
    is_existing_student: bool = False
    is_guardian_self: bool = False
    notes: str | None = None

    @field_validator('student_name')
    @classmethod
    def validate_student_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Student name is required.')
        if len(normalized) > MAX_STUDENT_NAME_LENGTH:
            raise ValueError(f'Student name must be {MAX_STUDENT_NAME_LENGTH} characters or fewer.')
        return normalized


class BookMeetingRequest(BaseModel):
    meeting_type: str
    start_time: datetime
    timezone: str | None = None
    admin_id: int | None = None
    students: list[ParticipantPayload] = []
    guardian_id: int | None = None
    guardian_name: str | None = None
    guardian_email: str | None = None
    guardian_phone: str | None = None
    student_id: int | None = None
    teacher_id: int | None = None
    teacher_name: str | None = None
    notes: str | None = None

    @field_validator('meeting_type')
    @classmethod
    def normalize_meeting_type(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('guardian_email')
    @classmethod
    def normalize_guardian_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        return normalized or None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_MEETING_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_MEETING_NOTES_LENGTH} characters or fewer.')

        return normalized

    def to_booking_request(self, requester: Requester | None) -> BookingRequest:
        return BookingRequest(
            meeting_type=self.meeting_type,
            requested_start=self.start_time,
            timezone=self.timezone,
            admin_id=self.admin_id,
            requester=requester,
            students=[ParticipantInput(**student.model_dump()) for student in self.students],
            guardian=GuardianInput(
                guardian_id=self.guardian_id,
                guardian_name=self.guardian_name,
                guardian_email=self.guardian_email,
                guardian_phone=self.guardian_phone,
                student_id=self.student_id,
            ),
            teacher=TeacherInput(teacher_id=self.teacher_id, teacher_name=self.teacher_name),
            notes=self.notes or '',
        )


class ParticipantResponse(BaseModel):
    id: int
    student_id: int | None = None
    student_name: str
    is_existing_student: bool
    is_guardian_self: bool
    notes: str | None = None

    class Config:
        from_attributes = True


class MeetingResponse(BaseModel):
    id: int
    meeting_type: str
    status: str
    scheduled_start: datetime
    scheduled_end: datetime
    duration_minutes: int
    timezone: str
    admin_id: int
    guardian_id: int | None = None
    teacher_id: int | None = None
    booking_source: str
    guardian_name: str | None = None
    guardian_email: str | None = None
    teacher_name: str | None = None
    notes: str | None = None
    month_key: str
    buffer_before_minutes: int
    buffer_after_minutes: int
    participants: list[ParticipantResponse] = []


class BookMeetingResponse(BaseModel):
    meeting: MeetingResponse
    covering_slot_id: int
    artifacts: Any = None


def meeting_to_response(meeting: Meeting) -> MeetingResponse:
    return MeetingResponse(
        id=meeting.id,
        meeting_type=meeting.meeting_type,
        status=meeting.status,
        scheduled_start=from_storage(meeting.scheduled_start),
        scheduled_end=from_storage(meeting.scheduled_end),
        duration_minutes=meeting.duration_minutes,
        timezone=meeting.timezone,
        admin_id=meeting.admin_id,
        guardian_id=meeting.guardian_id,
        teacher_id=meeting.teacher_id,
        booking_source=meeting.booking_source,
        guardian_name=meeting.guardian_name,
        guardian_email=meeting.guardian_email,
        teacher_name=meeting.teacher_name,
        notes=meeting.notes,
        month_key=meeting.month_key,
        buffer_before_minutes=meeting.buffer_before_minutes or 0,
        buffer_after_minutes=meeting.buffer_after_minutes or 0,
        participants=[ParticipantResponse.model_validate(participant) for participant in meeting.participants],
    )


@router.post('/book', response_model=BookMeetingResponse, status_code=status.HTTP_201_CREATED)
def book_meeting(
    data: BookMeetingRequest,
    requester: Requester | None = Depends(get_optional_requester),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    on_committed: Callable[[Meeting, User], Any] | None = Depends(get_booking_hook),
    db: Session = Depends(get_db),
):
    service = BookingService(db, resolver, settings, on_committed=on_committed)
    try:
        result = service.book_meeting(data.to_booking_request(requester))
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return BookMeetingResponse(
        meeting=meeting_to_response(result.meeting),
        covering_slot_id=result.covering_slot.id,
        artifacts=result.artifacts,
    )


@router.get('', response_model=list[MeetingResponse])
def list_meetings(
    meeting_type: str | None = Query(default=None),
    meeting_status: str | None = Query(default=None, alias='status'),
    range_start: datetime | None = Query(default=None),
    range_end: datetime | None = Query(default=None),
    limit: int = Query(default=DEFAULT_MEETING_LIST_LIMIT, ge=1, le=MAX_MEETING_LIST_LIMIT),
    user: User = Depends(get_current_user),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    service = AdminAvailabilityService(db, settings=settings)
    try:
        meetings = service.list_meetings(
            Requester.from_user(user),
            {
                'meeting_type': meeting_type.strip().lower() if meeting_type else None,
                'status': meeting_status,
                'range_start': range_start,
                'range_end': range_end,
                'limit': limit,
            },
        )
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return [meeting_to_response(meeting) for meeting in meetings]
