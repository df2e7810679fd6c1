from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_engine.auth.dependencies import get_optional_requester, require_admin
from booking_engine.core.config import EngineSettings
from booking_engine.core.constants import MEETING_DEFAULT_DURATIONS, MEETING_TYPES
from booking_engine.core.errors import MeetingServiceError
from booking_engine.core.timeutil import from_storage
from booking_engine.database import get_db
from booking_engine.models.availability_slot import AvailabilitySlot
from booking_engine.models.unavailable_period import UnavailablePeriod
from booking_engine.models.user import User
from booking_engine.routes.common import as_http_error, database_unavailable, get_admin_resolver, get_engine_settings
from booking_engine.scheduling.admin_service import AdminAvailabilityService
from booking_engine.scheduling.admins import AdminResolver, admin_meeting_timezone
from booking_engine.scheduling.availability import AvailabilityComputer
from booking_engine.scheduling.booking import Requester

router = APIRouter(tags=['availability'])

MAX_SLOT_LABEL_LENGTH = 120
MAX_DESCRIPTION_LENGTH = 500


def _normalize_optional_text(value: str | None, max_length: int) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > max_length:
        raise ValueError(f'Must be {max_length} characters or fewer.')
    return normalized


class MeetingTypeOptionResponse(BaseModel):
    meeting_type: str
    duration_minutes: int


class AvailabilityWindowResponse(BaseModel):
    meeting_type: str
    timezone: str
    start_utc: datetime
    end_utc: datetime
    start_local: datetime
    end_local: datetime

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    admin_id: int
    meeting_type: str
    timezone: str
    windows: list[AvailabilityWindowResponse]


class CreateSlotRequest(BaseModel):
    meeting_type: str
    day_of_week: int
    start_time: str
    end_time: str
    timezone: str | None = None
    label: str | None = None
    description: str | None = None
    capacity: int | None = None
    priority: int | None = None
    effective_from: date | None = None
    effective_to: date | None = None

    @field_validator('meeting_type')
    @classmethod
    def normalize_meeting_type(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_clock(cls, value: str) -> str:
        return value.strip()

    @field_validator('label')
    @classmethod
    def validate_label(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_SLOT_LABEL_LENGTH)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_DESCRIPTION_LENGTH)


class UpdateSlotRequest(BaseModel):
    meeting_type: str | None = None
    day_of_week: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    timezone: str | None = None
    label: str | None = None
    description: str | None = None
    capacity: int | None = None
    priority: int | None = None
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool | None = None

    @field_validator('meeting_type')
    @classmethod
    def normalize_meeting_type(cls, value: str | None) -> str | None:
        return value.strip().lower() if value is not None else None


class SlotResponse(BaseModel):
    id: int
    admin_id: int
    meeting_type: str
    day_of_week: int
    start_time: str
    end_time: str
    timezone: str
    label: str | None = None
    description: str | None = None
    capacity: int
    priority: int
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool
    duration_minutes: int

    class Config:
        from_attributes = True


class CreateTimeOffRequest(BaseModel):
    start_date_time: datetime | None = None
    end_date_time: datetime | None = None
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    timezone: str | None = None
    description: str | None = None

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_DESCRIPTION_LENGTH)


class TimeOffResponse(BaseModel):
    id: int
    admin_id: int
    start_date_time: datetime
    end_date_time: datetime
    timezone: str
    description: str | None = None
    is_active: bool


def time_off_to_response(period: UnavailablePeriod) -> TimeOffResponse:
    return TimeOffResponse(
        id=period.id,
        admin_id=period.admin_id,
        start_date_time=from_storage(period.start_date_time),
        end_date_time=from_storage(period.end_date_time),
        timezone=period.timezone,
        description=period.description,
        is_active=bool(period.is_active),
    )


def slot_to_response(slot: AvailabilitySlot) -> SlotResponse:
    return SlotResponse.model_validate(slot)


@router.get('/types', response_model=list[MeetingTypeOptionResponse])
def list_meeting_types():
    return [
        MeetingTypeOptionResponse(meeting_type=meeting_type, duration_minutes=MEETING_DEFAULT_DURATIONS[meeting_type])
        for meeting_type in MEETING_TYPES
    ]


@router.get('/availability', response_model=AvailabilityResponse)
def list_availability_windows(
    meeting_type: str = Query(...),
    admin_id: int | None = Query(default=None),
    range_start: datetime | None = Query(default=None),
    range_end: datetime | None = Query(default=None),
    timezone: str | None = Query(default=None),
    minimum_duration_minutes: int | None = Query(default=None, ge=1),
    requester: Requester | None = Depends(get_optional_requester),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    normalized_type = meeting_type.strip().lower()
    viewer_timezone = timezone or (requester.timezone if requester else None)

    try:
        admin = resolver.resolve(admin_id, normalized_type)
        computer = AvailabilityComputer(db, settings)
        windows = computer.compute_windows(
            admin,
            normalized_type,
            range_start=range_start,
            range_end=range_end,
            viewer_timezone=viewer_timezone,
            minimum_duration_minutes=minimum_duration_minutes,
        )
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return AvailabilityResponse(
        admin_id=admin.id,
        meeting_type=normalized_type,
        timezone=viewer_timezone or admin_meeting_timezone(admin, settings),
        windows=[AvailabilityWindowResponse.model_validate(window) for window in windows],
    )


@router.get('/availability/slots', response_model=list[SlotResponse])
def list_availability_slots(
    meeting_type: str | None = Query(default=None),
    include_inactive: bool = Query(default=True),
    admin_id: int | None = Query(default=None),
    admin: User = Depends(require_admin),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    service = AdminAvailabilityService(db, resolver, settings)
    try:
        _, slots = service.list_availability_slots(
            admin_id or admin.id,
            meeting_type.strip().lower() if meeting_type else None,
            include_inactive=include_inactive,
        )
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return [slot_to_response(slot) for slot in slots]


@router.post('/availability/slots', response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_availability_slot(
    data: CreateSlotRequest,
    admin_id: int | None = Query(default=None),
    admin: User = Depends(require_admin),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    service = AdminAvailabilityService(db, resolver, settings)
    try:
        slot = service.create_availability_slot(admin_id or admin.id, data.model_dump())
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return slot_to_response(slot)


@router.put('/availability/slots/{slot_id}', response_model=SlotResponse)
def update_availability_slot(
    slot_id: int,
    data: UpdateSlotRequest,
    admin_id: int | None = Query(default=None),
    admin: User = Depends(require_admin),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    service = AdminAvailabilityService(db, resolver, settings)
    try:
        slot = service.update_availability_slot(admin_id or admin.id, slot_id, data.model_dump(exclude_unset=True))
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return slot_to_response(slot)


@router.delete('/availability/slots/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability_slot(
    slot_id: int,
    admin_id: int | None = Query(default=None),
    admin: User = Depends(require_admin),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    service = AdminAvailabilityService(db, resolver, settings)
    try:
        service.delete_availability_slot(admin_id or admin.id, slot_id)
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/availability/timeoff', response_model=list[TimeOffResponse])
def list_meeting_time_off(
    range_start: datetime | None = Query(default=None),
    range_end: datetime | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    admin_id: int | None = Query(default=None),
    admin: User = Depends(require_admin),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    service = AdminAvailabilityService(db, resolver, settings)
    try:
        _, periods = service.list_meeting_time_off(
            admin_id or admin.id,
            range_start,
            range_end,
            include_inactive=include_inactive,
        )
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return [time_off_to_response(period) for period in periods]


@router.post('/availability/timeoff', response_model=TimeOffResponse, status_code=status.HTTP_201_CREATED)
def create_meeting_time_off(
    data: CreateTimeOffRequest,
    admin_id: int | None = Query(default=None),
    admin: User = Depends(require_admin),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    service = AdminAvailabilityService(db, resolver, settings)
    try:
        period = service.create_meeting_time_off(admin_id or admin.id, data.model_dump())
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return time_off_to_response(period)


@router.delete('/availability/timeoff/{time_off_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_meeting_time_off(
    time_off_id: int,
    admin_id: int | None = Query(default=None),
    admin: User = Depends(require_admin),
    resolver: AdminResolver = Depends(get_admin_resolver),
    settings: EngineSettings = Depends(get_engine_settings),
    db: Session = Depends(get_db),
):
    service = AdminAvailabilityService(db, resolver, settings)
    try:
        service.delete_meeting_time_off(admin_id or admin.id, time_off_id)
    except MeetingServiceError as exc:
        raise as_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
