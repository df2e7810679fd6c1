"""Admin self-service: availability slots, time off, and meeting listings."""

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy.orm import Session

from booking_engine.core.config import EngineSettings
from booking_engine.core.constants import (
    DEFAULT_MEETING_LIST_LIMIT,
    MAX_MEETING_LIST_LIMIT,
    MAX_SLOT_CAPACITY,
    MAX_SLOT_PRIORITY,
    MIN_SLOT_CAPACITY,
    MIN_SLOT_PRIORITY,
    ensure_meeting_type,
)
from booking_engine.core.errors import Forbidden, InvalidRequest, MeetingServiceError, NotFound, SlotOverlap
from booking_engine.core.timeutil import is_valid_timezone, local_to_utc, to_storage
from booking_engine.models.availability_slot import CLOCK_PATTERN, AvailabilitySlot
from booking_engine.models.meeting import Meeting
from booking_engine.models.unavailable_period import UnavailablePeriod
from booking_engine.models.user import User
from booking_engine.scheduling.admins import AdminResolver, SqlAdminResolver, admin_meeting_timezone
from booking_engine.scheduling.availability import clamp_range
from booking_engine.scheduling.booking import Requester
from booking_engine.scheduling.materializer import clock_ranges_overlap, parse_clock
from booking_engine.scheduling.repositories import MeetingRepository, SlotRepository, TimeOffRepository

logger = logging.getLogger(__name__)

UPDATABLE_SLOT_FIELDS = (
    'meeting_type',
    'day_of_week',
    'start_time',
    'end_time',
    'timezone',
    'label',
    'description',
    'capacity',
    'priority',
    'effective_from',
    'effective_to',
    'is_active',
)


def _or_default(value, default):
    return default if value is None else value


def validate_slot_fields(slot: AvailabilitySlot) -> None:
    ensure_meeting_type(slot.meeting_type)
    if slot.day_of_week is None or not 0 <= slot.day_of_week <= 6:
        raise InvalidRequest('Day of week must be between 0 (Sunday) and 6 (Saturday).')
    for key in ('start_time', 'end_time'):
        value = getattr(slot, key)
        if not value or not CLOCK_PATTERN.match(value):
            raise InvalidRequest(f'{key} must be formatted as HH:MM.')
    if parse_clock(slot.end_time) <= parse_clock(slot.start_time):
        raise InvalidRequest('End time must be after start time.')
    if not is_valid_timezone(slot.timezone):
        raise InvalidRequest('Invalid timezone.', timezone=slot.timezone)
    if not MIN_SLOT_CAPACITY <= slot.capacity <= MAX_SLOT_CAPACITY:
        raise InvalidRequest(f'Capacity must be between {MIN_SLOT_CAPACITY} and {MAX_SLOT_CAPACITY}.')
    if not MIN_SLOT_PRIORITY <= slot.priority <= MAX_SLOT_PRIORITY:
        raise InvalidRequest(f'Priority must be between {MIN_SLOT_PRIORITY} and {MAX_SLOT_PRIORITY}.')
    if slot.effective_from and slot.effective_to and slot.effective_to < slot.effective_from:
        raise InvalidRequest('Effective end date must not precede the start date.')


class AdminAvailabilityService:
    def __init__(
        self,
        db: Session,
        admin_resolver: AdminResolver | None = None,
        settings: EngineSettings | None = None,
    ):
        self.db = db
        self.admin_resolver = admin_resolver or SqlAdminResolver(db)
        self.settings = settings or EngineSettings.from_env()
        self.slots = SlotRepository(db)
        self.time_off = TimeOffRepository(db)
        self.meetings = MeetingRepository(db)

    def _has_sibling_overlap(self, admin_id: int, slot: AvailabilitySlot, exclude_id: int | None = None) -> bool:
        siblings = self.slots.find_siblings(admin_id, slot.meeting_type, slot.day_of_week, exclude_id=exclude_id)
        return any(
            clock_ranges_overlap(sibling.start_time, sibling.end_time, slot.start_time, slot.end_time)
            for sibling in siblings
        )

    def list_availability_slots(
        self,
        admin_id: int | None,
        meeting_type: str | None = None,
        include_inactive: bool = True,
    ) -> tuple[User, list[AvailabilitySlot]]:
        admin = self.admin_resolver.resolve(admin_id)
        if meeting_type:
            ensure_meeting_type(meeting_type)
        return admin, self.slots.find(admin.id, meeting_type, include_inactive=include_inactive)

    def create_availability_slot(self, admin_id: int | None, payload: dict[str, Any]) -> AvailabilitySlot:
        admin = self.admin_resolver.resolve(admin_id)
        ensure_meeting_type(payload.get('meeting_type'))

        slot = AvailabilitySlot(
            admin_id=admin.id,
            meeting_type=payload['meeting_type'],
            day_of_week=payload.get('day_of_week'),
            start_time=payload.get('start_time'),
            end_time=payload.get('end_time'),
            timezone=payload.get('timezone') or admin_meeting_timezone(admin, self.settings),
            label=payload.get('label'),
            description=payload.get('description'),
            capacity=_or_default(payload.get('capacity'), 1),
            priority=_or_default(payload.get('priority'), 1),
            effective_from=payload.get('effective_from') or date.today(),
            effective_to=payload.get('effective_to'),
            is_active=True,
        )
        validate_slot_fields(slot)

        if self._has_sibling_overlap(admin.id, slot):
            raise SlotOverlap()

        self.slots.save(slot)
        self.db.commit()
        self.db.refresh(slot)
        logger.info('Created %s slot %s for admin %s', slot.meeting_type, slot.id, admin.id)
        return slot

    def update_availability_slot(self, admin_id: int | None, slot_id: int, updates: dict[str, Any]) -> AvailabilitySlot:
        admin = self.admin_resolver.resolve(admin_id)
        slot = self.slots.get_owned(admin.id, slot_id)
        if slot is None:
            raise NotFound('Slot not found.', slot_id=slot_id)

        if updates.get('meeting_type') is not None:
            ensure_meeting_type(updates['meeting_type'])

        try:
            with self.db.no_autoflush:
                for key in UPDATABLE_SLOT_FIELDS:
                    # effective_to=None reopens the slot; other fields ignore None
                    if key in updates and (updates[key] is not None or key == 'effective_to'):
                        setattr(slot, key, updates[key])

                validate_slot_fields(slot)

                schedule_changed = any(
                    key in updates for key in ('start_time', 'end_time', 'day_of_week', 'meeting_type')
                )
                reactivated = updates.get('is_active') is True
                if slot.is_active and (schedule_changed or reactivated):
                    if self._has_sibling_overlap(admin.id, slot, exclude_id=slot.id):
                        raise SlotOverlap('Updated slot overlaps existing availability.')
        except MeetingServiceError:
            self.db.rollback()
            raise

        self.db.commit()
        self.db.refresh(slot)
        return slot

    def delete_availability_slot(self, admin_id: int | None, slot_id: int) -> bool:
        admin = self.admin_resolver.resolve(admin_id)
        slot = self.slots.get_owned(admin.id, slot_id)
        if slot is None:
            raise NotFound('Slot not found.', slot_id=slot_id)
        slot.is_active = False
        self.db.commit()
        return True

    def list_meeting_time_off(
        self,
        admin_id: int | None,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
        include_inactive: bool = False,
    ) -> tuple[User, list[UnavailablePeriod]]:
        admin = self.admin_resolver.resolve(admin_id)
        scope = clamp_range(range_start, range_end, self.settings)
        return admin, self.time_off.find_overlapping(admin.id, scope, include_inactive=include_inactive)

    def create_meeting_time_off(self, admin_id: int | None, payload: dict[str, Any]) -> UnavailablePeriod:
        """Accepts absolute ``start_date_time``/``end_date_time`` or a local ``date`` with ``start_time``/``end_time``."""
        admin = self.admin_resolver.resolve(admin_id)
        timezone = payload.get('timezone') or admin_meeting_timezone(admin, self.settings)
        if not is_valid_timezone(timezone):
            raise InvalidRequest('Invalid timezone.', timezone=timezone)

        if payload.get('start_date_time') and payload.get('end_date_time'):
            start = local_to_utc(payload['start_date_time'], timezone)
            end = local_to_utc(payload['end_date_time'], timezone)
        elif payload.get('date') and payload.get('start_time') and payload.get('end_time'):
            try:
                start = local_to_utc(datetime.fromisoformat(f"{payload['date']}T{payload['start_time']}"), timezone)
                end = local_to_utc(datetime.fromisoformat(f"{payload['date']}T{payload['end_time']}"), timezone)
            except ValueError as exc:
                raise InvalidRequest('Invalid start date/time.') from exc
        else:
            raise InvalidRequest('Provide either start_date_time/end_date_time or date/start_time/end_time.')

        if end <= start:
            raise InvalidRequest('End must be after start.')

        period = UnavailablePeriod(
            admin_id=admin.id,
            start_date_time=to_storage(start),
            end_date_time=to_storage(end),
            timezone=timezone,
            description=payload.get('description') or '',
            is_active=True,
        )
        self.time_off.save(period)
        self.db.commit()
        self.db.refresh(period)
        logger.info('Created time off %s for admin %s', period.id, admin.id)
        return period

    def delete_meeting_time_off(self, admin_id: int | None, time_off_id: int) -> bool:
        admin = self.admin_resolver.resolve(admin_id)
        period = self.time_off.get_owned(admin.id, time_off_id)
        if period is None:
            raise NotFound('Time off not found.', time_off_id=time_off_id)
        period.is_active = False
        self.db.commit()
        return True

    def list_meetings(self, requester: Requester | None, filters: dict[str, Any] | None = None) -> list[Meeting]:
        if requester is None:
            raise Forbidden('Authentication required.')

        filters = filters or {}
        if filters.get('meeting_type'):
            ensure_meeting_type(filters['meeting_type'])
        limit = min(filters.get('limit') or DEFAULT_MEETING_LIST_LIMIT, MAX_MEETING_LIST_LIMIT)
        common = dict(
            meeting_type=filters.get('meeting_type'),
            status=filters.get('status'),
            range_start=filters.get('range_start'),
            range_end=filters.get('range_end'),
            limit=limit,
        )

        if requester.role == 'admin':
            return self.meetings.list_for(admin_id=requester.id, **common)
        if requester.role == 'guardian':
            return self.meetings.list_for(guardian_id=requester.id, guardian_email=requester.email, **common)
        if requester.role == 'teacher':
            return self.meetings.list_for(teacher_id=requester.id, **common)
        raise Forbidden('Role not permitted to view meetings.')
