from datetime import datetime

from sqlalchemy.orm import Session

from booking_engine.core.config import EngineSettings
from booking_engine.core.constants import ensure_meeting_type
from booking_engine.core.errors import (
    BlockedByTimeOff,
    BlockedByVacation,
    Conflict,
    MeetingsDisabled,
    OutsideAvailability,
)
from booking_engine.core.timeutil import as_utc
from booking_engine.models.availability_slot import AvailabilitySlot
from booking_engine.models.user import User
from booking_engine.scheduling.admins import admin_meeting_timezone, get_buffer_minutes, is_meetings_enabled
from booking_engine.scheduling.intervals import Interval, expand_by_buffer
from booking_engine.scheduling.materializer import covers
from booking_engine.scheduling.repositories import (
    MeetingRepository,
    SlotRepository,
    TimeOffRepository,
    VacationRepository,
)


class BookingValidator:
    """Checks a requested interval against slots, meetings, vacations and time off.

    Checks run in order and stop at the first failure: slot coverage, meeting
    conflict (request widened by the type's buffer), system vacation, admin
    time off.
    """

    def __init__(self, db: Session, settings: EngineSettings | None = None):
        self.settings = settings or EngineSettings.from_env()
        self.slots = SlotRepository(db)
        self.meetings = MeetingRepository(db)
        self.vacations = VacationRepository(db)
        self.time_off = TimeOffRepository(db)

    def assert_available(
        self,
        admin: User,
        meeting_type: str,
        start_utc: datetime,
        end_utc: datetime,
    ) -> AvailabilitySlot:
        ensure_meeting_type(meeting_type)
        if not is_meetings_enabled(admin):
            raise MeetingsDisabled(admin_id=admin.id)

        requested = Interval(as_utc(start_utc), as_utc(end_utc))
        fallback_timezone = admin_meeting_timezone(admin, self.settings)

        covering_slot = next(
            (
                slot for slot in self.slots.find_active(admin.id, meeting_type)
                if covers(slot, requested.start, requested.end, fallback_timezone)
            ),
            None,
        )
        if covering_slot is None:
            raise OutsideAvailability(meeting_type=meeting_type)

        buffer_minutes = get_buffer_minutes(admin, meeting_type, self.settings)
        blocking_meeting = self.meetings.first_conflicting(
            admin.id,
            meeting_type,
            expand_by_buffer(requested, buffer_minutes, buffer_minutes),
        )
        if blocking_meeting is not None:
            raise Conflict(conflict_id=blocking_meeting.id)

        vacation = self.vacations.first_overlapping(requested)
        if vacation is not None:
            raise BlockedByVacation(vacation_id=vacation.id, name=vacation.name)

        time_off = self.time_off.first_overlapping(admin.id, requested)
        if time_off is not None:
            raise BlockedByTimeOff(time_off_id=time_off.id)

        return covering_slot
