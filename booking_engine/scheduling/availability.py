"""Free meeting windows for an admin over a date range."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from booking_engine.core.config import EngineSettings
from booking_engine.core.constants import MEETING_DEFAULT_DURATIONS, MIN_DURATION_MINUTES, ensure_meeting_type
from booking_engine.core.timeutil import as_utc, get_timezone, utc_to_local, utcnow
from booking_engine.models.user import User
from booking_engine.scheduling.admins import admin_meeting_timezone, get_buffer_minutes, is_meetings_enabled
from booking_engine.scheduling.intervals import (
    Interval,
    expand_by_buffer,
    filter_by_min_duration,
    overlapping,
    subtract,
)
from booking_engine.scheduling.materializer import materialize, slot_applies_on
from booking_engine.scheduling.repositories import (
    MeetingRepository,
    SlotRepository,
    TimeOffRepository,
    VacationRepository,
)
from booking_engine.scheduling.retry import run_with_read_retry


@dataclass(frozen=True)
class AvailabilityWindow:
    start_utc: datetime
    end_utc: datetime
    start_local: datetime
    end_local: datetime
    timezone: str
    meeting_type: str


def clamp_range(
    range_start: datetime | None,
    range_end: datetime | None,
    settings: EngineSettings,
    now: datetime | None = None,
) -> Interval:
    """Lookahead window: defaults to ``default_lookahead_days`` and never exceeds ``max_lookahead_days``."""
    start = as_utc(range_start) if range_start else (now or utcnow())
    max_end = start + timedelta(days=settings.max_lookahead_days)
    end = as_utc(range_end) if range_end else start + timedelta(days=settings.default_lookahead_days)
    return Interval(start, min(end, max_end))


def minimum_duration_for(meeting_type: str, requested_minutes: int | None = None) -> int:
    minutes = requested_minutes or MEETING_DEFAULT_DURATIONS.get(meeting_type) or MIN_DURATION_MINUTES
    return max(minutes, MIN_DURATION_MINUTES)


def candidate_dates(window: Interval) -> list[date]:
    """Calendar dates that can hold a slot overlapping ``window`` in any timezone."""
    first_day = window.start.date() - timedelta(days=1)
    last_day = window.end.date() + timedelta(days=1)
    return [first_day + timedelta(days=offset) for offset in range((last_day - first_day).days + 1)]


class AvailabilityComputer:
    def __init__(
        self,
        db: Session,
        settings: EngineSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings or EngineSettings.from_env()
        self.clock = clock
        self.slots = SlotRepository(db)
        self.meetings = MeetingRepository(db)
        self.vacations = VacationRepository(db)
        self.time_off = TimeOffRepository(db)

    def _read(self, operation, description: str):
        return run_with_read_retry(
            operation,
            session=self.db,
            attempts=self.settings.read_retry_attempts,
            delay_seconds=self.settings.read_retry_delay_seconds,
            description=description,
        )

    def compute_windows(
        self,
        admin: User,
        meeting_type: str,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
        viewer_timezone: str | None = None,
        minimum_duration_minutes: int | None = None,
    ) -> list[AvailabilityWindow]:
        ensure_meeting_type(meeting_type)
        if not is_meetings_enabled(admin):
            return []

        timezone = viewer_timezone or admin_meeting_timezone(admin, self.settings)
        get_timezone(timezone)

        scope = clamp_range(range_start, range_end, self.settings, now=self.clock())
        if scope.is_empty:
            return []

        min_duration = minimum_duration_for(meeting_type, minimum_duration_minutes)
        buffer_minutes = get_buffer_minutes(admin, meeting_type, self.settings)
        dates = candidate_dates(scope)

        slots = self._read(
            lambda: self.slots.find_active(admin.id, meeting_type, effective_between=(dates[0], dates[-1])),
            'loading availability slots',
        )
        if not slots:
            return []

        busy_meetings = [
            expand_by_buffer(MeetingRepository.interval_of(meeting), buffer_minutes, buffer_minutes)
            for meeting in self._read(
                lambda: self.meetings.find_blocking(
                    admin.id, meeting_type, expand_by_buffer(scope, buffer_minutes, buffer_minutes),
                ),
                'loading busy meetings',
            )
        ]
        vacations = [
            VacationRepository.interval_of(vacation)
            for vacation in self._read(lambda: self.vacations.find_overlapping(scope), 'loading system vacations')
        ]
        time_off = [
            TimeOffRepository.interval_of(period)
            for period in self._read(lambda: self.time_off.find_overlapping(admin.id, scope), 'loading time off')
        ]

        windows: list[AvailabilityWindow] = []
        for local_date in dates:
            for slot in slots:
                if not slot_applies_on(slot, local_date):
                    continue

                slot_window = materialize(slot, local_date, self.settings.default_timezone)
                if not slot_window.overlaps(scope):
                    continue
                slot_window = scope.clip(slot_window)

                busy = (
                    overlapping(busy_meetings, slot_window)
                    + overlapping(vacations, slot_window)
                    + overlapping(time_off, slot_window)
                )
                for segment in filter_by_min_duration(subtract(slot_window, busy), min_duration):
                    windows.append(AvailabilityWindow(
                        start_utc=segment.start,
                        end_utc=segment.end,
                        start_local=utc_to_local(segment.start, timezone),
                        end_local=utc_to_local(segment.end, timezone),
                        timezone=timezone,
                        meeting_type=meeting_type,
                    ))

        return sorted(windows, key=lambda window: (window.start_utc, window.end_utc))
