from enum import Enum

from booking_engine.core.errors import UnsupportedType


class MeetingType(str, Enum):
    NEW_STUDENT_EVALUATION = 'new_student_evaluation'
    CURRENT_STUDENT_FOLLOW_UP = 'current_student_follow_up'
    TEACHER_SYNC = 'teacher_sync'


class MeetingStatus(str, Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


class BookingSource(str, Enum):
    ADMIN = 'admin'
    GUARDIAN = 'guardian'
    TEACHER = 'teacher'
    PUBLIC = 'public'


MEETING_TYPES = tuple(meeting_type.value for meeting_type in MeetingType)

# Statuses that still occupy calendar time.
BLOCKING_STATUSES = (MeetingStatus.SCHEDULED.value, MeetingStatus.NO_SHOW.value)

MEETING_DEFAULT_DURATIONS = {
    MeetingType.NEW_STUDENT_EVALUATION.value: 30,
    MeetingType.CURRENT_STUDENT_FOLLOW_UP.value: 30,
    MeetingType.TEACHER_SYNC.value: 30,
}

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 240
FALLBACK_DURATION_MINUTES = 30

FOLLOW_UP_MONTHLY_LIMIT = 1

MIN_SLOT_CAPACITY = 1
MAX_SLOT_CAPACITY = 5
MIN_SLOT_PRIORITY = 1
MAX_SLOT_PRIORITY = 5

MAX_MEETING_LIST_LIMIT = 200
DEFAULT_MEETING_LIST_LIMIT = 50


def ensure_meeting_type(meeting_type: str | None) -> str:
    if meeting_type not in MEETING_TYPES:
        raise UnsupportedType(meeting_type=meeting_type)
    return meeting_type
