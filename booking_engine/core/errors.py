"""Typed failures raised by the scheduling engine.

Every failure carries a stable ``code`` and an HTTP ``status_code`` so the
calling layer can render a specific message without parsing strings.
"""

from typing import Any


class MeetingServiceError(Exception):
    code = "meeting_service_error"
    status_code = 500
    default_message = "Meeting service error."

    def __init__(self, message: str | None = None, **meta: Any) -> None:
        self.message = message or self.default_message
        self.meta = {key: value for key, value in meta.items() if value is not None}
        super().__init__(self.message)

    def to_detail(self) -> dict:
        detail = {"code": self.code, "message": self.message}
        if self.meta:
            detail["meta"] = self.meta
        return detail


class UnsupportedType(MeetingServiceError):
    code = "unsupported_type"
    status_code = 400
    default_message = "Unsupported meeting type."


class OutsideAvailability(MeetingServiceError):
    code = "outside_availability"
    status_code = 400
    default_message = "Requested time is outside admin availability."


class Conflict(MeetingServiceError):
    code = "conflict"
    status_code = 409
    default_message = "Requested time overlaps another meeting."


class BlockedByVacation(MeetingServiceError):
    code = "blocked_by_vacation"
    status_code = 400
    default_message = "Requested time is blocked due to a public vacation."


class BlockedByTimeOff(MeetingServiceError):
    code = "blocked_by_time_off"
    status_code = 400
    default_message = "Requested time is blocked (admin time off)."


class QuotaExceeded(MeetingServiceError):
    code = "quota_exceeded"
    status_code = 400
    default_message = "Monthly follow-up limit reached for this student."


class AdminNotFound(MeetingServiceError):
    code = "admin_not_found"
    status_code = 404
    default_message = "Admin account not found."


class MeetingsDisabled(MeetingServiceError):
    code = "meetings_disabled"
    status_code = 400
    default_message = "Admin is not accepting meetings right now."


class InvalidRequest(MeetingServiceError):
    code = "invalid_request"
    status_code = 400
    default_message = "Invalid request."


class Forbidden(MeetingServiceError):
    code = "forbidden"
    status_code = 403
    default_message = "Not permitted."


class NotFound(MeetingServiceError):
    code = "not_found"
    status_code = 404
    default_message = "Record not found."


class SlotOverlap(MeetingServiceError):
    code = "slot_overlap"
    status_code = 400
    default_message = "Slot overlaps existing availability."


class PersistenceUnavailable(MeetingServiceError):
    code = "persistence_unavailable"
    status_code = 503
    default_message = "Database unavailable. Verify DATABASE_URL and database credentials."
