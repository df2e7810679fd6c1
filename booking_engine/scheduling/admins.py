"""Admin lookup and per-admin meeting settings."""

from typing import Protocol

from sqlalchemy.orm import Session

from booking_engine.core.config import EngineSettings
from booking_engine.core.constants import MeetingType
from booking_engine.core.errors import AdminNotFound
from booking_engine.models.user import User
from booking_engine.scheduling.repositories import SlotRepository

ADMIN_ROLE = 'admin'


class AdminResolver(Protocol):
    def resolve(self, admin_id: int | None = None, meeting_type: str | None = None) -> User:
        ...


class SqlAdminResolver:
    """Resolves the admin owning a request.

    An explicit id wins. Without one, the admin who most recently edited an
    active slot for the meeting type is used, then any active slot owner, then
    the oldest active admin accepting public evaluations, then the oldest
    active admin.
    """

    def __init__(self, db: Session):
        self.db = db
        self.slots = SlotRepository(db)

    def resolve(self, admin_id: int | None = None, meeting_type: str | None = None) -> User:
        if admin_id is not None:
            admin = self.db.get(User, admin_id)
            if admin is not None:
                return admin

        admin = None
        if meeting_type:
            admin = self.slots.latest_owner(meeting_type)
        if admin is None:
            admin = self.slots.latest_owner()
        if admin is None:
            admin = self._oldest_admin(public_only=True) or self._oldest_admin(public_only=False)
        if admin is None:
            raise AdminNotFound(admin_id=admin_id)
        return admin

    def _oldest_admin(self, public_only: bool) -> User | None:
        query = self.db.query(User).filter(User.role == ADMIN_ROLE, User.is_active.is_(True))
        if public_only:
            query = query.filter(User.allow_public_evaluations.is_not(False))
        return query.order_by(User.created_at.asc(), User.id.asc()).first()


class StaticAdminResolver:
    """Always resolves to the same admin; used where resolution must be deterministic."""

    def __init__(self, admin: User | None):
        self.admin = admin

    def resolve(self, admin_id: int | None = None, meeting_type: str | None = None) -> User:
        if self.admin is None:
            raise AdminNotFound(admin_id=admin_id)
        return self.admin


def is_meetings_enabled(admin: User) -> bool:
    return admin.meetings_enabled is not False


def admin_meeting_timezone(admin: User, settings: EngineSettings) -> str:
    return admin.meeting_timezone or admin.timezone or settings.default_timezone


def get_buffer_minutes(admin: User, meeting_type: str, settings: EngineSettings) -> int:
    fallback = admin.default_buffer_minutes
    if fallback is None:
        fallback = settings.default_buffer_minutes

    per_type = {
        MeetingType.NEW_STUDENT_EVALUATION.value: admin.evaluation_buffer_minutes,
        MeetingType.CURRENT_STUDENT_FOLLOW_UP.value: admin.guardian_buffer_minutes,
        MeetingType.TEACHER_SYNC.value: admin.teacher_buffer_minutes,
    }.get(meeting_type)
    return fallback if per_type is None else per_type
