import logging
from typing import Any, Callable

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from booking_engine.core.config import EngineSettings
from booking_engine.core.errors import MeetingServiceError
from booking_engine.database import get_db
from booking_engine.models.meeting import Meeting
from booking_engine.models.user import User
from booking_engine.scheduling.admins import AdminResolver, SqlAdminResolver

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def get_engine_settings() -> EngineSettings:
    return EngineSettings.from_env()


def get_admin_resolver(db: Session = Depends(get_db)) -> AdminResolver:
    return SqlAdminResolver(db)


def get_booking_hook() -> Callable[[Meeting, User], Any] | None:
    """Collaborator producing notifications and calendar artifacts after a commit."""
    return None


def as_http_error(exc: MeetingServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def database_unavailable(db: Session | None = None) -> HTTPException:
    if db is not None:
        db.rollback()
    logger.exception('Database operation failed')
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE_DETAIL)
