"""User model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from booking_engine.core.timeutil import storage_now
from booking_engine.database import Base


class User(Base):
    """Represents an application user; admins also carry their meeting settings."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    phone = Column(String)
    role = Column(String, nullable=False)  # admin/guardian/teacher
    is_active = Column(Boolean, nullable=False, default=True)
    timezone = Column(String)

    meetings_enabled = Column(Boolean, nullable=False, default=True)
    meeting_timezone = Column(String)
    default_buffer_minutes = Column(Integer)
    evaluation_buffer_minutes = Column(Integer)
    guardian_buffer_minutes = Column(Integer)
    teacher_buffer_minutes = Column(Integer)
    allow_public_evaluations = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=storage_now)
