"""Admin time-off model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from booking_engine.core.timeutil import storage_now
from booking_engine.database import Base


class UnavailablePeriod(Base):
    """A one-off window during which an admin takes no meetings."""
    __tablename__ = "meeting_unavailable_periods"

    id = Column(Integer, primary_key=True)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_date_time = Column(DateTime, nullable=False)
    end_date_time = Column(DateTime, nullable=False)
    timezone = Column(String)
    description = Column(String(500), default='')
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=storage_now)

    __table_args__ = (
        CheckConstraint("end_date_time > start_date_time", name="ck_time_off_range"),
    )
