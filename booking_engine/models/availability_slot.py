"""Recurring weekly availability slot definitions."""

import re

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String

from booking_engine.core.timeutil import storage_now
from booking_engine.database import Base

CLOCK_PATTERN = re.compile(r'^([0-1]?\d|2[0-3]):[0-5]\d$')


class AvailabilitySlot(Base):
    """An admin's recurring weekly window for one meeting type."""
    __tablename__ = "meeting_availability_slots"

    id = Column(Integer, primary_key=True)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    meeting_type = Column(String, nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    timezone = Column(String, nullable=False)
    label = Column(String(120))
    description = Column(String(500))
    capacity = Column(Integer, nullable=False, default=1)
    priority = Column(Integer, nullable=False, default=1)
    effective_from = Column(Date)
    effective_to = Column(Date)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=storage_now)
    updated_at = Column(DateTime, nullable=False, default=storage_now, onupdate=storage_now)

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_slot_day_of_week"),
        CheckConstraint("capacity >= 1 AND capacity <= 5", name="ck_slot_capacity"),
        CheckConstraint("priority >= 1 AND priority <= 5", name="ck_slot_priority"),
    )

    @property
    def duration_minutes(self) -> int:
        start_hour, start_minute = (int(part) for part in self.start_time.split(':'))
        end_hour, end_minute = (int(part) for part in self.end_time.split(':'))
        return (end_hour * 60 + end_minute) - (start_hour * 60 + start_minute)
