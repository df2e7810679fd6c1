"""Meeting model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from booking_engine.core.constants import MeetingStatus
from booking_engine.core.timeutil import storage_now
from booking_engine.database import Base


class Meeting(Base):
    """A committed booking."""
    __tablename__ = "meetings"

    id = Column(Integer, primary_key=True)
    meeting_type = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default=MeetingStatus.SCHEDULED.value, index=True)
    scheduled_start = Column(DateTime, nullable=False, index=True)
    scheduled_end = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    timezone = Column(String)

    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    guardian_id = Column(Integer, ForeignKey("users.id"))
    teacher_id = Column(Integer, ForeignKey("users.id"))
    booking_source = Column(String, nullable=False)

    guardian_name = Column(String)
    guardian_email = Column(String)
    guardian_phone = Column(String)
    teacher_name = Column(String)
    notes = Column(String(2000))

    month_key = Column(String(7), index=True)
    guardian_month_key = Column(String)
    teacher_month_key = Column(String)

    buffer_before_minutes = Column(Integer, nullable=False, default=5)
    buffer_after_minutes = Column(Integer, nullable=False, default=5)

    created_at = Column(DateTime, nullable=False, default=storage_now)

    participants = relationship(
        "MeetingParticipant",
        back_populates="meeting",
        cascade="all, delete-orphan",
        order_by="MeetingParticipant.id",
    )

    __table_args__ = (
        CheckConstraint("scheduled_end > scheduled_start", name="ck_meeting_range"),
        CheckConstraint("duration_minutes >= 15 AND duration_minutes <= 240", name="ck_meeting_duration"),
    )

    @property
    def student_ids(self) -> list[int]:
        return [participant.student_id for participant in self.participants if participant.student_id is not None]


class MeetingParticipant(Base):
    """A student attending a meeting."""
    __tablename__ = "meeting_participants"

    id = Column(Integer, primary_key=True)
    meeting_id = Column(Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, index=True)
    student_name = Column(String(120), nullable=False)
    is_existing_student = Column(Boolean, nullable=False, default=False)
    is_guardian_self = Column(Boolean, nullable=False, default=False)
    notes = Column(String(500))

    meeting = relationship("Meeting", back_populates="participants")
