"""Organization-wide vacation model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from booking_engine.database import Base


class SystemVacation(Base):
    """A blackout window that applies to every admin."""
    __tablename__ = "system_vacations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    message = Column(String)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    timezone = Column(String)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_system_vacation_range"),
    )
