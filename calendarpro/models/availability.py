"""Availability model definitions."""

from sqlalchemy import Boolean, Column, Date, Integer, String, Time, UniqueConstraint
from calendarpro.database import Base


class UserAvailability(Base):
    """One available hour for a user on a date."""
    __tablename__ = "user_availability"
    __table_args__ = (UniqueConstraint("user_id", "date", "start_time", name="uq_user_availability_slot"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
