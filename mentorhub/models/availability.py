"""Availability model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, Time
from mentorhub.database import Base


class MentorAvailability(Base):
    """Represents a recurring weekly availability window (Sunday=0)."""
    __tablename__ = "mentor_availability"

    id = Column(Integer, primary_key=True)
    mentor_id = Column(Integer, ForeignKey("mentors.id"), nullable=False)
    day_of_week = Column(Integer)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
