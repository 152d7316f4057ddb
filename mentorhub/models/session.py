"""Mentor session model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from mentorhub.database import Base


class MentorSession(Base):
    """Represents a booked mentoring session."""
    __tablename__ = "mentor_sessions"

    id = Column(Integer, primary_key=True)
    mentor_id = Column(Integer, ForeignKey("mentors.id"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    session_type_id = Column(Integer, ForeignKey("session_types.id"))
    scheduled_at = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, default=60)
    price = Column(Integer, nullable=False)
    status = Column(String, default="pending")
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())

    session_type = relationship("SessionType")
    mentor = relationship("Mentor")
