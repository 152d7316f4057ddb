"""Mentor and session type model definitions."""

from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from mentorhub.database import Base


class Mentor(Base):
    """Represents a mentor profile attached to a user."""
    __tablename__ = "mentors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    title = Column(String)
    company = Column(String)
    bio = Column(String)
    expertise = Column(JSON, default=list)
    hourly_rate = Column(Float)
    rating = Column(Float)
    total_sessions = Column(Integer, default=0)
    is_available = Column(Boolean, default=True)

    user = relationship("User")


class SessionType(Base):
    """Represents a bookable kind of mentoring session."""
    __tablename__ = "session_types"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String)
    duration_minutes = Column(Integer, nullable=False)
    base_price = Column(Integer, default=0)
