"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from mentorhub.database import Base


class User(Base):
    """Represents an application user and their public profile."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String, default="user")  # user/mentor/admin
    full_name = Column(String)
    avatar_url = Column(String)
    created_at = Column(DateTime, server_default=func.now())
