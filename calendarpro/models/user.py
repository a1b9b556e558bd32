"""User profile model definitions."""

from sqlalchemy import Boolean, Column, DateTime, String, Text
from calendarpro.core.clock import utcnow
from calendarpro.database import Base


class User(Base):
    """Profile row for an identity owned by the hosted auth provider."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    phone = Column(String)
    company = Column(String)
    bio = Column(Text)
    profile_complete = Column(Boolean, default=False, nullable=False)
    complete_role = Column(Boolean, default=False, nullable=False)  # created or joined an agency
    created_at = Column(DateTime, default=utcnow)
