"""Invitation model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from calendarpro.core.clock import utcnow
from calendarpro.database import Base


class Invitation(Base):
    """Single-use token inviting an email address into an organization."""
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True)
    token = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, nullable=False)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    invited_by = Column(String)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    accepted_by = Column(String)
    accepted_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
