"""Organization and membership model definitions."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from calendarpro.core.clock import utcnow
from calendarpro.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Organization(Base):
    """An agency. The creator is its only owner."""
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    description = Column(Text)
    created_by = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)


class OrganizationMember(Base):
    """Relates a user to an organization as owner or member."""
    __tablename__ = "organization_members"
    __table_args__ = (UniqueConstraint("user_id", "org_id", name="uq_organization_members_user_org"),)

    id = Column(Integer, primary_key=True)
    org_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)  # owner/member
    created_at = Column(DateTime, default=utcnow)
