"""Invitation lifecycle: Created -> Accepted | Expired.

Expiry is never written; an invitation is expired whenever ``now >=
expires_at``. Acceptance marks the token used and creates the membership in
a single transaction, guarded by a conditional update so that concurrent
redeemers of one token see exactly one success.
"""

import logging
import re
import secrets
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from calendarpro.core import config
from calendarpro.core.clock import utcnow
from calendarpro.core.errors import Forbidden, InvalidInvitation, StorageUnavailable, ValidationError
from calendarpro.core.roles import Role
from calendarpro.models.invitation import Invitation
from calendarpro.models.organization import Organization, OrganizationMember
from calendarpro.models.user import User
from calendarpro.services.access import is_organization_owner

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
TOKEN_BYTES = 32


class InvitationState(str, Enum):
    CREATED = 'created'
    ACCEPTED = 'accepted'
    EXPIRED = 'expired'


def normalize_email(value: str) -> str:
    normalized = (value or '').strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError('Invalid email format.')
    return normalized


def invitation_state(invitation: Invitation, now: datetime | None = None) -> InvitationState:
    now = now or utcnow()
    if invitation.used:
        return InvitationState.ACCEPTED
    if now >= invitation.expires_at:
        return InvitationState.EXPIRED
    return InvitationState.CREATED


def _storage_error(db: Session, exc: SQLAlchemyError, message: str) -> StorageUnavailable:
    db.rollback()
    logger.exception(message)
    return StorageUnavailable(message)


def is_member(db: Session, user_id: str, organization_id: str) -> bool:
    return db.query(OrganizationMember.id).filter(
        OrganizationMember.user_id == user_id,
        OrganizationMember.org_id == organization_id,
    ).first() is not None


def create_invitation(
    db: Session,
    email: str,
    organization_id: str,
    invited_by: str,
    now: datetime | None = None,
) -> Invitation:
    email = normalize_email(email)
    now = now or utcnow()

    try:
        organization = db.query(Organization).filter(Organization.id == organization_id).first()
        if organization is None:
            raise ValidationError('Organization not found.')
        if organization.created_by != invited_by:
            raise Forbidden('Only the organization owner can invite members.')

        existing_user = db.query(User.id).filter(User.email == email).first()
        if existing_user is not None and is_member(db, existing_user.id, organization_id):
            raise ValidationError('User is already a member of this organization.')

        invitation = Invitation(
            token=secrets.token_urlsafe(TOKEN_BYTES),
            email=email,
            organization_id=organization_id,
            invited_by=invited_by,
            expires_at=now + timedelta(days=config.INVITATION_EXPIRY_DAYS),
            used=False,
            created_at=now,
        )
        db.add(invitation)
        db.commit()
        db.refresh(invitation)
    except SQLAlchemyError as exc:
        raise _storage_error(db, exc, 'Failed to create invitation.') from exc

    logger.info('Created invitation for %s into organization %s', email, organization_id)
    return invitation


def find_valid_invitation(db: Session, token: str, now: datetime | None = None) -> Invitation:
    now = now or utcnow()
    token = (token or '').strip()
    if not token:
        raise InvalidInvitation('Invitation token is required.')

    try:
        invitation = db.query(Invitation).filter(Invitation.token == token).first()
    except SQLAlchemyError as exc:
        raise _storage_error(db, exc, 'Failed to look up invitation.') from exc

    if invitation is None or invitation_state(invitation, now) is not InvitationState.CREATED:
        raise InvalidInvitation()
    return invitation


def resend_invitation(
    db: Session,
    email: str,
    organization_id: str,
    acting_user_id: str,
    now: datetime | None = None,
) -> Invitation:
    """Return the pending invitation for re-delivery. Nothing is written."""
    email = normalize_email(email)
    now = now or utcnow()

    try:
        if not is_organization_owner(db, acting_user_id, organization_id):
            raise Forbidden('Only the organization owner can resend invitations.')

        invitation = db.query(Invitation).filter(
            Invitation.email == email,
            Invitation.organization_id == organization_id,
            Invitation.used.is_(False),
            Invitation.expires_at > now,
        ).order_by(Invitation.expires_at.desc()).first()
    except SQLAlchemyError as exc:
        raise _storage_error(db, exc, 'Failed to look up invitation.') from exc

    if invitation is None:
        raise InvalidInvitation()
    return invitation


def accept_invitation(db: Session, token: str, user_id: str, now: datetime | None = None) -> OrganizationMember:
    invitation = find_valid_invitation(db, token, now)
    now = now or utcnow()
    organization_id = invitation.organization_id

    try:
        if is_member(db, user_id, organization_id):
            raise ValidationError('You are already a member of this organization.')

        claimed = db.query(Invitation).filter(
            Invitation.id == invitation.id,
            Invitation.used.is_(False),
            Invitation.expires_at > now,
        ).update(
            {Invitation.used: True, Invitation.accepted_by: user_id, Invitation.accepted_at: now},
            synchronize_session=False,
        )
        if claimed != 1:
            db.rollback()
            raise InvalidInvitation('Invitation has already been used.')

        membership = OrganizationMember(org_id=organization_id, user_id=user_id, role=Role.MEMBER.value, created_at=now)
        db.add(membership)
        db.query(User).filter(User.id == user_id).update(
            {User.complete_role: True},
            synchronize_session=False,
        )
        db.commit()
        db.refresh(membership)
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError('You are already a member of this organization.') from exc
    except SQLAlchemyError as exc:
        raise _storage_error(db, exc, 'Failed to accept invitation.') from exc

    logger.info('User %s joined organization %s', user_id, organization_id)
    return membership
