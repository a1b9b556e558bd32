import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendarpro.core.errors import Forbidden, StorageUnavailable, ValidationError
from calendarpro.core.roles import Role
from calendarpro.models.invitation import Invitation
from calendarpro.models.organization import Organization, OrganizationMember
from calendarpro.models.user import User
from calendarpro.services.access import is_organization_owner

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 120


def create_organization(
    db: Session,
    owner_id: str,
    name: str,
    description: str | None = None,
) -> tuple[Organization, OrganizationMember]:
    """Create an agency together with its owner membership in one transaction."""
    normalized_name = (name or '').strip()
    if not normalized_name:
        raise ValidationError('Agency name is required.')
    if len(normalized_name) > MAX_NAME_LENGTH:
        raise ValidationError(f'Agency name must be {MAX_NAME_LENGTH} characters or fewer.')

    try:
        organization = Organization(
            name=normalized_name,
            description=(description or '').strip() or None,
            created_by=owner_id,
        )
        db.add(organization)
        db.flush()

        membership = OrganizationMember(org_id=organization.id, user_id=owner_id, role=Role.OWNER.value)
        db.add(membership)
        db.query(User).filter(User.id == owner_id).update(
            {User.complete_role: True},
            synchronize_session=False,
        )
        db.commit()
        db.refresh(organization)
        db.refresh(membership)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Organization creation failed for user %s', owner_id)
        raise StorageUnavailable('Failed to create organization.') from exc

    logger.info('User %s created organization %s', owner_id, organization.id)
    return organization, membership


def leave_organization(db: Session, user_id: str, email: str, organization_id: str) -> None:
    try:
        membership = db.query(OrganizationMember).filter(
            OrganizationMember.user_id == user_id,
            OrganizationMember.org_id == organization_id,
        ).first()

        if membership is None:
            raise ValidationError('You are not a member of this organization.')
        if membership.role == Role.OWNER.value or is_organization_owner(db, user_id, organization_id):
            raise ValidationError('The owner cannot leave their own organization.')

        db.delete(membership)
        db.query(Invitation).filter(
            Invitation.organization_id == organization_id,
            (Invitation.email == email) | (Invitation.accepted_by == user_id),
        ).delete(synchronize_session=False)
        db.flush()

        remaining = db.query(OrganizationMember.id).filter(OrganizationMember.user_id == user_id).first()
        if remaining is None:
            db.query(User).filter(User.id == user_id).update(
                {User.complete_role: False},
                synchronize_session=False,
            )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Leaving organization %s failed for user %s', organization_id, user_id)
        raise StorageUnavailable('Failed to leave organization.') from exc

    logger.info('User %s left organization %s', user_id, organization_id)


def list_members(db: Session, acting_user_id: str, organization_id: str) -> list[tuple[OrganizationMember, User | None]]:
    try:
        if not is_organization_owner(db, acting_user_id, organization_id):
            raise Forbidden('Only the organization owner can view members.')

        return db.query(OrganizationMember, User).outerjoin(
            User, User.id == OrganizationMember.user_id
        ).filter(
            OrganizationMember.org_id == organization_id,
        ).order_by(OrganizationMember.created_at.asc(), OrganizationMember.id.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Member listing failed for organization %s', organization_id)
        raise StorageUnavailable('Failed to fetch organization members.') from exc


def get_organization(db: Session, organization_id: str) -> Organization | None:
    try:
        return db.query(Organization).filter(Organization.id == organization_id).first()
    except SQLAlchemyError as exc:
        logger.exception('Organization lookup failed for %s', organization_id)
        raise StorageUnavailable('Failed to fetch organization.') from exc
