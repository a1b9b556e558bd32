import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendarpro.core.errors import StorageUnavailable
from calendarpro.core.roles import Role, resolve_role, strongest_membership_role
from calendarpro.models.organization import Organization, OrganizationMember

logger = logging.getLogger(__name__)


def owns_any_organization(db: Session, user_id: str) -> bool:
    return db.query(Organization.id).filter(Organization.created_by == user_id).first() is not None


def membership_roles(db: Session, user_id: str) -> list[str]:
    rows = db.query(OrganizationMember.role).filter(OrganizationMember.user_id == user_id).all()
    return [role for (role,) in rows]


def resolve_user_role(db: Session, user_id: str) -> Role:
    """Derive the user's role from current storage. Never cached between calls."""
    try:
        owns_organization = owns_any_organization(db, user_id)
        membership_role = strongest_membership_role(membership_roles(db, user_id))
    except SQLAlchemyError as exc:
        logger.exception('Role lookup failed for user %s', user_id)
        raise StorageUnavailable('Failed to resolve user role.') from exc

    return resolve_role(owns_organization, membership_role)


def is_organization_owner(db: Session, user_id: str, organization_id: str) -> bool:
    return db.query(Organization.id).filter(
        Organization.id == organization_id,
        Organization.created_by == user_id,
    ).first() is not None


def can_view_availability(db: Session, acting_user_id: str, target_user_id: str) -> bool:
    """True when acting user is the target or owns an organization the target belongs to.

    Storage errors deny access.
    """
    if acting_user_id == target_user_id:
        return True

    try:
        shared = db.query(OrganizationMember.id).join(
            Organization, Organization.id == OrganizationMember.org_id
        ).filter(
            OrganizationMember.user_id == target_user_id,
            Organization.created_by == acting_user_id,
        ).first()
    except SQLAlchemyError:
        logger.exception('Permission check failed for %s viewing %s', acting_user_id, target_user_id)
        return False

    if shared is None:
        logger.warning('Permission denied: %s does not own an organization containing %s', acting_user_id, target_user_id)
        return False
    return True
