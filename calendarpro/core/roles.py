from collections.abc import Iterable
from enum import Enum


class Role(str, Enum):
    OWNER = 'owner'
    MEMBER = 'member'
    FREELANCER = 'freelancer'


MEMBERSHIP_ROLES = frozenset({Role.OWNER.value, Role.MEMBER.value})

DASHBOARD_ROUTES = {
    Role.OWNER: '/dashboard',
    Role.MEMBER: '/member-dashboard',
    Role.FREELANCER: '/user-dashboard',
}


def resolve_role(owns_organization: bool, membership_role: str | None) -> Role:
    # Ownership of any organization wins over a lesser membership elsewhere.
    if owns_organization:
        return Role.OWNER
    if membership_role == Role.OWNER.value:
        return Role.OWNER
    if membership_role == Role.MEMBER.value:
        return Role.MEMBER
    return Role.FREELANCER


def strongest_membership_role(roles: Iterable[str | None]) -> str | None:
    found = {role for role in roles if role in MEMBERSHIP_ROLES}
    if Role.OWNER.value in found:
        return Role.OWNER.value
    if Role.MEMBER.value in found:
        return Role.MEMBER.value
    return None


def dashboard_for(role: Role) -> str:
    return DASHBOARD_ROUTES[role]
