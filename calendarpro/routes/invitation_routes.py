import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendarpro.auth.dependencies import Identity, get_current_identity
from calendarpro.core.errors import StorageUnavailable
from calendarpro.core.roles import dashboard_for
from calendarpro.database import get_db
from calendarpro.models.user import User
from calendarpro.routes.common import ensure_database_ready
from calendarpro.services import invitations, notifications
from calendarpro.services.access import resolve_user_role
from calendarpro.services.organizations import get_organization

router = APIRouter(tags=['invitations'])

logger = logging.getLogger(__name__)


class InvitationRequest(BaseModel):
    email: str
    organization_id: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized

    @field_validator('organization_id')
    @classmethod
    def validate_organization_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Organization ID is required.')
        return normalized


class AcceptInvitationRequest(BaseModel):
    token: str

    @field_validator('token')
    @classmethod
    def validate_token(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Invitation token is required.')
        return normalized


class InvitationResponse(BaseModel):
    token: str
    email: str
    organization_id: str
    expires_at: datetime
    sent_to: str


class InvitationDetailsResponse(BaseModel):
    email: str
    organization_id: str
    organization_name: str | None = None
    expires_at: datetime


class AcceptInvitationResponse(BaseModel):
    organization_id: str
    role: str
    dashboard: str


def _inviter_name(db: Session, user_id: str) -> str | None:
    try:
        inviter = db.query(User).filter(User.id == user_id).first()
    except SQLAlchemyError as exc:
        logger.exception('Inviter lookup failed for user %s', user_id)
        raise StorageUnavailable('Failed to fetch inviter profile.') from exc

    if inviter is None:
        return None
    return inviter.name or inviter.email


@router.post('/send', response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
def send_invitation(
    data: InvitationRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready(db)
    invitation = invitations.create_invitation(db, data.email, data.organization_id, identity.id)
    organization = get_organization(db, invitation.organization_id)

    # Runs after the response; a failed send leaves the invitation valid.
    background_tasks.add_task(
        notifications.send_invitation_email,
        invitation.email,
        invitation.token,
        organization.name if organization else None,
        _inviter_name(db, identity.id),
    )

    return InvitationResponse(
        token=invitation.token,
        email=invitation.email,
        organization_id=invitation.organization_id,
        expires_at=invitation.expires_at,
        sent_to=invitation.email,
    )


@router.post('/resend', response_model=InvitationResponse)
def resend_invitation(
    data: InvitationRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready(db)
    invitation = invitations.resend_invitation(db, data.email, data.organization_id, identity.id)
    organization = get_organization(db, invitation.organization_id)

    background_tasks.add_task(
        notifications.send_invitation_reminder,
        invitation.email,
        invitation.token,
        organization.name if organization else None,
        _inviter_name(db, invitation.invited_by or identity.id),
        invitation.expires_at,
    )

    return InvitationResponse(
        token=invitation.token,
        email=invitation.email,
        organization_id=invitation.organization_id,
        expires_at=invitation.expires_at,
        sent_to=invitation.email,
    )


@router.get('/{token}', response_model=InvitationDetailsResponse)
def get_invitation(token: str, db: Session = Depends(get_db)):
    ensure_database_ready(db)
    invitation = invitations.find_valid_invitation(db, token)
    organization = get_organization(db, invitation.organization_id)
    return InvitationDetailsResponse(
        email=invitation.email,
        organization_id=invitation.organization_id,
        organization_name=organization.name if organization else None,
        expires_at=invitation.expires_at,
    )


@router.post('/accept', response_model=AcceptInvitationResponse)
def accept_invitation(
    data: AcceptInvitationRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready(db)
    membership = invitations.accept_invitation(db, data.token, identity.id)
    # Owning another agency still wins when picking the dashboard.
    role = resolve_user_role(db, identity.id)
    return AcceptInvitationResponse(
        organization_id=membership.org_id,
        role=membership.role,
        dashboard=dashboard_for(role),
    )
