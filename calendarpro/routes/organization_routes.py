from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from calendarpro.auth.dependencies import Identity, get_current_identity
from calendarpro.database import get_db
from calendarpro.routes.common import ensure_database_ready
from calendarpro.services import organizations

router = APIRouter(tags=['organizations'])


class CreateAgencyRequest(BaseModel):
    agency_name: str
    description: str | None = None

    @field_validator('agency_name')
    @classmethod
    def validate_agency_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Agency name is required.')
        return normalized


class OrganizationResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    created_by: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class MembershipResponse(BaseModel):
    org_id: str
    user_id: str
    role: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CreateAgencyResponse(BaseModel):
    organization: OrganizationResponse
    membership: MembershipResponse


class MemberResponse(BaseModel):
    user_id: str
    role: str
    email: str | None = None
    name: str | None = None
    joined_at: datetime | None = None


@router.post('/agency', response_model=CreateAgencyResponse, status_code=status.HTTP_201_CREATED)
def create_agency(
    data: CreateAgencyRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready(db)
    organization, membership = organizations.create_organization(db, identity.id, data.agency_name, data.description)
    return CreateAgencyResponse(
        organization=OrganizationResponse.model_validate(organization),
        membership=MembershipResponse.model_validate(membership),
    )


@router.get('/{organization_id}/members', response_model=list[MemberResponse])
def list_organization_members(
    organization_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready(db)
    return [
        MemberResponse(
            user_id=membership.user_id,
            role=membership.role,
            email=user.email if user else None,
            name=user.name if user else None,
            joined_at=membership.created_at,
        )
        for membership, user in organizations.list_members(db, identity.id, organization_id)
    ]


@router.delete('/{organization_id}/membership', status_code=status.HTTP_204_NO_CONTENT)
def leave_organization(
    organization_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready(db)
    organizations.leave_organization(db, identity.id, identity.email, organization_id)
