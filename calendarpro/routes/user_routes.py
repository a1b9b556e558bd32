import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendarpro.auth.dependencies import Identity, get_current_identity
from calendarpro.core.errors import StorageUnavailable
from calendarpro.core.roles import dashboard_for
from calendarpro.database import get_db
from calendarpro.models.user import User
from calendarpro.routes.common import ensure_database_ready
from calendarpro.services.access import resolve_user_role

router = APIRouter(tags=['users'])

logger = logging.getLogger(__name__)

MAX_BIO_LENGTH = 600


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class CompleteProfileRequest(BaseModel):
    name: str
    phone: str | None = None
    company: str | None = None
    bio: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < 2:
            raise ValueError('Name must be at least 2 characters.')
        return normalized

    @field_validator('phone', 'company')
    @classmethod
    def normalize_optional(cls, value: str | None) -> str | None:
        return _optional_text(value)

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, value: str | None) -> str | None:
        normalized = _optional_text(value)
        if normalized and len(normalized) > MAX_BIO_LENGTH:
            raise ValueError(f'Bio must be {MAX_BIO_LENGTH} characters or fewer.')
        return normalized


class ProfileResponse(BaseModel):
    id: str
    email: str
    name: str | None = None
    phone: str | None = None
    company: str | None = None
    bio: str | None = None
    profile_complete: bool
    complete_role: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ProfileStatusResponse(BaseModel):
    id: str
    email: str
    profile: ProfileResponse | None
    needs_profile_completion: bool


class MeResponse(BaseModel):
    id: str
    email: str
    role: str
    dashboard: str


@router.get('/profile-status', response_model=ProfileStatusResponse)
def profile_status(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    ensure_database_ready(db)

    try:
        profile = db.query(User).filter(User.id == identity.id).first()
    except SQLAlchemyError as exc:
        logger.exception('Profile lookup failed for user %s', identity.id)
        raise StorageUnavailable('Database error occurred.') from exc

    return ProfileStatusResponse(
        id=identity.id,
        email=identity.email,
        profile=ProfileResponse.model_validate(profile) if profile else None,
        needs_profile_completion=profile is None or not profile.profile_complete,
    )


@router.post('/complete-profile', response_model=ProfileResponse)
def complete_profile(
    data: CompleteProfileRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready(db)

    try:
        profile = db.query(User).filter(User.id == identity.id).first()
        if profile is None:
            profile = User(id=identity.id, email=identity.email)
            db.add(profile)

        profile.email = identity.email
        profile.name = data.name
        profile.phone = data.phone
        profile.company = data.company
        profile.bio = data.bio
        profile.profile_complete = True

        db.commit()
        db.refresh(profile)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Profile update failed for user %s', identity.id)
        raise StorageUnavailable('Failed to update profile.') from exc

    return profile


@router.get('/me', response_model=MeResponse)
def me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    ensure_database_ready(db)
    role = resolve_user_role(db, identity.id)
    return MeResponse(id=identity.id, email=identity.email, role=role.value, dashboard=dashboard_for(role))
