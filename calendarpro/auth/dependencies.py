from dataclasses import dataclass

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from calendarpro.auth import jwt_handler
from calendarpro.core.errors import Unauthorized

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The acting user as established by the identity provider."""
    id: str
    email: str


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Authorization header required")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise Unauthorized("Invalid token") from exc

    subject = payload.get("sub")
    email = payload.get("email")
    if not subject or not email:
        raise Unauthorized("Invalid token subject")

    return Identity(id=str(subject), email=str(email).strip().lower())
