from datetime import datetime, timedelta, timezone

import jwt

from calendarpro.core import config


def create_access_token(subject: str, email: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.AUTH_TOKEN_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "email": email,
        "aud": config.AUTH_JWT_AUDIENCE,
        "role": "authenticated",
        "exp": issued_at + timedelta(minutes=expire_minutes),
        "iat": issued_at,
    }
    return jwt.encode(payload, config.AUTH_JWT_SECRET, algorithm=config.AUTH_JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.AUTH_JWT_SECRET,
        algorithms=[config.AUTH_JWT_ALGORITHM],
        audience=config.AUTH_JWT_AUDIENCE,
    )
