from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendarpro.core.errors import StorageUnavailable
from calendarpro.database import ensure_availability_schema, ensure_invitation_schema, ensure_user_schema


def ensure_database_ready(db: Session) -> None:
    bind = db.get_bind()
    try:
        ensure_user_schema(bind)
        ensure_availability_schema(bind)
        ensure_invitation_schema(bind)
    except SQLAlchemyError as exc:
        raise StorageUnavailable('Database unavailable. Verify DATABASE_URL and database credentials.') from exc
