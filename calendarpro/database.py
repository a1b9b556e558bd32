from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from calendarpro.core import config

engine = create_engine(config.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_checked_engines: dict[str, set[int]] = {'availability': set(), 'invitations': set(), 'users': set()}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _already_checked(name: str, bind: Engine) -> bool:
    return id(bind) in _checked_engines[name]


def ensure_availability_schema(bind: Engine | None = None) -> None:
    bind = bind or engine

    if _already_checked('availability', bind):
        return

    with _schema_lock:
        if _already_checked('availability', bind):
            return

        inspector = inspect(bind)

        if 'user_availability' not in inspector.get_table_names():
            _checked_engines['availability'].add(id(bind))
            return

        existing_columns = {column['name'] for column in inspector.get_columns('user_availability')}

        with bind.begin() as connection:
            if 'is_available' not in existing_columns:
                connection.execute(
                    text('ALTER TABLE user_availability ADD COLUMN is_available BOOLEAN DEFAULT TRUE')
                )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_user_availability_slot '
                    'ON user_availability(user_id, date, start_time)'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_user_availability_user_date ON user_availability(user_id, date)')
            )

        _checked_engines['availability'].add(id(bind))


def ensure_invitation_schema(bind: Engine | None = None) -> None:
    bind = bind or engine

    if _already_checked('invitations', bind):
        return

    with _schema_lock:
        if _already_checked('invitations', bind):
            return

        inspector = inspect(bind)

        if 'invitations' not in inspector.get_table_names():
            _checked_engines['invitations'].add(id(bind))
            return

        existing_columns = {column['name'] for column in inspector.get_columns('invitations')}
        migration_steps = [
            ('accepted_by', 'ALTER TABLE invitations ADD COLUMN accepted_by VARCHAR'),
            ('accepted_at', 'ALTER TABLE invitations ADD COLUMN accepted_at TIMESTAMP'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS uq_invitations_token ON invitations(token)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_invitations_org_email ON invitations(organization_id, email)')
            )

        _checked_engines['invitations'].add(id(bind))


def ensure_user_schema(bind: Engine | None = None) -> None:
    bind = bind or engine

    if _already_checked('users', bind):
        return

    with _schema_lock:
        if _already_checked('users', bind):
            return

        inspector = inspect(bind)

        if 'users' not in inspector.get_table_names():
            _checked_engines['users'].add(id(bind))
            return

        existing_columns = {column['name'] for column in inspector.get_columns('users')}
        migration_steps = [
            ('profile_complete', 'ALTER TABLE users ADD COLUMN profile_complete BOOLEAN DEFAULT FALSE'),
            ('complete_role', 'ALTER TABLE users ADD COLUMN complete_role BOOLEAN DEFAULT FALSE'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))

        _checked_engines['users'].add(id(bind))
