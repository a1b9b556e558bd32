import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from calendarpro.core import config
from calendarpro.core.errors import CalendarError
from calendarpro.database import Base, engine, ensure_availability_schema, ensure_invitation_schema, ensure_user_schema
from calendarpro.models import availability, invitation, organization, user  # noqa: F401
from calendarpro.routes import availability_routes, invitation_routes, organization_routes, user_routes

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

config.validate_runtime_config()

app = FastAPI(title='Calendar Pro API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_user_schema()
        ensure_availability_schema()
        ensure_invitation_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.exception_handler(CalendarError)
async def handle_calendar_error(request: Request, exc: CalendarError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.detail})


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [error.get('msg', 'Invalid value.') for error in exc.errors()]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={'detail': errors})


@app.get('/')
def root():
    return {'status': 'Calendar Pro API Running'}


app.include_router(user_routes.router, prefix='/users')
app.include_router(organization_routes.router, prefix='/organizations')
app.include_router(invitation_routes.router, prefix='/invitations')
app.include_router(availability_routes.router, prefix='/availability')
