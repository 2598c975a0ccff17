import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from schoolmail.core.config import Settings, load_settings, validate_runtime_config
from schoolmail.database import Base, build_engine, build_session_factory, ensure_email_log_schema
from schoolmail.mail.transport import SmtpMailer
from schoolmail.models import email_log, school_class, user  # noqa: F401  registers tables
from schoolmail.routes import auth_routes, class_routes, email_routes

logger = logging.getLogger(__name__)


def http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {'error': exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug('Rejected request: %s', exc.errors())
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={'error': 'Invalid request'})


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={'error': 'Internal server error'},
    )


def create_app(settings: Settings | None = None, mailer=None) -> FastAPI:
    settings = settings or load_settings()
    validate_runtime_config(settings)

    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    app = FastAPI(title='School Mail API')

    engine = build_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.mailer = mailer or SmtpMailer(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials='*' not in settings.cors_origins,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.on_event('startup')
    def initialize_database() -> None:
        try:
            Base.metadata.create_all(bind=engine)
            ensure_email_log_schema(engine)
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    @app.get('/')
    def root():
        return {'status': 'School Mail API Running'}

    prefix = settings.api_prefix
    app.include_router(auth_routes.router, prefix=f'{prefix}/auth')
    app.include_router(class_routes.router, prefix=f'{prefix}/classes')
    app.include_router(email_routes.router, prefix=f'{prefix}/email')

    return app
