import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auditflow.core.config import Settings, get_settings
from auditflow.core.errors import AppError
from auditflow.core.logging import configure_logging
from auditflow.db.session import create_db_engine, create_session_factory
from auditflow.api.routers import (
    auth,
    users,
    groups,
    companies,
    sites,
    schedules,
    audit_sessions,
    approvals,
    health,
)
from auditflow.api.middleware.request_logging import RequestLoggingMiddleware

VERSION = "0.3.0"

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application, its engine and session factory.

    Served with ``uvicorn --factory auditflow.api.main:create_app``.
    """
    settings = settings or get_settings()

    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Compliance audit tracking with scoped access control and approvals",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    engine = create_db_engine(settings.database_url, echo=settings.database_echo)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(AppError, app_error_handler)

    for module in (auth, users, groups, companies, sites, schedules, audit_sessions, approvals):
        app.include_router(module.router, prefix="/api")
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": VERSION,
            "docs": "/docs" if settings.debug else None,
        }

    return app
