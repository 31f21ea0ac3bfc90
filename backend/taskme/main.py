"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from taskme.api import router as api_router
from taskme.config import get_settings
from taskme.db.session import close_db, init_db
from taskme.exceptions import TaskMeError
from taskme.i18n import negotiate_locale, translate
from taskme.logging_config import setup_logging
from taskme.middleware import RequestContextMiddleware

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    logger.info("taskme_starting", version=settings.app_version, push_enabled=settings.push_enabled)
    await init_db()
    logger.info("database_initialized")

    yield

    # Shutdown
    logger.info("taskme_stopping")
    await close_db()
    logger.info("database_closed")


def _request_locale(request: Request) -> str:
    return getattr(request.state, "locale", None) or negotiate_locale(
        request.headers.get("accept-language")
    )


async def taskme_error_handler(request: Request, exc: TaskMeError) -> ORJSONResponse:
    """Render a domain error as localized JSON."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.localized(_request_locale(request)), "code": exc.code},
        headers=headers,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Last resort: log the failure, never leak it."""
    logger.exception("unhandled_error", error=str(exc), error_type=type(exc).__name__)
    return ORJSONResponse(
        status_code=500,
        content={"detail": translate("internal_error", _request_locale(request)), "code": "INTERNAL_ERROR"},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Task management with sharing, per-task chat and push reminders",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_exception_handler(TaskMeError, taskme_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Add middleware (order matters - last added is first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
    # Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from the reverse proxy
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    # Include API router
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()
