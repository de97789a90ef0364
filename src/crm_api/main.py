"""CRM FastAPI application entry point."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import cast

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .common.exceptions import (
    api_error_handler,
    domain_error_handler,
    http_exception_handler,
    request_validation_exception_handler,
    unhandled_exception_handler,
)
from .common.logging import setup_logging
from .common.middleware import register_middleware
from .common.problem_details import ApiError
from .core.auth.dependencies import register_auth_exception_handlers
from .core.errors import DomainError
from .lifecycles import create_application_lifespan
from .routers import api_router
from .settings import Settings, get_settings

API_PREFIX = "/api"
type HttpExceptionHandler = Callable[[Request, Exception], Response | Awaitable[Response]]
logger = logging.getLogger(__name__)


def _as_http_exception_handler(handler: Callable[..., Response]) -> HttpExceptionHandler:
    return cast(HttpExceptionHandler, handler)


def create_app(settings: Settings | None = None, *, engine: Engine | None = None) -> FastAPI:
    """Create and configure the CRM FastAPI application."""
    # Settings + logging first so everything else uses the configured root logger.
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=create_application_lifespan(settings=settings, engine=engine),
    )
    app.state.settings = settings

    app.add_exception_handler(
        RequestValidationError, _as_http_exception_handler(request_validation_exception_handler)
    )
    app.add_exception_handler(HTTPException, _as_http_exception_handler(http_exception_handler))
    app.add_exception_handler(
        StarletteHTTPException, _as_http_exception_handler(http_exception_handler)
    )
    app.add_exception_handler(ApiError, _as_http_exception_handler(api_error_handler))
    app.add_exception_handler(DomainError, _as_http_exception_handler(domain_error_handler))
    app.add_exception_handler(Exception, _as_http_exception_handler(unhandled_exception_handler))
    register_auth_exception_handlers(app)

    register_middleware(app)
    app.include_router(api_router, prefix=API_PREFIX)
    return app


__all__ = [
    "API_PREFIX",
    "create_app",
]
