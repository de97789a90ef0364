"""FastAPI dependencies bridging requests to the principal and evaluator."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, cast

from fastapi import Depends, FastAPI, Request, status
from starlette.responses import Response

from crm_api.common.exceptions import api_error_handler
from crm_api.common.logging import log_context
from crm_api.common.problem_details import ApiError
from crm_api.db.session import ReadSessionDep
from crm_api.settings import Settings, get_settings

from .errors import AuthenticationError, PermissionDeniedError
from .principal import AuthenticatedPrincipal, parse_user_id, resolve_principal

logger = logging.getLogger(__name__)

type HttpExceptionHandler = Callable[[Request, Exception], Response | Awaitable[Response]]
PermissionDependency = Callable[..., AuthenticatedPrincipal]


def _app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_current_principal(
    request: Request,
    db: ReadSessionDep,
) -> AuthenticatedPrincipal:
    """Resolve the user named by the configured principal header."""

    cached = getattr(request.state, "principal", None)
    if cached is not None:
        return cached
    settings = _app_settings(request)
    user_id = parse_user_id(request.headers.get(settings.principal_header))
    principal = resolve_principal(db, user_id)
    request.state.principal = principal
    return principal


PrincipalDep = Annotated[AuthenticatedPrincipal, Depends(get_current_principal)]


def require_permission(resource: str, action: str = "read") -> PermissionDependency:
    """Return a dependency enforcing ``action`` on ``resource``."""

    def dependency(principal: PrincipalDep) -> AuthenticatedPrincipal:
        if not principal.checker().has_permission(resource, action):
            logger.info(
                "auth.permission.denied",
                extra=log_context(user_id=principal.user_id, resource=resource, action=action),
            )
            raise PermissionDeniedError(resource=resource, action=action)
        return principal

    return dependency


def _handle_authentication_error(request: Request, exc: AuthenticationError) -> Response:
    error = ApiError(
        error_type="unauthorized",
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=str(exc) or "Authentication required",
    )
    return api_error_handler(request, error)


def _handle_permission_error(request: Request, exc: PermissionDeniedError) -> Response:
    error = ApiError(
        error_type="forbidden",
        status_code=status.HTTP_403_FORBIDDEN,
        detail=str(exc) or "Forbidden",
    )
    return api_error_handler(request, error)


def register_auth_exception_handlers(app: FastAPI) -> None:
    """Attach auth handlers to the FastAPI app."""

    app.add_exception_handler(
        AuthenticationError,
        cast(HttpExceptionHandler, _handle_authentication_error),
    )
    app.add_exception_handler(
        PermissionDeniedError,
        cast(HttpExceptionHandler, _handle_permission_error),
    )


__all__ = [
    "PrincipalDep",
    "get_current_principal",
    "register_auth_exception_handlers",
    "require_permission",
]
