"""Centralized FastAPI exception handlers with structured logging."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from crm_api.common.logging import log_context
from crm_api.common.problem_details import (
    ApiError,
    ProblemDetailsErrorItem,
    build_problem_details,
    coerce_detail,
    error_items_from_pydantic,
    resolve_error_definition,
)
from crm_api.core.errors import (
    ConflictError,
    DomainError,
    ImmutableEntityError,
    NotFoundError,
    ValidationError,
)

_UNHANDLED_LOGGER = logging.getLogger("crm_api.errors")
_HTTP_LOGGER = logging.getLogger("crm_api.http")
_PROBLEM_MEDIA_TYPE = "application/problem+json"


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _problem_response(
    *,
    request: Request,
    status_code: int,
    detail: str | dict[str, object] | None,
    errors: list[ProblemDetailsErrorItem] | None,
    error_type: str | None = None,
    title: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    problem = build_problem_details(
        status_code=status_code,
        instance=str(request.url.path),
        request_id=_request_id(request),
        detail=detail,
        errors=errors,
        error_type=error_type,
        title=title,
    )
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(by_alias=True, exclude_none=True),
        media_type=_PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


def api_error_from_domain(exc: DomainError) -> ApiError:
    """Translate a domain exception into its HTTP Problem Details equivalent."""

    if isinstance(exc, ValidationError):
        errors = None
        if exc.field:
            errors = [ProblemDetailsErrorItem(path=exc.field, message=str(exc))]
        return ApiError.from_definition("validation_error", str(exc), errors=errors)
    if isinstance(exc, ImmutableEntityError):
        return ApiError.from_definition("immutable_entity", str(exc))
    if isinstance(exc, ConflictError):
        return ApiError.from_definition("conflict", str(exc))
    if isinstance(exc, NotFoundError):
        return ApiError.from_definition("not_found", str(exc))
    return ApiError.from_definition("bad_request", str(exc))


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected exceptions.

    Logs at ERROR with a stack trace and returns an opaque HTTP 500.
    """
    _UNHANDLED_LOGGER.exception(
        "unhandled_exception",
        extra=log_context(
            path=str(request.url.path),
            method=request.method,
            exception_type=type(exc).__name__,
            detail=str(exc),
        ),
    )

    return _problem_response(
        request=request,
        status_code=500,
        detail="Internal server error",
        errors=None,
        error_type=resolve_error_definition(500).type,
    )


def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException instances.

    4xx responses are returned without logging; 5xx responses are logged at
    ERROR and made opaque.
    """
    if exc.status_code >= 500:
        _HTTP_LOGGER.error(
            "http_exception",
            extra=log_context(
                path=str(request.url.path),
                method=request.method,
                status_code=exc.status_code,
                detail=exc.detail,
            ),
        )

    detail = coerce_detail(exc.detail)
    if exc.status_code == 500:
        detail = "Internal server error"

    return _problem_response(
        request=request,
        status_code=exc.status_code,
        detail=detail,
        errors=None,
        headers=getattr(exc, "headers", None),
    )


def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return _problem_response(
        request=request,
        status_code=422,
        detail="Invalid request",
        errors=error_items_from_pydantic(exc.errors()),
        error_type=resolve_error_definition(422).type,
    )


def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _problem_response(
        request=request,
        status_code=exc.status_code,
        detail=coerce_detail(exc.detail),
        errors=exc.errors,
        error_type=exc.error_type,
        title=exc.title,
        headers=exc.headers,
    )


def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Fallback for domain exceptions a router did not translate itself."""

    return api_error_handler(request, api_error_from_domain(exc))


__all__ = [
    "api_error_from_domain",
    "api_error_handler",
    "domain_error_handler",
    "http_exception_handler",
    "request_validation_exception_handler",
    "unhandled_exception_handler",
]
