"""Custom FastAPI middleware components."""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from .logging import bind_request_context, clear_request_context

_REQUEST_LOGGER = logging.getLogger("crm_api.request")
REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach correlation IDs and emit structured request logs."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id
        bind_request_context(request_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _REQUEST_LOGGER.exception(
                "request.error",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            raise
        else:
            _REQUEST_LOGGER.info(
                "request.complete",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
        finally:
            clear_request_context()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def register_middleware(app: FastAPI) -> None:
    """Register default middleware on the FastAPI application."""

    app.add_middleware(RequestContextMiddleware)


__all__ = ["REQUEST_ID_HEADER", "RequestContextMiddleware", "register_middleware"]
