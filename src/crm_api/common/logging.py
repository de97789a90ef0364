"""Logging configuration and helpers for the CRM API.

Two output formats are supported:

* human-readable console logs, and
* structured JSON logs for production ingestion.

The module also binds a request-scoped correlation ID and builds consistent
``extra`` payloads. Everything uses the standard :mod:`logging` library.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from crm_api.settings import Settings

# ---------------------------------------------------------------------------
# Context and constants
# ---------------------------------------------------------------------------

# Request-scoped correlation ID, set/cleared by the request context middleware.
_CORRELATION_ID: ContextVar[str | None] = ContextVar(
    "crm_api_correlation_id",
    default=None,
)

# Attributes already handled by logging; never copied into the extras list.
_STANDARD_ATTRS: set[str] = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "asctime",
    "correlation_id",
    "taskName",
    "color_message",
}

_CONFIGURED_FLAG = "_crm_configured"
_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _format_time(record: logging.LogRecord, datefmt: str | None) -> str:
    dt = datetime.fromtimestamp(record.created, tz=UTC)
    base = dt.strftime(datefmt or _TIME_FORMAT)
    return f"{base}.{int(record.msecs):03d}Z"


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class ConsoleLogFormatter(logging.Formatter):
    """Render log records as single-line console output.

    Example line:

        2026-03-02T10:15:00.120Z INFO  crm_api.features.roles.service [cid=ab12] roles.delete.rejected
        role_id=... reason=system_role
    """

    def __init__(self) -> None:
        fmt = "%(asctime)s %(levelname)-5s %(name)s [cid=%(correlation_id)s] %(message)s"
        super().__init__(fmt=fmt, datefmt=_TIME_FORMAT)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _format_time(record, datefmt)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - std signature
        record.correlation_id = _resolve_correlation_id(record)
        base = super().format(record)
        extras = [
            f"{key}={_format_extra_value(value)}"
            for key, value in sorted(_record_extras(record).items())
        ]
        if extras:
            return f"{base} " + " ".join(extras)
        return base


class JsonLogFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _format_time(record, datefmt)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - std signature
        cid = _resolve_correlation_id(record)
        record.correlation_id = cid
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, _TIME_FORMAT),
            "level": record.levelname,
            "service": "crm-api",
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": cid,
        }
        payload.update(_record_extras(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default, separators=(",", ":"))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def setup_logging(settings: Settings) -> None:
    """Configure root logging for the CRM API process.

    Installs a single StreamHandler at ``settings.log_level`` and routes uvicorn
    and SQLAlchemy loggers through it. SQLAlchemy defaults to WARNING unless
    ``CRM_DATABASE_LOG_LEVEL`` opts in to SQL traces.
    """
    root_logger = logging.getLogger()
    level = getattr(logging, settings.log_level)

    configured = getattr(root_logger, _CONFIGURED_FLAG, False)
    if not configured or not root_logger.handlers:
        root_logger.handlers = [logging.StreamHandler()]
        setattr(root_logger, _CONFIGURED_FLAG, True)
    else:
        root_logger.handlers = [root_logger.handlers[0]]

    handler = root_logger.handlers[0]
    handler.setFormatter(_build_formatter(settings.log_format))
    root_logger.setLevel(level)

    for name in (
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
        "sqlalchemy",
        "sqlalchemy.engine",
        "sqlalchemy.pool",
    ):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.disabled = False
        logger.setLevel(logging.NOTSET)

    logging.getLogger("uvicorn").setLevel(level)
    logging.getLogger("uvicorn.error").setLevel(level)

    db_level = getattr(logging, settings.database_log_level or "WARNING")
    for name in ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(name).setLevel(db_level)


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------


def bind_request_context(correlation_id: str | None) -> None:
    """Bind a correlation ID to the logging context for the current request."""
    _CORRELATION_ID.set(correlation_id)


def clear_request_context() -> None:
    _CORRELATION_ID.set(None)


def log_context(
    *,
    user_id: UUID | str | None = None,
    role_id: UUID | str | None = None,
    resource: str | None = None,
    action: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a consistent ``extra`` payload for structured logs.

    Example:
        logger.info(
            "roles.delete.success",
            extra=log_context(role_id=role.id, user_id=actor.id),
        )
    """
    ctx: dict[str, Any] = {}

    if user_id is not None:
        ctx["user_id"] = str(user_id)
    if role_id is not None:
        ctx["role_id"] = str(role_id)
    if resource is not None:
        ctx["resource"] = resource
    if action is not None:
        ctx["action"] = action

    for key, value in extra.items():
        ctx[key] = value

    return ctx


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _resolve_correlation_id(record: logging.LogRecord) -> str:
    return getattr(record, "correlation_id", None) or _CORRELATION_ID.get() or "-"


def _format_extra_value(value: Any) -> str:
    if value is None:
        return "null"
    return str(value)


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_ATTRS or key.startswith("_"):
            continue
        extras[key] = value
    return extras


def _json_default(value: Any) -> str:
    return str(value)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonLogFormatter()
    return ConsoleLogFormatter()


__all__ = [
    "ConsoleLogFormatter",
    "JsonLogFormatter",
    "bind_request_context",
    "clear_request_context",
    "log_context",
    "setup_logging",
]
