"""Database helpers for the FastAPI application: lifecycle and request sessions."""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from starlette.requests import HTTPConnection

from crm_api.common.problem_details import ApiError
from crm_api.core.errors import DomainError
from crm_api.settings import Settings, get_settings

from .engine import build_engine, create_schema

logger = logging.getLogger(__name__)


# --- App lifecycle ----------------------------------------------------------


def init_db(app: FastAPI, settings: Settings | None = None, *, engine: Engine | None = None) -> None:
    settings = settings or get_settings()

    owns_engine = engine is None
    engine = engine or build_engine(settings)
    existing_engine = getattr(app.state, "db_engine", None)
    if existing_engine is not None and existing_engine is not engine:
        existing_engine.dispose()

    create_schema(engine)
    app.state.db_engine = engine
    app.state.db_engine_owned = owns_engine
    app.state.db_sessionmaker = sessionmaker(bind=engine, expire_on_commit=False)


def shutdown_db(app: FastAPI) -> None:
    """Release the engine; engines passed in by the caller stay open."""

    engine = getattr(app.state, "db_engine", None)
    if engine is not None and getattr(app.state, "db_engine_owned", True):
        engine.dispose()
    app.state.db_engine = None
    app.state.db_sessionmaker = None


def get_session_factory_from_app(app: FastAPI) -> sessionmaker[Session]:
    session_factory = getattr(app.state, "db_sessionmaker", None)
    if session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db(app, ...) at startup.")
    return session_factory


def get_session_factory(conn: HTTPConnection) -> sessionmaker[Session]:
    return get_session_factory_from_app(conn.app)


# --- Dependencies -----------------------------------------------------------


def _log_unexpected_db_exception(request: Request, exc: BaseException) -> None:
    expected = isinstance(exc, (HTTPException, RequestValidationError, DomainError))
    if not expected and isinstance(exc, ApiError) and exc.status_code < 500:
        expected = True
    if expected:
        return
    logger.warning(
        "db.session.rollback",
        extra={
            "path": str(request.url.path),
            "method": request.method,
        },
        exc_info=exc,
    )


def _get_session(request: Request) -> Generator[Session]:
    session = get_session_factory(request)()
    try:
        yield session
        if getattr(request.state, "db_force_write", False):
            session.commit()
        else:
            session.rollback()
    except BaseException as exc:
        session.rollback()
        _log_unexpected_db_exception(request, exc)
        raise
    finally:
        session.close()


def get_db_write(
    request: Request,
    session: Annotated[Session, Depends(_get_session)],
) -> Session:
    request.state.db_force_write = True
    return session


def get_db_read(
    _request: Request,
    session: Annotated[Session, Depends(_get_session)],
) -> Session:
    return session


WriteSessionDep = Annotated[Session, Depends(get_db_write)]
ReadSessionDep = Annotated[Session, Depends(get_db_read)]


__all__ = [
    "ReadSessionDep",
    "WriteSessionDep",
    "get_db_read",
    "get_db_write",
    "get_session_factory",
    "get_session_factory_from_app",
    "init_db",
    "shutdown_db",
]
