"""Operational liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from crm_api.common.time import utc_now
from crm_api.db.session import get_session_factory_from_app
from crm_api.settings import get_settings

from .schemas import HealthCheckResponse, HealthComponentStatus

router = APIRouter(tags=["health"])


def _database_status(request: Request) -> HealthComponentStatus:
    try:
        session_factory = get_session_factory_from_app(request.app)
        with session_factory() as session:
            session.execute(text("SELECT 1"))
    except (RuntimeError, SQLAlchemyError):
        return HealthComponentStatus(name="database", status="unavailable", detail="not connected")
    return HealthComponentStatus(name="database", status="available", detail="connected")


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Service liveness probe",
    response_model_exclude_none=True,
)
def read_health(request: Request) -> HealthCheckResponse:
    settings = getattr(request.app.state, "settings", None) or get_settings()
    database = _database_status(request)
    return HealthCheckResponse(
        status="ok" if database.status == "available" else "degraded",
        timestamp=utc_now(),
        components=[
            HealthComponentStatus(name="api", status="available", detail=f"v{settings.app_version}"),
            database,
        ],
    )


__all__ = ["router"]
