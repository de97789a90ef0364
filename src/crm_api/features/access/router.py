from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, Request

from crm_api.core.auth.dependencies import PrincipalDep
from crm_api.core.rbac.routes import path_to_resource_action
from crm_api.settings import get_settings

from .schemas import RouteAccessOut

router = APIRouter(prefix="/access", tags=["access"])


@router.get("/route", response_model=RouteAccessOut, summary="Check access to an application path")
def check_route_access(
    request: Request,
    principal: PrincipalDep,
    path: Annotated[str, Query(max_length=2048)] = "",
) -> RouteAccessOut:
    settings = getattr(request.app.state, "settings", None) or get_settings()
    target = path_to_resource_action(path)
    allowed = principal.checker().has_permission(target.resource, target.action)
    return RouteAccessOut(
        path=path,
        resource=target.resource,
        action=target.action,
        allowed=allowed,
        redirect_to=None if allowed else settings.gate_default_redirect,
    )


__all__ = ["router"]
