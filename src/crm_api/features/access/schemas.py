from __future__ import annotations

from crm_api.common.schema import BaseSchema


class RouteAccessOut(BaseSchema):
    """Resolved target of a path and whether the caller may open it."""

    path: str
    resource: str
    action: str
    allowed: bool
    redirect_to: str | None = None
