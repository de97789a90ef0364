from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from crm_api.common.exceptions import api_error_from_domain
from crm_api.core.auth.dependencies import require_permission
from crm_api.core.auth.principal import AuthenticatedPrincipal
from crm_api.core.errors import DomainError

from .schemas import RestorePlanOut, RestoreValidateRequest
from .service import plan_restore

router = APIRouter(prefix="/settings/backup", tags=["backup"])

CanImport = Annotated[AuthenticatedPrincipal, Depends(require_permission("backup", "import"))]


@router.post(
    "/restore/validate",
    response_model=RestorePlanOut,
    summary="Check a backup document and plan its restore",
)
def validate_restore(payload: RestoreValidateRequest, _principal: CanImport) -> RestorePlanOut:
    try:
        plan = plan_restore(payload.backup, payload.restore_tables)
    except DomainError as exc:
        raise api_error_from_domain(exc) from exc
    return RestorePlanOut.from_plan(plan)


__all__ = ["router"]
