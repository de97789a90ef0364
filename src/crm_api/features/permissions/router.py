from __future__ import annotations

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, Path, Query, Response, status

from crm_api.common.exceptions import api_error_from_domain
from crm_api.core.auth.dependencies import PrincipalDep, require_permission
from crm_api.core.auth.principal import AuthenticatedPrincipal
from crm_api.core.errors import DomainError, Err
from crm_api.core.rbac.evaluator import merge_by_resource
from crm_api.db.session import ReadSessionDep, WriteSessionDep

from .schemas import (
    EffectivePermissionOut,
    MyPermissionsOut,
    SystemPermissionList,
    SystemPermissionOut,
)
from .service import PermissionCatalogService

router = APIRouter(tags=["permissions"])

ResourcePath = Annotated[str, Path(description="Catalog resource name")]
CanRead = Annotated[AuthenticatedPrincipal, Depends(require_permission("permissions", "read"))]
CanDelete = Annotated[AuthenticatedPrincipal, Depends(require_permission("permissions", "delete"))]


def _raise(exc: DomainError) -> NoReturn:
    raise api_error_from_domain(exc) from exc


@router.get("/me/permissions", response_model=MyPermissionsOut, summary="Caller's permissions")
def read_my_permissions(principal: PrincipalDep) -> MyPermissionsOut:
    merged = merge_by_resource(principal.permissions)
    return MyPermissionsOut(
        user_id=principal.user_id,
        role_id=principal.role_id,
        role_name=principal.role_name,
        permissions=[
            EffectivePermissionOut(**merged[resource].to_dict()) for resource in sorted(merged)
        ],
    )


@router.get(
    "/system-permissions",
    response_model=SystemPermissionList,
    summary="List catalog entries",
)
def list_system_permissions(
    _principal: CanRead,
    db: ReadSessionDep,
    category: Annotated[str | None, Query()] = None,
    include_inactive: Annotated[bool, Query(alias="includeInactive")] = False,
) -> SystemPermissionList:
    service = PermissionCatalogService(session=db)
    rows = service.list_permissions(category=category, include_inactive=include_inactive)
    return SystemPermissionList(
        items=[SystemPermissionOut.model_validate(row) for row in rows],
    )


@router.delete(
    "/system-permissions/{resource}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Deactivate a non-core catalog entry",
)
def delete_system_permission(
    resource: ResourcePath,
    _principal: CanDelete,
    db: WriteSessionDep,
) -> Response:
    service = PermissionCatalogService(session=db)
    result = service.delete_permission(resource)
    if isinstance(result, Err):
        _raise(result.error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
