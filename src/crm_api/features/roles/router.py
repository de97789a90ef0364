from __future__ import annotations

from typing import Annotated, NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, status

from crm_api.common.exceptions import api_error_from_domain
from crm_api.core.auth.dependencies import require_permission
from crm_api.core.auth.principal import AuthenticatedPrincipal
from crm_api.core.errors import DomainError, Err
from crm_api.db.models import RoleStatus
from crm_api.db.session import ReadSessionDep, WriteSessionDep

from .schemas import (
    RoleCreate,
    RoleList,
    RoleOut,
    RolePermissionsReplace,
    RoleStatusChange,
    RoleUpdate,
    permissions_payload,
)
from .service import RoleService

router = APIRouter(prefix="/roles", tags=["roles"])

RolePath = Annotated[UUID, Path(description="Role identifier", alias="roleId")]
CanRead = Annotated[AuthenticatedPrincipal, Depends(require_permission("roles", "read"))]
CanCreate = Annotated[AuthenticatedPrincipal, Depends(require_permission("roles", "create"))]
CanUpdate = Annotated[AuthenticatedPrincipal, Depends(require_permission("roles", "update"))]
CanDelete = Annotated[AuthenticatedPrincipal, Depends(require_permission("roles", "delete"))]
CanAssign = Annotated[AuthenticatedPrincipal, Depends(require_permission("roles", "assign"))]


def _raise(exc: DomainError) -> NoReturn:
    raise api_error_from_domain(exc) from exc


@router.get("", response_model=RoleList, summary="List roles")
def list_roles(
    _principal: CanRead,
    db: ReadSessionDep,
    department: Annotated[str | None, Query()] = None,
    role_status: Annotated[RoleStatus | None, Query(alias="status")] = None,
    include_deleted: Annotated[bool, Query(alias="includeDeleted")] = False,
) -> RoleList:
    service = RoleService(session=db)
    try:
        roles = service.list_roles(
            department=department,
            status=role_status,
            include_deleted=include_deleted,
        )
    except DomainError as exc:
        _raise(exc)
    return RoleList(items=[RoleOut.from_role(role) for role in roles])


@router.post(
    "",
    response_model=RoleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a department role",
)
def create_role(payload: RoleCreate, principal: CanCreate, db: WriteSessionDep) -> RoleOut:
    service = RoleService(session=db)
    try:
        role = service.create_role(
            display_name=payload.display_name,
            name=payload.name,
            description=payload.description,
            department=payload.department,
            permissions=permissions_payload(payload.permissions),
            hierarchy_level=payload.hierarchy_level,
            max_users=payload.max_users,
            valid_from=payload.valid_from,
            valid_until=payload.valid_until,
            notes=payload.notes,
            tags=payload.tags,
            actor_id=principal.user_id,
        )
    except DomainError as exc:
        _raise(exc)
    return RoleOut.from_role(role)


@router.get("/{roleId}", response_model=RoleOut, summary="Retrieve a role")
def read_role(role_id: RolePath, _principal: CanRead, db: ReadSessionDep) -> RoleOut:
    service = RoleService(session=db)
    try:
        role = service.require_role(role_id)
    except DomainError as exc:
        _raise(exc)
    return RoleOut.from_role(role)


@router.patch("/{roleId}", response_model=RoleOut, summary="Update a role")
def update_role(
    role_id: RolePath,
    payload: RoleUpdate,
    principal: CanUpdate,
    db: WriteSessionDep,
) -> RoleOut:
    provided = payload.model_fields_set
    changes: dict[str, object] = {}
    for field_name in ("description", "department", "max_users", "notes"):
        if field_name in provided:
            changes[field_name] = getattr(payload, field_name)
    if payload.permissions is not None:
        changes["permissions"] = permissions_payload(payload.permissions)

    service = RoleService(session=db)
    try:
        role = service.update_role(
            role_id,
            display_name=payload.display_name,
            hierarchy_level=payload.hierarchy_level,
            tags=payload.tags,
            actor_id=principal.user_id,
            **changes,
        )
    except DomainError as exc:
        _raise(exc)
    return RoleOut.from_role(role)


@router.put("/{roleId}/permissions", response_model=RoleOut, summary="Replace role permissions")
def replace_role_permissions(
    role_id: RolePath,
    payload: RolePermissionsReplace,
    principal: CanAssign,
    db: WriteSessionDep,
) -> RoleOut:
    service = RoleService(session=db)
    try:
        role = service.replace_permissions(
            role_id,
            permissions_payload(payload.permissions),
            actor_id=principal.user_id,
        )
    except DomainError as exc:
        _raise(exc)
    return RoleOut.from_role(role)


@router.post("/{roleId}/status", response_model=RoleOut, summary="Change role status")
def change_role_status(
    role_id: RolePath,
    payload: RoleStatusChange,
    principal: CanUpdate,
    db: WriteSessionDep,
) -> RoleOut:
    service = RoleService(session=db)
    try:
        role = service.change_status(role_id, RoleStatus(payload.status), actor_id=principal.user_id)
    except DomainError as exc:
        _raise(exc)
    return RoleOut.from_role(role)


@router.delete(
    "/{roleId}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Soft-delete a role",
)
def delete_role(
    role_id: RolePath,
    principal: CanDelete,
    db: WriteSessionDep,
    reason: Annotated[str | None, Query(max_length=500)] = None,
) -> Response:
    service = RoleService(session=db)
    result = service.delete_role(role_id, actor_id=principal.user_id, reason=reason)
    if isinstance(result, Err):
        _raise(result.error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{roleId}/restore", response_model=RoleOut, summary="Restore a soft-deleted role")
def restore_role(role_id: RolePath, principal: CanUpdate, db: WriteSessionDep) -> RoleOut:
    service = RoleService(session=db)
    try:
        role = service.restore_role(role_id, actor_id=principal.user_id)
    except DomainError as exc:
        _raise(exc)
    return RoleOut.from_role(role)


__all__ = ["router"]
