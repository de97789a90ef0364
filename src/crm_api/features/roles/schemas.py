from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from crm_api.common.schema import BaseSchema
from crm_api.db.models import Role, RoleStatus

from .service import role_permissions


class PermissionEntry(BaseSchema):
    """A ``(resource, actions, conditions)`` triple as sent over the wire."""

    resource: str
    actions: list[str]
    conditions: dict[str, bool] = Field(default_factory=dict)


class RoleCreate(BaseSchema):
    """Payload for creating a department role."""

    display_name: str
    name: str | None = None
    description: str | None = None
    department: UUID | str
    permissions: list[PermissionEntry] = Field(default_factory=list)
    hierarchy_level: int = 1
    max_users: int | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)


class RoleUpdate(BaseSchema):
    """Partial update; only fields present in the payload are applied."""

    display_name: str | None = None
    description: str | None = None
    department: UUID | str | None = None
    permissions: list[PermissionEntry] | None = None
    hierarchy_level: int | None = None
    max_users: int | None = None
    notes: str | None = None
    tags: list[str] | None = None


class RolePermissionsReplace(BaseSchema):
    permissions: list[PermissionEntry]


class RoleStatusChange(BaseSchema):
    status: RoleStatus


class RoleOut(BaseSchema):
    """API representation of a role."""

    id: UUID
    name: str
    display_name: str
    description: str | None
    department_id: UUID | None
    department: str | None
    permissions: list[PermissionEntry]
    hierarchy_level: int
    is_system_role: bool
    status: RoleStatus
    max_users: int | None
    valid_from: datetime | None
    valid_until: datetime | None
    notes: str | None
    tags: list[str]
    is_deleted: bool
    deleted_at: datetime | None
    deleted_by: UUID | None
    deletion_reason: str | None
    created_at: datetime
    updated_at: datetime | None

    @classmethod
    def from_role(cls, role: Role) -> RoleOut:
        return cls(
            id=role.id,
            name=role.name,
            display_name=role.display_name,
            description=role.description,
            department_id=role.department_id,
            department=role.department.name if role.department is not None else None,
            permissions=[
                PermissionEntry(**permission.to_dict()) for permission in role_permissions(role)
            ],
            hierarchy_level=role.hierarchy_level,
            is_system_role=role.is_system_role,
            status=role.status,
            max_users=role.max_users,
            valid_from=role.valid_from,
            valid_until=role.valid_until,
            notes=role.notes,
            tags=list(role.tags or []),
            is_deleted=role.is_deleted,
            deleted_at=role.deleted_at,
            deleted_by=role.deleted_by,
            deletion_reason=role.deletion_reason,
            created_at=role.created_at,
            updated_at=role.updated_at,
        )


class RoleList(BaseSchema):
    items: list[RoleOut]


def permissions_payload(entries: list[PermissionEntry]) -> list[dict[str, Any]]:
    return [entry.model_dump() for entry in entries]


__all__ = [
    "PermissionEntry",
    "RoleCreate",
    "RoleList",
    "RoleOut",
    "RolePermissionsReplace",
    "RoleStatusChange",
    "RoleUpdate",
    "permissions_payload",
]
