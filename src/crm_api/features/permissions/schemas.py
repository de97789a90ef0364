from __future__ import annotations

from uuid import UUID

from crm_api.common.schema import BaseSchema


class ResourceActionOut(BaseSchema):
    action: str
    description: str
    conditions: list[str]


class SystemPermissionOut(BaseSchema):
    """API representation of a persisted catalog entry."""

    id: UUID
    resource: str
    display_name: str
    description: str
    category: str
    available_actions: list[ResourceActionOut]
    is_core: bool
    is_active: bool


class SystemPermissionList(BaseSchema):
    items: list[SystemPermissionOut]


class EffectivePermissionOut(BaseSchema):
    resource: str
    actions: list[str]
    conditions: dict[str, bool]


class MyPermissionsOut(BaseSchema):
    """The caller's role and its permission triples."""

    user_id: UUID
    role_id: UUID | None
    role_name: str | None
    permissions: list[EffectivePermissionOut]


__all__ = [
    "EffectivePermissionOut",
    "MyPermissionsOut",
    "ResourceActionOut",
    "SystemPermissionList",
    "SystemPermissionOut",
]
