from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from crm_api.core.errors import (
    ConflictError,
    Err,
    ImmutableEntityError,
    NotFoundError,
    Ok,
    ValidationError,
)
from crm_api.db.models import Role, RoleStatus
from crm_api.features.roles.service import RoleService, role_permissions

SALES_PERMISSIONS = [
    {"resource": "leads", "actions": ["create", "read"], "conditions": {"assigned": True}},
    {"resource": "dashboard", "actions": ["read"]},
]


@pytest.fixture()
def service(db_session: Session, seeded_roles: dict[str, Role]) -> RoleService:
    return RoleService(session=db_session)


def _snapshot(role: Role) -> dict[str, object]:
    return {
        "name": role.name,
        "status": role.status,
        "is_deleted": role.is_deleted,
        "deleted_at": role.deleted_at,
        "permissions": list(role.permissions),
    }


def test_sync_seeds_system_and_department_roles(seeded_roles: dict[str, Role]) -> None:
    assert {"super_admin", "hr_manager", "department_head", "team_lead", "team_member"} <= set(
        seeded_roles
    )
    assert seeded_roles["super_admin"].is_system_role
    assert seeded_roles["super_admin"].department_id is None
    assert not seeded_roles["team_member"].is_system_role
    assert seeded_roles["team_member"].department is not None
    assert seeded_roles["team_member"].department.name == "general"


def test_sync_is_idempotent(service: RoleService, db_session: Session) -> None:
    before = len(service.list_roles())
    service.sync_system_roles()
    db_session.flush()

    assert len(service.list_roles()) == before


def test_create_role_derives_name_and_normalizes_permissions(service: RoleService) -> None:
    role = service.create_role(
        display_name="Sales Manager",
        department="general",
        permissions=SALES_PERMISSIONS,
        hierarchy_level=4,
        tags=["sales", "sales", " "],
    )

    assert role.name == "sales_manager"
    assert role.status == RoleStatus.ACTIVE
    assert role.tags == ["sales"]
    assert role.permissions[0] == {
        "resource": "leads",
        "actions": ["create", "read"],
        "conditions": {"assigned": True},
    }
    assert [permission.resource for permission in role_permissions(role)] == ["leads", "dashboard"]


def test_create_role_requires_department(service: RoleService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.create_role(display_name="Floating Role")

    assert excinfo.value.field == "department"


def test_system_role_cannot_have_department(service: RoleService) -> None:
    with pytest.raises(ValidationError):
        service.create_role(display_name="Global Auditor", department="general", is_system_role=True)


def test_unknown_department_is_not_found(service: RoleService) -> None:
    with pytest.raises(NotFoundError):
        service.create_role(display_name="Sales", department="nowhere")


def test_create_role_rejects_unknown_resource(service: RoleService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.create_role(
            display_name="Explorer",
            department="general",
            permissions=[{"resource": "spaceships", "actions": ["read"]}],
        )

    assert excinfo.value.field == "permissions[0].resource"


def test_create_role_rejects_malformed_resource_name(service: RoleService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.create_role(
            display_name="Portal Viewer",
            department="general",
            permissions=[{"resource": "client-portal", "actions": ["read"]}],
        )

    assert excinfo.value.field == "permissions[0].resource"
    assert "must match" in str(excinfo.value)


def test_create_role_rejects_unknown_action(service: RoleService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.create_role(
            display_name="Explorer",
            department="general",
            permissions=[{"resource": "projects", "actions": ["teleport"]}],
        )

    assert excinfo.value.field == "permissions[0].actions"


def test_duplicate_name_in_department_conflicts(service: RoleService) -> None:
    service.create_role(display_name="Sales Manager", department="general")

    with pytest.raises(ConflictError):
        service.create_role(display_name="Sales  Manager", department="general")


def test_delete_system_role_is_rejected_and_unchanged(
    service: RoleService,
    seeded_roles: dict[str, Role],
) -> None:
    role = seeded_roles["super_admin"]
    before = _snapshot(role)

    result = service.delete_role(role.id, actor_id=uuid4(), reason="cleanup")

    assert isinstance(result, Err)
    assert not result.ok
    assert isinstance(result.error, ImmutableEntityError)
    assert _snapshot(service.require_role(role.id)) == before


def test_delete_missing_role_returns_not_found(service: RoleService) -> None:
    result = service.delete_role(uuid4())

    assert isinstance(result, Err)
    assert isinstance(result.error, NotFoundError)


def test_soft_delete_records_audit_fields(service: RoleService) -> None:
    role = service.create_role(display_name="Temp Role", department="general")
    actor = uuid4()

    result = service.delete_role(role.id, actor_id=actor, reason="  merged into sales  ")

    assert isinstance(result, Ok)
    deleted = result.value
    assert deleted.is_deleted
    assert deleted.status == RoleStatus.DELETED
    assert deleted.deleted_by == actor
    assert deleted.deleted_at is not None
    assert deleted.deletion_reason == "merged into sales"
    assert service.get_role(role.id) is None
    assert service.get_role(role.id, include_deleted=True) is not None
    assert role.id not in {item.id for item in service.list_roles()}
    assert role.id in {item.id for item in service.list_roles(include_deleted=True)}


def test_restore_returns_role_as_inactive(service: RoleService) -> None:
    role = service.create_role(display_name="Temp Role", department="general")
    service.delete_role(role.id)

    restored = service.restore_role(role.id)

    assert not restored.is_deleted
    assert restored.status == RoleStatus.INACTIVE
    assert restored.deleted_at is None

    with pytest.raises(ValidationError):
        service.restore_role(role.id)


def test_status_transitions(service: RoleService) -> None:
    role = service.create_role(display_name="Seasonal", department="general")

    service.change_status(role.id, RoleStatus.INACTIVE)
    archived = service.change_status(role.id, RoleStatus.ARCHIVED)
    assert archived.status == RoleStatus.ARCHIVED

    with pytest.raises(ValidationError):
        service.change_status(role.id, RoleStatus.ACTIVE)


def test_system_roles_stay_active(service: RoleService, seeded_roles: dict[str, Role]) -> None:
    with pytest.raises(ImmutableEntityError):
        service.change_status(seeded_roles["hr_manager"].id, RoleStatus.INACTIVE)


def test_system_role_permissions_are_immutable(
    service: RoleService,
    seeded_roles: dict[str, Role],
) -> None:
    role = seeded_roles["super_admin"]

    with pytest.raises(ImmutableEntityError):
        service.replace_permissions(role.id, [{"resource": "dashboard", "actions": ["read"]}])
    with pytest.raises(ImmutableEntityError):
        service.update_role(role.id, department="general")

    updated = service.update_role(role.id, description="Keeps the lights on")
    assert updated.description == "Keeps the lights on"


def test_update_role_partial_fields(service: RoleService) -> None:
    role = service.create_role(
        display_name="Support",
        department="general",
        description="Helps customers",
        max_users=5,
    )

    updated = service.update_role(role.id, max_users=None, hierarchy_level=3)

    assert updated.max_users is None
    assert updated.hierarchy_level == 3
    assert updated.description == "Helps customers"


def test_filters_and_hierarchy(service: RoleService) -> None:
    system = service.find_system_roles()
    assert {role.name for role in system} == {"super_admin", "hr_manager"}

    general = service.list_roles(department="general")
    assert {role.name for role in general} >= {"department_head", "team_lead", "team_member"}

    junior = service.get_hierarchy_roles(6)
    assert [role.hierarchy_level for role in junior] == sorted(
        (role.hierarchy_level for role in junior), reverse=True
    )
    assert all(role.hierarchy_level <= 6 for role in junior)
    assert "super_admin" not in {role.name for role in junior}
