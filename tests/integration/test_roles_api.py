from __future__ import annotations

from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy.orm import Session

from crm_api.db.models import Role, RoleStatus

pytestmark = pytest.mark.asyncio

SALES_ROLE = {
    "display_name": "Sales Manager",
    "department": "general",
    "hierarchy_level": 4,
    "permissions": [
        {"resource": "leads", "actions": ["create", "read"], "conditions": {"assigned": True}},
        {"resource": "dashboard", "actions": ["read"]},
    ],
    "tags": ["sales"],
}


async def _create_sales_role(client: AsyncClient, headers: dict[str, str]) -> dict:
    response = await client.post("/api/roles", json=SALES_ROLE, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_list_roles_hides_deleted_by_default(async_client: AsyncClient, seeded_identity) -> None:
    response = await async_client.get("/api/roles", headers=seeded_identity.member.headers)

    assert response.status_code == 200
    names = {item["name"] for item in response.json()["items"]}
    assert {"super_admin", "hr_manager", "team_member"} <= names


async def test_create_role_derives_name(async_client: AsyncClient, seeded_identity) -> None:
    role = await _create_sales_role(async_client, seeded_identity.admin.headers)

    assert role["name"] == "sales_manager"
    assert role["department"] == "general"
    assert role["status"] == "active"
    assert role["is_system_role"] is False
    assert role["permissions"][0]["conditions"] == {"assigned": True}


async def test_create_role_requires_create_permission(async_client: AsyncClient, seeded_identity) -> None:
    response = await async_client.post("/api/roles", json=SALES_ROLE, headers=seeded_identity.hr_manager.headers)

    assert response.status_code == 403


async def test_duplicate_role_name_conflicts(async_client: AsyncClient, seeded_identity) -> None:
    await _create_sales_role(async_client, seeded_identity.admin.headers)

    response = await async_client.post("/api/roles", json=SALES_ROLE, headers=seeded_identity.admin.headers)

    assert response.status_code == 409


async def test_create_role_rejects_unknown_action(async_client: AsyncClient, seeded_identity) -> None:
    payload = {**SALES_ROLE, "permissions": [{"resource": "leads", "actions": ["teleport"]}]}

    response = await async_client.post("/api/roles", json=payload, headers=seeded_identity.admin.headers)

    assert response.status_code == 422
    assert response.json()["type"] == "validation_error"


async def test_update_and_replace_permissions(async_client: AsyncClient, seeded_identity) -> None:
    role = await _create_sales_role(async_client, seeded_identity.admin.headers)

    updated = await async_client.patch(
        f"/api/roles/{role['id']}",
        json={"description": "Owns the pipeline", "hierarchy_level": 5},
        headers=seeded_identity.admin.headers,
    )
    replaced = await async_client.put(
        f"/api/roles/{role['id']}/permissions",
        json={"permissions": [{"resource": "reports", "actions": ["read"]}]},
        headers=seeded_identity.admin.headers,
    )

    assert updated.status_code == 200
    assert updated.json()["description"] == "Owns the pipeline"
    assert updated.json()["hierarchy_level"] == 5
    assert replaced.status_code == 200
    assert [entry["resource"] for entry in replaced.json()["permissions"]] == ["reports"]


async def test_system_role_permissions_are_immutable(
    async_client: AsyncClient,
    seeded_identity,
    seeded_roles: dict[str, Role],
) -> None:
    role_id = seeded_roles["super_admin"].id

    response = await async_client.put(
        f"/api/roles/{role_id}/permissions",
        json={"permissions": [{"resource": "dashboard", "actions": ["read"]}]},
        headers=seeded_identity.admin.headers,
    )

    assert response.status_code == 409


async def test_system_role_cannot_be_deleted(
    async_client: AsyncClient,
    seeded_identity,
    seeded_roles: dict[str, Role],
) -> None:
    response = await async_client.delete(
        f"/api/roles/{seeded_roles['super_admin'].id}",
        headers=seeded_identity.admin.headers,
    )

    assert response.status_code == 409
    assert response.json()["type"] == "immutable_entity"


async def test_status_transitions(async_client: AsyncClient, seeded_identity) -> None:
    role = await _create_sales_role(async_client, seeded_identity.admin.headers)
    url = f"/api/roles/{role['id']}/status"
    headers = seeded_identity.admin.headers

    skipped = await async_client.post(url, json={"status": "archived"}, headers=headers)
    inactive = await async_client.post(url, json={"status": "inactive"}, headers=headers)
    archived = await async_client.post(url, json={"status": "archived"}, headers=headers)

    assert skipped.status_code == 422
    assert inactive.json()["status"] == "inactive"
    assert archived.json()["status"] == "archived"


async def test_soft_delete_and_restore(
    async_client: AsyncClient,
    seeded_identity,
    db_session: Session,
) -> None:
    role = await _create_sales_role(async_client, seeded_identity.admin.headers)
    headers = seeded_identity.admin.headers

    deleted = await async_client.delete(
        f"/api/roles/{role['id']}",
        params={"reason": "reorg"},
        headers=headers,
    )
    listed = await async_client.get("/api/roles", headers=headers)
    listed_all = await async_client.get("/api/roles", params={"includeDeleted": "true"}, headers=headers)

    assert deleted.status_code == 204
    assert role["id"] not in {item["id"] for item in listed.json()["items"]}
    assert role["id"] in {item["id"] for item in listed_all.json()["items"]}

    db_session.expire_all()
    stored = db_session.get(Role, UUID(role["id"]))
    assert stored is not None
    assert stored.status == RoleStatus.DELETED
    assert stored.deletion_reason == "reorg"

    restored = await async_client.post(f"/api/roles/{role['id']}/restore", headers=headers)

    assert restored.status_code == 200
    assert restored.json()["status"] == "inactive"
    assert restored.json()["is_deleted"] is False


async def test_restore_requires_deleted_role(async_client: AsyncClient, seeded_identity) -> None:
    role = await _create_sales_role(async_client, seeded_identity.admin.headers)

    response = await async_client.post(f"/api/roles/{role['id']}/restore", headers=seeded_identity.admin.headers)

    assert response.status_code == 422


async def test_unknown_role_is_not_found(async_client: AsyncClient, seeded_identity) -> None:
    response = await async_client.get(
        "/api/roles/00000000-0000-0000-0000-000000000000",
        headers=seeded_identity.admin.headers,
    )

    assert response.status_code == 404


async def test_inactive_role_grants_nothing(async_client: AsyncClient, seeded_identity, seeded_roles) -> None:
    role_id = seeded_roles["team_member"].id

    changed = await async_client.post(
        f"/api/roles/{role_id}/status",
        json={"status": "inactive"},
        headers=seeded_identity.admin.headers,
    )
    mine = await async_client.get("/api/me/permissions", headers=seeded_identity.member.headers)

    assert changed.status_code == 200
    assert mine.json()["permissions"] == []
