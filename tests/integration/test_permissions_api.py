from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm_api.db.models import SystemPermission

pytestmark = pytest.mark.asyncio


async def test_missing_principal_header_is_unauthorized(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/me/permissions")

    assert response.status_code == 401
    assert response.json()["type"] == "unauthorized"


async def test_malformed_principal_is_unauthorized(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/me/permissions", headers={"X-User-Id": "not-a-uuid"})

    assert response.status_code == 401


async def test_unknown_and_inactive_users_are_unauthorized(async_client: AsyncClient, seeded_identity) -> None:
    unknown = await async_client.get(
        "/api/me/permissions",
        headers={"X-User-Id": "00000000-0000-0000-0000-000000000000"},
    )
    inactive = await async_client.get("/api/me/permissions", headers=seeded_identity.inactive.headers)

    assert unknown.status_code == 401
    assert inactive.status_code == 401


async def test_me_permissions_lists_role_entries(async_client: AsyncClient, seeded_identity) -> None:
    response = await async_client.get("/api/me/permissions", headers=seeded_identity.member.headers)

    assert response.status_code == 200
    payload = response.json()
    assert payload["role_name"] == "team_member"
    resources = [entry["resource"] for entry in payload["permissions"]]
    assert resources == sorted(resources)
    assert "permissions" not in resources
    profile = next(entry for entry in payload["permissions"] if entry["resource"] == "profile")
    assert profile["conditions"] == {"own": True}


async def test_user_without_role_has_no_permissions(async_client: AsyncClient, seeded_identity) -> None:
    response = await async_client.get("/api/me/permissions", headers=seeded_identity.orphan.headers)

    assert response.status_code == 200
    assert response.json()["permissions"] == []
    assert response.json()["role_id"] is None


async def test_list_system_permissions_requires_permission(async_client: AsyncClient, seeded_identity) -> None:
    denied = await async_client.get("/api/system-permissions", headers=seeded_identity.member.headers)
    allowed = await async_client.get(
        "/api/system-permissions",
        params={"category": "reporting"},
        headers=seeded_identity.admin.headers,
    )

    assert denied.status_code == 403
    assert denied.json()["type"] == "forbidden"
    assert allowed.status_code == 200
    assert {item["resource"] for item in allowed.json()["items"]} == {"reports", "dashboard"}


async def test_core_catalog_entry_cannot_be_deleted(async_client: AsyncClient, seeded_identity) -> None:
    response = await async_client.delete("/api/system-permissions/users", headers=seeded_identity.admin.headers)

    assert response.status_code == 409


async def test_optional_catalog_entry_is_deactivated(
    async_client: AsyncClient,
    seeded_identity,
    db_session: Session,
) -> None:
    response = await async_client.delete("/api/system-permissions/debug", headers=seeded_identity.admin.headers)
    again = await async_client.delete("/api/system-permissions/debug", headers=seeded_identity.admin.headers)

    assert response.status_code == 204
    assert again.status_code == 404
    db_session.expire_all()
    row = db_session.execute(select(SystemPermission).where(SystemPermission.resource == "debug")).scalar_one()
    assert row.is_active is False


async def test_delete_catalog_entry_forbidden_for_member(async_client: AsyncClient, seeded_identity) -> None:
    response = await async_client.delete("/api/system-permissions/debug", headers=seeded_identity.member.headers)

    assert response.status_code == 403


@pytest.mark.parametrize(
    ("path", "resource", "action", "allowed"),
    [
        ("/dashboard", "dashboard", "read", True),
        ("/communications/add", "communications", "create", True),
        ("/projects/7/edit", "projects", "update", False),
        ("/roles/permissions", "roles", "assign", False),
        ("", "dashboard", "read", True),
    ],
)
async def test_route_access_for_member(
    async_client: AsyncClient,
    seeded_identity,
    path: str,
    resource: str,
    action: str,
    allowed: bool,
) -> None:
    response = await async_client.get(
        "/api/access/route",
        params={"path": path},
        headers=seeded_identity.member.headers,
    )

    assert response.status_code == 200
    payload = response.json()
    assert (payload["resource"], payload["action"], payload["allowed"]) == (resource, action, allowed)
    assert payload["redirect_to"] == (None if allowed else "/dashboard")
