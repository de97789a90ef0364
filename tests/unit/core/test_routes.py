from __future__ import annotations

import pytest

from crm_api.core.rbac.routes import RouteTarget, path_to_resource_action


@pytest.mark.parametrize(
    "path, expected",
    [
        ("", RouteTarget("dashboard", "read")),
        ("/", RouteTarget("dashboard", "read")),
        ("/projects", RouteTarget("projects", "read")),
        ("/projects/add", RouteTarget("projects", "create")),
        ("/projects/64f1a2b3c4d5e6f7a8b9c0d1/edit", RouteTarget("projects", "update")),
        ("/roles/64f1a2b3c4d5e6f7a8b9c0d1/permissions", RouteTarget("roles", "assign")),
        ("/users/64f1a2b3c4d5e6f7a8b9c0d1", RouteTarget("users", "read")),
    ],
)
def test_path_mapping(path: str, expected: RouteTarget) -> None:
    assert path_to_resource_action(path) == expected


def test_add_wins_over_edit_and_permissions() -> None:
    assert path_to_resource_action("/roles/edit/add").action == "create"
    assert path_to_resource_action("/roles/permissions/edit").action == "update"


def test_markers_must_be_whole_segments() -> None:
    assert path_to_resource_action("/projects/address-book").action == "read"


def test_to_dict() -> None:
    assert path_to_resource_action("/leads/add").to_dict() == {"resource": "leads", "action": "create"}
