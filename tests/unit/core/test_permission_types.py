from __future__ import annotations

import pytest

from crm_api.core.errors import ValidationError
from crm_api.core.rbac.types import Permission, parse_permissions, validate_resource_name


def test_permission_lowercases_inputs() -> None:
    permission = Permission(resource=" Projects ", actions=["READ", "Update"], conditions={"Own": True})

    assert permission.resource == "projects"
    assert permission.actions == frozenset({"read", "update"})
    assert permission.conditions == {"own": True}


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"resource": "projects", "actions": []}, "actions"),
        ({"resource": "projects"}, "actions"),
        ({"resource": "", "actions": ["read"]}, "resource"),
        ({"resource": "projects", "actions": ["read"], "conditions": {"galaxy": True}}, "conditions"),
        ({"resource": "projects", "actions": ["read"], "conditions": {"own": "yes"}}, "conditions"),
    ],
)
def test_invalid_permission_shapes_raise(payload: dict, field: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        Permission.from_mapping(payload)

    assert excinfo.value.field == field


def test_actions_must_be_a_list_not_a_string() -> None:
    with pytest.raises(ValidationError):
        Permission(resource="projects", actions="read")


def test_merge_unions_actions_and_ors_conditions() -> None:
    first = Permission(resource="tasks", actions=["read"], conditions={"own": True, "department": False})
    second = Permission(resource="tasks", actions=["update"], conditions={"department": True})

    merged = first.merge(second)

    assert merged.actions == frozenset({"read", "update"})
    assert merged.conditions == {"own": True, "department": True}


def test_merge_rejects_other_resources() -> None:
    with pytest.raises(ValidationError):
        Permission(resource="tasks", actions=["read"]).merge(Permission(resource="leads", actions=["read"]))


def test_parse_permissions_reports_entry_index() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_permissions(
            [
                {"resource": "tasks", "actions": ["read"]},
                {"resource": "leads", "actions": []},
            ]
        )

    assert excinfo.value.field == "permissions[1].actions"


def test_to_dict_sorts_actions() -> None:
    permission = Permission(resource="leads", actions=["update", "create"], conditions={"assigned": True})

    assert permission.to_dict() == {
        "resource": "leads",
        "actions": ["create", "update"],
        "conditions": {"assigned": True},
    }


def test_construction_accepts_any_non_empty_resource_name() -> None:
    permission = Permission.from_mapping({"resource": "Client-Portal", "actions": ["read"]})

    assert permission.resource == "client-portal"


def test_resource_naming_rule_is_separate_from_construction() -> None:
    assert validate_resource_name("client_portal") == "client_portal"
    with pytest.raises(ValidationError) as excinfo:
        validate_resource_name("client-portal", field="permissions[0].resource")

    assert excinfo.value.field == "permissions[0].resource"
