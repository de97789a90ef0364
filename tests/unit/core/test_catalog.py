from __future__ import annotations

from crm_api.core.rbac.catalog import (
    ACTIONS,
    CATALOG,
    CATEGORIES,
    CONDITIONS,
    PERMISSION_KEYS,
    get_action_conditions,
    get_available_actions_for_resource,
    get_catalog_entry,
    get_core_permissions,
    get_permissions_by_category,
    is_known_resource,
)
from crm_api.core.rbac.types import RESOURCE_PATTERN


def test_unknown_resource_has_no_actions() -> None:
    assert get_available_actions_for_resource("spaceships") == []
    assert get_catalog_entry("spaceships") is None
    assert not is_known_resource("spaceships")


def test_available_actions_for_known_resource() -> None:
    actions = get_available_actions_for_resource("Users")

    assert {"create", "read", "update", "delete", "assign"} <= set(actions)


def test_core_permissions_exclude_optional_entries() -> None:
    core = {definition.resource for definition in get_core_permissions()}

    assert {"users", "roles", "permissions", "backup", "dashboard"} <= core
    assert "email" not in core
    assert "debug" not in core


def test_catalog_entries_use_known_vocabulary() -> None:
    resources = [definition.resource for definition in CATALOG]
    assert len(resources) == len(set(resources))
    for definition in CATALOG:
        assert RESOURCE_PATTERN.match(definition.resource)
        assert definition.category in CATEGORIES
        assert definition.available_actions
        for entry in definition.available_actions:
            assert entry.action in ACTIONS
            assert set(entry.conditions) <= set(CONDITIONS)


def test_permission_keys_are_flattened() -> None:
    assert PERMISSION_KEYS["USERS_READ"] == ("users", "read")
    assert PERMISSION_KEYS["BACKUP_IMPORT"] == ("backup", "import")


def test_action_conditions_and_category_lookup() -> None:
    assert "own" in get_action_conditions("users", "read")
    assert get_action_conditions("users", "teleport") == []
    assert get_action_conditions("nope", "read") == []

    reporting = {definition.resource for definition in get_permissions_by_category("reporting")}
    assert {"reports", "dashboard"} <= reporting
