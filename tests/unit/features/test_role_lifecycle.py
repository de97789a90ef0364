from __future__ import annotations

import pytest

from crm_api.core.errors import ImmutableEntityError, ValidationError
from crm_api.db.models import RoleStatus
from crm_api.features.roles.lifecycle import (
    check_deletable,
    check_status_transition,
    derive_role_name,
    resolve_role_name,
    validate_department_scope,
    validate_hierarchy_level,
    validate_max_users,
)


@pytest.mark.parametrize(
    "display_name, expected",
    [
        ("Sales Manager", "sales_manager"),
        ("  Sales -- Team Lead! ", "sales_team_lead"),
        ("R&D / QA", "r_d_qa"),
        ("__Ops__", "ops"),
    ],
)
def test_derive_role_name(display_name: str, expected: str) -> None:
    assert derive_role_name(display_name) == expected


def test_explicit_name_wins_over_derivation() -> None:
    assert resolve_role_name("Custom", "Sales Manager") == "custom"
    assert resolve_role_name(None, "Sales Manager") == "sales_manager"


def test_name_required_when_nothing_to_derive_from() -> None:
    with pytest.raises(ValidationError) as excinfo:
        resolve_role_name(None, "!!!")
    assert excinfo.value.field == "name"


def test_department_scope_rules() -> None:
    validate_department_scope(is_system_role=True, has_department=False)
    validate_department_scope(is_system_role=False, has_department=True)

    with pytest.raises(ValidationError):
        validate_department_scope(is_system_role=True, has_department=True)
    with pytest.raises(ValidationError):
        validate_department_scope(is_system_role=False, has_department=False)


@pytest.mark.parametrize(
    "current, target",
    [
        (RoleStatus.ACTIVE, RoleStatus.INACTIVE),
        (RoleStatus.INACTIVE, RoleStatus.ACTIVE),
        (RoleStatus.INACTIVE, RoleStatus.ARCHIVED),
        (RoleStatus.ACTIVE, RoleStatus.ACTIVE),
    ],
)
def test_allowed_status_transitions(current: RoleStatus, target: RoleStatus) -> None:
    check_status_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (RoleStatus.ACTIVE, RoleStatus.ARCHIVED),
        (RoleStatus.ARCHIVED, RoleStatus.ACTIVE),
        (RoleStatus.ACTIVE, RoleStatus.DELETED),
        (RoleStatus.DELETED, RoleStatus.ACTIVE),
    ],
)
def test_rejected_status_transitions(current: RoleStatus, target: RoleStatus) -> None:
    with pytest.raises(ValidationError):
        check_status_transition(current, target)


def test_system_roles_are_not_deletable() -> None:
    assert isinstance(check_deletable(is_system_role=True), ImmutableEntityError)
    assert check_deletable(is_system_role=False) is None


def test_numeric_bounds() -> None:
    assert validate_hierarchy_level(1) == 1
    assert validate_hierarchy_level(10) == 10
    with pytest.raises(ValidationError):
        validate_hierarchy_level(11)
    with pytest.raises(ValidationError):
        validate_max_users(0)
    assert validate_max_users(None) is None
