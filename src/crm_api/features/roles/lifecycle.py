"""Role lifecycle rules: naming, department scoping, and status transitions."""

from __future__ import annotations

import re
from collections.abc import Mapping

from crm_api.core.errors import ImmutableEntityError, ValidationError
from crm_api.db.models import RoleStatus

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_REPEATED_UNDERSCORE = re.compile(r"_+")

MIN_HIERARCHY_LEVEL = 1
MAX_HIERARCHY_LEVEL = 10
MAX_NAME_LENGTH = 100
MAX_DISPLAY_NAME_LENGTH = 150
MAX_DESCRIPTION_LENGTH = 500
MAX_USERS_LIMIT = 1000

# ``deleted`` is reached only through soft delete, never through a status change.
STATUS_TRANSITIONS: Mapping[RoleStatus, frozenset[RoleStatus]] = {
    RoleStatus.ACTIVE: frozenset({RoleStatus.INACTIVE}),
    RoleStatus.INACTIVE: frozenset({RoleStatus.ACTIVE, RoleStatus.ARCHIVED}),
    RoleStatus.ARCHIVED: frozenset(),
    RoleStatus.DELETED: frozenset(),
}


def derive_role_name(display_name: str) -> str:
    """Derive a machine name from ``display_name``.

    >>> derive_role_name("  Sales -- Team Lead! ")
    'sales_team_lead'
    """

    candidate = _NON_ALNUM.sub("_", display_name.lower())
    candidate = _REPEATED_UNDERSCORE.sub("_", candidate)
    return candidate.strip("_")


def resolve_role_name(name: str | None, display_name: str | None) -> str:
    """Return the role name, deriving it from ``display_name`` when absent."""

    candidate = (name or "").strip().lower()
    if not candidate and display_name:
        candidate = derive_role_name(display_name)
    if not candidate:
        raise ValidationError("Role name is required", field="name")
    if len(candidate) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Role name cannot exceed {MAX_NAME_LENGTH} characters",
            field="name",
        )
    return candidate


def validate_display_name(display_name: str | None) -> str:
    candidate = (display_name or "").strip()
    if not candidate:
        raise ValidationError("Display name is required", field="display_name")
    if len(candidate) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(
            f"Display name cannot exceed {MAX_DISPLAY_NAME_LENGTH} characters",
            field="display_name",
        )
    return candidate


def validate_description(description: str | None) -> str | None:
    if description is None:
        return None
    candidate = description.strip()
    if len(candidate) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters",
            field="description",
        )
    return candidate or None


def validate_hierarchy_level(level: int) -> int:
    if not MIN_HIERARCHY_LEVEL <= level <= MAX_HIERARCHY_LEVEL:
        raise ValidationError(
            f"Hierarchy level must be between {MIN_HIERARCHY_LEVEL} and {MAX_HIERARCHY_LEVEL}",
            field="hierarchy_level",
        )
    return level


def validate_max_users(max_users: int | None) -> int | None:
    if max_users is None:
        return None
    if not 1 <= max_users <= MAX_USERS_LIMIT:
        raise ValidationError(
            f"Max users must be between 1 and {MAX_USERS_LIMIT}",
            field="max_users",
        )
    return max_users


def validate_department_scope(*, is_system_role: bool, has_department: bool) -> None:
    """System roles are global; every other role belongs to a department."""

    if is_system_role and has_department:
        raise ValidationError("System roles cannot belong to a department", field="department")
    if not is_system_role and not has_department:
        raise ValidationError("Department is required for non-system roles", field="department")


def check_status_transition(current: RoleStatus, target: RoleStatus) -> None:
    if target == current:
        return
    if target == RoleStatus.DELETED:
        raise ValidationError("Use delete to remove a role", field="status")
    if target not in STATUS_TRANSITIONS.get(current, frozenset()):
        raise ValidationError(
            f"Cannot change role status from {current.value} to {target.value}",
            field="status",
        )


def check_deletable(*, is_system_role: bool) -> ImmutableEntityError | None:
    """Return the error that blocks deletion, or ``None`` when the role may be deleted."""

    if is_system_role:
        return ImmutableEntityError("System roles cannot be deleted")
    return None


__all__ = [
    "MAX_HIERARCHY_LEVEL",
    "MIN_HIERARCHY_LEVEL",
    "STATUS_TRANSITIONS",
    "check_deletable",
    "check_status_transition",
    "derive_role_name",
    "resolve_role_name",
    "validate_department_scope",
    "validate_description",
    "validate_display_name",
    "validate_hierarchy_level",
    "validate_max_users",
]
