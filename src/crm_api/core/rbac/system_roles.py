"""Seed data for built-in roles."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from .types import Permission

GENERAL_DEPARTMENT = "general"

_FULL = ("create", "read", "update", "delete", "assign")


@dataclass(frozen=True)
class SystemRoleDefinition:
    """Seed data for a built-in role.

    Roles with ``is_system_role`` are global (no department) and cannot be
    deleted. The remaining seeds are department templates attached to
    :data:`GENERAL_DEPARTMENT`.
    """

    name: str
    display_name: str
    description: str
    hierarchy_level: int
    permissions: tuple[Permission, ...]
    is_system_role: bool = True

    @property
    def department(self) -> str | None:
        return None if self.is_system_role else GENERAL_DEPARTMENT


def _p(resource: str, *actions: str, **conditions: bool) -> Permission:
    return Permission(resource=resource, actions=frozenset(actions), conditions=conditions)


_BASELINE_MEMBER = (
    _p("profile", "read", "update", own=True),
    _p("users", "read", own=True, department=True),
    _p("departments", "read"),
    _p("roles", "read"),
    _p("communications", "create", "read", "update", "assign"),
    _p("reports", "read", "export"),
    _p("dashboard", "read"),
)

SYSTEM_ROLES: tuple[SystemRoleDefinition, ...] = (
    SystemRoleDefinition(
        name="super_admin",
        display_name="Super Administrator",
        description="Full system access with all permissions - Cannot be modified or deleted",
        hierarchy_level=10,
        permissions=(
            _p("profile", "read", "update", own=True),
            _p("users", *_FULL),
            _p("departments", *_FULL),
            _p("roles", *_FULL),
            _p("communications", *_FULL),
            _p(
                "system",
                "create",
                "read",
                "update",
                "delete",
                "manage",
                "configure",
                "audit",
                "archive",
                "export",
                "import",
                unrestricted=True,
            ),
            _p("audit_logs", "read", "export", "archive"),
            _p("reports", "create", "read", "update", "delete", "export"),
            _p("dashboard", "read"),
            _p("settings", "create", "read", "update", "delete"),
            _p("backup", "create", "read", "export", "import"),
            _p("permissions", *_FULL),
            _p("leads", *_FULL),
            _p("projects", *_FULL),
            _p("tasks", *_FULL),
            _p("proposals", *_FULL),
            _p("email", "create", "read", "update", "delete", unrestricted=True),
            _p("upload", "create", "read", "update", "delete", unrestricted=True),
        ),
    ),
    SystemRoleDefinition(
        name="hr_manager",
        display_name="HR Manager",
        description="Human Resources management with user and department oversight",
        hierarchy_level=8,
        permissions=(
            _p("profile", "read", "update", own=True),
            _p("users", "create", "read", "update", "assign", subordinates=True),
            _p("departments", "read", "update"),
            _p("roles", "read", "assign"),
            _p("communications", "create", "read", "update", "assign"),
            _p("reports", "create", "read", "export"),
            _p("dashboard", "read"),
            _p("audit_logs", "read"),
        ),
    ),
    SystemRoleDefinition(
        name="department_head",
        display_name="Department Head",
        description="Department leadership with team management and reporting",
        hierarchy_level=7,
        is_system_role=False,
        permissions=(
            _p("profile", "read", "update", own=True),
            _p("users", "read", "update", department=True),
            _p("departments", "read"),
            _p("roles", "read"),
            _p("communications", "create", "read", "update", "assign"),
            _p("reports", "create", "read", "export"),
            _p("dashboard", "read"),
        ),
    ),
    SystemRoleDefinition(
        name="team_lead",
        display_name="Team Lead",
        description="Team leadership with project oversight and team coordination",
        hierarchy_level=6,
        is_system_role=False,
        permissions=_BASELINE_MEMBER,
    ),
    SystemRoleDefinition(
        name="team_member",
        display_name="Team Member",
        description="Team member with project tasks and collaboration capabilities",
        hierarchy_level=5,
        is_system_role=False,
        permissions=_BASELINE_MEMBER,
    ),
)

SYSTEM_ROLE_BY_NAME: Mapping[str, SystemRoleDefinition] = {
    definition.name: definition for definition in SYSTEM_ROLES
}

__all__ = [
    "GENERAL_DEPARTMENT",
    "SYSTEM_ROLES",
    "SYSTEM_ROLE_BY_NAME",
    "SystemRoleDefinition",
]
