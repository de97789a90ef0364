"""Canonical permission catalog for the CRM's resource/action RBAC."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

RESOURCES: tuple[str, ...] = (
    "users",
    "roles",
    "departments",
    "permissions",
    "system",
    "projects",
    "tasks",
    "leads",
    "proposals",
    "reports",
    "dashboard",
    "audit_logs",
    "settings",
    "backup",
    "communications",
    "profile",
)

ACTIONS: tuple[str, ...] = (
    "create",
    "read",
    "update",
    "delete",
    "assign",
    "approve",
    "reject",
    "export",
    "import",
    "archive",
    "manage",
    "configure",
    "audit",
)

CONDITIONS: tuple[str, ...] = (
    "own",
    "department",
    "assigned",
    "subordinates",
    "unrestricted",
)

CATEGORIES: frozenset[str] = frozenset(
    {
        "user_management",
        "department_management",
        "role_management",
        "system_administration",
        "reporting",
        "data_management",
        "security",
        "integration",
        "communication_management",
        "project_management",
        "task_management",
        "lead_management",
        "proposal_management",
        "custom",
    }
)


@dataclass(frozen=True)
class ResourceAction:
    """One action a resource supports, with the conditions it may carry."""

    action: str
    description: str
    conditions: tuple[str, ...] = ()


@dataclass(frozen=True)
class PermissionDefinition:
    """Describes a protectable resource in the catalog."""

    resource: str
    display_name: str
    description: str
    category: str
    available_actions: tuple[ResourceAction, ...]
    is_core: bool = True

    @property
    def action_names(self) -> tuple[str, ...]:
        return tuple(entry.action for entry in self.available_actions)


def _crud(noun: str, *, read_update: tuple[str, ...] = ("own", "unrestricted")) -> tuple[ResourceAction, ...]:
    return (
        ResourceAction("create", f"Create new {noun}"),
        ResourceAction("read", f"View {noun} information", read_update),
        ResourceAction("update", f"Update {noun} information", read_update),
        ResourceAction("delete", f"Delete/deactivate {noun}"),
        ResourceAction("assign", f"Assign users to {noun}"),
    )


CATALOG: tuple[PermissionDefinition, ...] = (
    PermissionDefinition(
        resource="users",
        display_name="User Management",
        description="Manage user accounts and profiles",
        category="user_management",
        available_actions=(
            ResourceAction("create", "Create new users", ("department", "subordinates")),
            ResourceAction(
                "read",
                "View user information",
                ("own", "department", "subordinates", "unrestricted"),
            ),
            ResourceAction(
                "update",
                "Update user information",
                ("own", "department", "subordinates", "unrestricted"),
            ),
            ResourceAction("delete", "Delete/deactivate users", ("department", "subordinates")),
            ResourceAction(
                "assign",
                "Assign users to roles or departments",
                ("department", "subordinates"),
            ),
        ),
    ),
    PermissionDefinition(
        resource="departments",
        display_name="Department Management",
        description="Manage organizational departments",
        category="department_management",
        available_actions=_crud("departments"),
    ),
    PermissionDefinition(
        resource="communications",
        display_name="Communication Management",
        description="Manage organizational communications",
        category="communication_management",
        available_actions=_crud("communications"),
    ),
    PermissionDefinition(
        resource="roles",
        display_name="Role Management",
        description="Manage user roles and permissions",
        category="role_management",
        available_actions=(
            ResourceAction("create", "Create new roles", ("department",)),
            ResourceAction("read", "View role information", ("department", "unrestricted")),
            ResourceAction("update", "Update role permissions", ("department", "unrestricted")),
            ResourceAction("delete", "Delete roles", ("department",)),
            ResourceAction("assign", "Assign roles to users", ("department", "subordinates")),
        ),
    ),
    PermissionDefinition(
        resource="projects",
        display_name="Projects Management",
        description="Manage organizational projects",
        category="project_management",
        available_actions=_crud("projects"),
    ),
    PermissionDefinition(
        resource="tasks",
        display_name="Tasks Management",
        description="Manage organizational tasks",
        category="task_management",
        available_actions=_crud("tasks"),
    ),
    PermissionDefinition(
        resource="leads",
        display_name="Leads Management",
        description="Manage organizational leads",
        category="lead_management",
        available_actions=_crud("leads"),
    ),
    PermissionDefinition(
        resource="proposals",
        display_name="Proposals Management",
        description="Manage organizational proposals",
        category="proposal_management",
        available_actions=_crud("proposals"),
    ),
    PermissionDefinition(
        resource="system",
        display_name="System Administration",
        description="System-wide configuration and maintenance",
        category="system_administration",
        available_actions=(
            ResourceAction("read", "View system information"),
            ResourceAction("manage", "Manage system operations"),
            ResourceAction("configure", "Configure system settings"),
            ResourceAction("audit", "Audit system activities"),
            ResourceAction("archive", "Archive system data"),
            ResourceAction("export", "Export system data"),
            ResourceAction("import", "Import system data"),
        ),
    ),
    PermissionDefinition(
        resource="permissions",
        display_name="Permission Management",
        description="Manage system permissions",
        category="system_administration",
        available_actions=(
            ResourceAction("read", "View permissions"),
            ResourceAction("manage", "Manage permissions"),
        ),
    ),
    PermissionDefinition(
        resource="reports",
        display_name="Reports and Analytics",
        description="Generate and view system reports",
        category="reporting",
        available_actions=(
            ResourceAction("create", "Generate reports", ("department", "unrestricted")),
            ResourceAction("read", "View reports", ("own", "department", "unrestricted")),
            ResourceAction("update", "Modify existing reports", ("own", "department")),
            ResourceAction("delete", "Delete reports", ("own", "department")),
            ResourceAction("export", "Export report data"),
        ),
    ),
    PermissionDefinition(
        resource="dashboard",
        display_name="Dashboard Access",
        description="Access to various dashboard views",
        category="reporting",
        available_actions=(
            ResourceAction("read", "View dashboard", ("own", "department", "unrestricted")),
            ResourceAction("export", "Export dashboard data"),
        ),
    ),
    PermissionDefinition(
        resource="audit_logs",
        display_name="Audit Logs",
        description="View and manage audit logs",
        category="security",
        available_actions=(
            ResourceAction("read", "View audit logs", ("department", "unrestricted")),
            ResourceAction("export", "Export audit logs"),
            ResourceAction("archive", "Archive old audit logs"),
        ),
    ),
    PermissionDefinition(
        resource="settings",
        display_name="System Settings",
        description="Manage application settings",
        category="system_administration",
        available_actions=(
            ResourceAction("read", "View settings", ("own", "department", "unrestricted")),
            ResourceAction("update", "Update settings", ("own", "department", "unrestricted")),
        ),
    ),
    PermissionDefinition(
        resource="backup",
        display_name="Backup and Recovery",
        description="System backup and data recovery operations",
        category="system_administration",
        available_actions=(
            ResourceAction("create", "Create system backups"),
            ResourceAction("read", "View backup status"),
            ResourceAction("export", "Export backup files"),
            ResourceAction("import", "Import/restore from backups"),
        ),
    ),
    PermissionDefinition(
        resource="profile",
        display_name="Profile Management",
        description="Manage personal profile and settings",
        category="user_management",
        available_actions=(
            ResourceAction("read", "View own profile", ("own",)),
            ResourceAction("update", "Update own profile", ("own",)),
        ),
    ),
    PermissionDefinition(
        resource="email",
        display_name="Email",
        description="Compose and review outgoing email",
        category="communication_management",
        is_core=False,
        available_actions=(
            ResourceAction("create", "Send email", ("unrestricted",)),
            ResourceAction("read", "View sent email", ("own", "unrestricted")),
            ResourceAction("update", "Edit drafts", ("own", "unrestricted")),
            ResourceAction("delete", "Delete email logs", ("unrestricted",)),
        ),
    ),
    PermissionDefinition(
        resource="upload",
        display_name="File Uploads",
        description="Upload and manage stored files",
        category="data_management",
        is_core=False,
        available_actions=(
            ResourceAction("create", "Upload files", ("unrestricted",)),
            ResourceAction("read", "View uploaded files", ("own", "unrestricted")),
            ResourceAction("update", "Replace uploaded files", ("own", "unrestricted")),
            ResourceAction("delete", "Delete uploaded files", ("own", "unrestricted")),
        ),
    ),
    PermissionDefinition(
        resource="debug",
        display_name="Debug and Testing",
        description="Debug endpoints for testing permissions and authentication",
        category="system_administration",
        is_core=False,
        available_actions=(
            ResourceAction("read", "Access debug information and test endpoints"),
        ),
    ),
)

CATALOG_REGISTRY: Mapping[str, PermissionDefinition] = {
    definition.resource: definition for definition in CATALOG
}

# Flattened "<RESOURCE>_<ACTION>" keys, e.g. PERMISSION_KEYS["USERS_READ"].
PERMISSION_KEYS: Mapping[str, tuple[str, str]] = {
    f"{definition.resource.upper()}_{entry.action.upper()}": (definition.resource, entry.action)
    for definition in CATALOG
    for entry in definition.available_actions
}


def _normalize(value: str) -> str:
    return value.strip().lower()


def all_catalog_entries() -> tuple[PermissionDefinition, ...]:
    return CATALOG


def get_catalog_entry(resource: str) -> PermissionDefinition | None:
    """Return the catalog definition for ``resource`` or ``None``."""

    return CATALOG_REGISTRY.get(_normalize(resource))


def get_available_actions_for_resource(resource: str) -> list[str]:
    """Return the action names ``resource`` supports.

    Unknown resources yield an empty list: "no actions defined" rather than an
    error.
    """

    definition = get_catalog_entry(resource)
    if definition is None:
        return []
    return list(definition.action_names)


def get_action_conditions(resource: str, action: str) -> list[str]:
    definition = get_catalog_entry(resource)
    if definition is None:
        return []
    wanted = _normalize(action)
    for entry in definition.available_actions:
        if entry.action == wanted:
            return list(entry.conditions)
    return []


def get_core_permissions() -> list[PermissionDefinition]:
    """Return the catalog entries flagged ``is_core`` (never user-deletable)."""

    return [definition for definition in CATALOG if definition.is_core]


def get_permissions_by_category(category: str) -> list[PermissionDefinition]:
    wanted = _normalize(category)
    return [definition for definition in CATALOG if definition.category == wanted]


def is_known_resource(resource: str) -> bool:
    return _normalize(resource) in CATALOG_REGISTRY


__all__ = [
    "ACTIONS",
    "CATALOG",
    "CATALOG_REGISTRY",
    "CATEGORIES",
    "CONDITIONS",
    "PERMISSION_KEYS",
    "PermissionDefinition",
    "RESOURCES",
    "ResourceAction",
    "all_catalog_entries",
    "get_action_conditions",
    "get_available_actions_for_resource",
    "get_catalog_entry",
    "get_core_permissions",
    "get_permissions_by_category",
    "is_known_resource",
]
