"""RBAC vocabulary, permission records, and evaluation shared across features."""

from .catalog import (
    ACTIONS,
    CATALOG,
    CATALOG_REGISTRY,
    CONDITIONS,
    PERMISSION_KEYS,
    PermissionDefinition,
    ResourceAction,
    get_available_actions_for_resource,
    get_catalog_entry,
    get_core_permissions,
)
from .evaluator import PermissionChecker, has_permission
from .routes import RouteTarget, path_to_resource_action
from .system_roles import SYSTEM_ROLE_BY_NAME, SYSTEM_ROLES, SystemRoleDefinition
from .types import Permission, parse_permissions

__all__ = [
    "ACTIONS",
    "CATALOG",
    "CATALOG_REGISTRY",
    "CONDITIONS",
    "PERMISSION_KEYS",
    "Permission",
    "PermissionChecker",
    "PermissionDefinition",
    "ResourceAction",
    "RouteTarget",
    "SYSTEM_ROLES",
    "SYSTEM_ROLE_BY_NAME",
    "SystemRoleDefinition",
    "get_available_actions_for_resource",
    "get_catalog_entry",
    "get_core_permissions",
    "has_permission",
    "parse_permissions",
    "path_to_resource_action",
]
