"""Allow/deny evaluation over a user's resolved permission set.

Evaluation is fail-closed: entries that cannot be parsed into a
:class:`~crm_api.core.rbac.types.Permission` are skipped, so malformed data can
only ever remove access. Nothing in this module raises for bad permission data.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from crm_api.core.errors import ValidationError

from .types import Permission

logger = logging.getLogger(__name__)

type PermissionInput = Permission | Mapping[str, Any]


def _coerce(entry: object) -> Permission | None:
    if isinstance(entry, Permission):
        return entry
    if not isinstance(entry, Mapping):
        return None
    try:
        return Permission.from_mapping(entry)
    except (ValidationError, TypeError):
        return None


def normalize_permission_set(permission_set: Iterable[PermissionInput] | None) -> tuple[Permission, ...]:
    """Return the well-formed entries of ``permission_set``; malformed ones are dropped."""

    if permission_set is None or isinstance(permission_set, (str, bytes, Mapping)):
        return ()
    try:
        entries = list(permission_set)
    except TypeError:
        return ()

    normalized: list[Permission] = []
    skipped = 0
    for entry in entries:
        permission = _coerce(entry)
        if permission is None:
            skipped += 1
            continue
        normalized.append(permission)
    if skipped:
        logger.debug(
            "rbac.evaluate.malformed_entries_skipped",
            extra={"skipped": skipped, "total": len(entries)},
        )
    return tuple(normalized)


def merge_by_resource(permissions: Iterable[Permission]) -> dict[str, Permission]:
    """OR-merge entries that share a resource."""

    merged: dict[str, Permission] = {}
    for permission in permissions:
        current = merged.get(permission.resource)
        merged[permission.resource] = permission if current is None else current.merge(permission)
    return merged


def _normalize_query(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    return candidate or None


def _evaluate(
    merged: Mapping[str, Permission],
    resource: object,
    action: object,
    condition: object,
) -> bool:
    wanted_resource = _normalize_query(resource)
    wanted_action = _normalize_query(action)
    if wanted_resource is None or wanted_action is None:
        return False

    entry = merged.get(wanted_resource)
    if entry is None:
        return False
    if wanted_action not in entry.actions:
        return False

    if condition is None or condition == "":
        return True
    wanted_condition = _normalize_query(condition)
    if wanted_condition is None:
        return False
    return entry.conditions.get(wanted_condition) is True


def has_permission(
    permission_set: Iterable[PermissionInput] | None,
    resource: str,
    action: str,
    condition: str | None = None,
) -> bool:
    """Return ``True`` when ``permission_set`` grants ``action`` on ``resource``.

    Resource and action are compared lower-cased. When ``condition`` is given
    the merged entry must carry ``conditions[condition] is True``; without it,
    a matching action is sufficient. Role ``hierarchy_level`` plays no part.
    """

    merged = merge_by_resource(normalize_permission_set(permission_set))
    return _evaluate(merged, resource, action, condition)


class PermissionChecker:
    """Convenience wrapper binding a permission set for repeated checks."""

    def __init__(self, permission_set: Iterable[PermissionInput] | None = None) -> None:
        self._permissions: tuple[Permission, ...] = ()
        self._merged: dict[str, Permission] = {}
        self.replace(permission_set)

    @property
    def permissions(self) -> tuple[Permission, ...]:
        return self._permissions

    def replace(self, permission_set: Iterable[PermissionInput] | None) -> None:
        """Swap in a freshly resolved permission set (e.g. after a role change)."""

        self._permissions = normalize_permission_set(permission_set)
        self._merged = merge_by_resource(self._permissions)

    def has_permission(self, resource: str, action: str, condition: str | None = None) -> bool:
        return _evaluate(self._merged, resource, action, condition)

    def can_access(self, resource: str, actions: Sequence[str] = ("read",)) -> bool:
        """Return ``True`` when any of ``actions`` is granted on ``resource``."""

        return any(self.has_permission(resource, action) for action in actions)

    def can_create(self, resource: str) -> bool:
        return self.has_permission(resource, "create")

    def can_read(self, resource: str) -> bool:
        return self.has_permission(resource, "read")

    def can_update(self, resource: str) -> bool:
        return self.has_permission(resource, "update")

    def can_delete(self, resource: str) -> bool:
        return self.has_permission(resource, "delete")

    def can_assign(self, resource: str) -> bool:
        return self.has_permission(resource, "assign")

    def resources(self) -> list[str]:
        return sorted(self._merged)


__all__ = [
    "PermissionChecker",
    "PermissionInput",
    "has_permission",
    "merge_by_resource",
    "normalize_permission_set",
]
