"""Structured permission records validated at construction."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from crm_api.core.errors import ValidationError

from .catalog import CONDITIONS

RESOURCE_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")

_EMPTY_CONDITIONS: Mapping[str, bool] = MappingProxyType({})


def normalize_resource(value: str) -> str:
    if not isinstance(value, str):
        raise ValidationError("Permission resource must be a string", field="resource")
    candidate = value.strip().lower()
    if not candidate:
        raise ValidationError("Permission resource is required", field="resource")
    return candidate


def validate_resource_name(resource: str, *, field: str = "resource") -> str:
    """Reject resource names a role may not be saved with."""

    if not RESOURCE_PATTERN.match(resource):
        raise ValidationError(
            f"Resource '{resource}' must match {RESOURCE_PATTERN.pattern}",
            field=field,
        )
    return resource


def normalize_actions(values: Iterable[str]) -> frozenset[str]:
    if isinstance(values, str) or not isinstance(values, Iterable):
        raise ValidationError("Permission actions must be a list", field="actions")
    raw = list(values)
    if any(not isinstance(value, str) for value in raw):
        raise ValidationError("Permission actions must be strings", field="actions")
    actions = frozenset(value.strip().lower() for value in raw) - {""}
    if not actions:
        raise ValidationError("Permission actions cannot be empty", field="actions")
    return actions


def normalize_conditions(values: Mapping[str, Any] | None) -> Mapping[str, bool]:
    if not values:
        return _EMPTY_CONDITIONS
    if not isinstance(values, Mapping):
        raise ValidationError("Permission conditions must be an object", field="conditions")
    normalized: dict[str, bool] = {}
    for raw_key, raw_value in values.items():
        key = str(raw_key).strip().lower()
        if key not in CONDITIONS:
            raise ValidationError(f"Unknown condition '{raw_key}'", field="conditions")
        if not isinstance(raw_value, bool):
            raise ValidationError(
                f"Condition '{key}' must be a boolean",
                field="conditions",
            )
        normalized[key] = raw_value
    return MappingProxyType(normalized)


@dataclass(frozen=True, slots=True)
class Permission:
    """A ``(resource, actions, conditions)`` triple.

    Inputs are lower-cased on construction. ``actions`` must be non-empty and
    every condition key must be one of :data:`~crm_api.core.rbac.catalog.CONDITIONS`.
    The naming rule and catalog membership of ``resource`` are checked by the
    role service when a role is saved, not here.
    """

    resource: str
    actions: frozenset[str]
    conditions: Mapping[str, bool] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "resource", normalize_resource(self.resource))
        object.__setattr__(self, "actions", normalize_actions(self.actions))
        object.__setattr__(self, "conditions", normalize_conditions(self.conditions))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> Permission:
        """Build a permission from a loosely-typed ``{resource, actions, conditions}`` map."""

        if not isinstance(payload, Mapping):
            raise ValidationError("Permission entry must be an object")
        actions = payload.get("actions")
        if actions is None:
            raise ValidationError("Permission actions cannot be empty", field="actions")
        return cls(
            resource=payload.get("resource", ""),
            actions=actions,
            conditions=payload.get("conditions") or {},
        )

    def grants(self, action: str) -> bool:
        return action.strip().lower() in self.actions

    def condition(self, name: str) -> bool:
        return self.conditions.get(name.strip().lower()) is True

    def merge(self, other: Permission) -> Permission:
        """Union actions and OR conditions of two entries for the same resource."""

        if other.resource != self.resource:
            raise ValidationError("Cannot merge permissions for different resources")
        conditions = dict(self.conditions)
        for key, value in other.conditions.items():
            conditions[key] = conditions.get(key, False) or value
        return Permission(
            resource=self.resource,
            actions=self.actions | other.actions,
            conditions=conditions,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": self.resource,
            "actions": sorted(self.actions),
            "conditions": dict(self.conditions),
        }


def parse_permissions(entries: Iterable[Mapping[str, Any] | Permission]) -> list[Permission]:
    """Validate a list of permission payloads, raising on the first bad entry."""

    parsed: list[Permission] = []
    for index, entry in enumerate(entries):
        if isinstance(entry, Permission):
            parsed.append(entry)
            continue
        try:
            parsed.append(Permission.from_mapping(entry))
        except ValidationError as exc:
            field_name = f"permissions[{index}]"
            if exc.field:
                field_name = f"{field_name}.{exc.field}"
            raise ValidationError(str(exc), field=field_name) from exc
    return parsed


__all__ = [
    "Permission",
    "RESOURCE_PATTERN",
    "normalize_actions",
    "normalize_conditions",
    "normalize_resource",
    "parse_permissions",
    "validate_resource_name",
]
