"""Derive the ``(resource, action)`` a navigational path requires."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_RESOURCE = "dashboard"
DEFAULT_ACTION = "read"

# Checked in order; the first marker present in the path wins.
ACTION_MARKERS: tuple[tuple[str, str], ...] = (
    ("add", "create"),
    ("edit", "update"),
    ("permissions", "assign"),
)


@dataclass(frozen=True, slots=True)
class RouteTarget:
    resource: str
    action: str

    def to_dict(self) -> dict[str, str]:
        return {"resource": self.resource, "action": self.action}


def path_to_resource_action(path: str) -> RouteTarget:
    """Map ``path`` to the resource/action a gate should check.

    >>> path_to_resource_action("/projects/add")
    RouteTarget(resource='projects', action='create')
    """

    segments = [segment for segment in (path or "").split("/") if segment]
    if not segments:
        return RouteTarget(DEFAULT_RESOURCE, DEFAULT_ACTION)

    resource = segments[0]
    for marker, action in ACTION_MARKERS:
        if marker in segments:
            return RouteTarget(resource, action)
    return RouteTarget(resource, DEFAULT_ACTION)


__all__ = [
    "ACTION_MARKERS",
    "DEFAULT_ACTION",
    "DEFAULT_RESOURCE",
    "RouteTarget",
    "path_to_resource_action",
]
