"""Role management: lifecycle rules, persistence, and HTTP routes."""

from .service import RoleService

__all__ = ["RoleService"]
