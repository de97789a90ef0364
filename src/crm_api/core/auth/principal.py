"""Resolve the acting user and their effective permission set."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from crm_api.core.rbac.evaluator import PermissionChecker, normalize_permission_set
from crm_api.core.rbac.types import Permission
from crm_api.db.models import Role, RoleStatus, User

from .errors import AuthenticationError


@dataclass(frozen=True, slots=True)
class AuthenticatedPrincipal:
    """The acting user plus the permissions of their single role."""

    user_id: UUID
    email: str
    role_id: UUID | None = None
    role_name: str | None = None
    permissions: tuple[Permission, ...] = field(default=())

    def checker(self) -> PermissionChecker:
        return PermissionChecker(self.permissions)


def effective_permissions(role: Role | None) -> tuple[Permission, ...]:
    """A user's permissions are exactly their role's; unusable roles grant nothing."""

    if role is None or role.is_deleted or role.status != RoleStatus.ACTIVE:
        return ()
    return normalize_permission_set(role.permissions or [])


def parse_user_id(raw: str | None) -> UUID:
    candidate = (raw or "").strip()
    if not candidate:
        raise AuthenticationError("Authentication required")
    try:
        return UUID(candidate)
    except ValueError as exc:
        raise AuthenticationError("Malformed principal identifier") from exc


def resolve_principal(session: Session, user_id: UUID) -> AuthenticatedPrincipal:
    user = session.get(User, user_id)
    if user is None:
        raise AuthenticationError("Unknown principal")
    if not user.is_active:
        raise AuthenticationError("User account is inactive.")

    role = user.role
    return AuthenticatedPrincipal(
        user_id=user.id,
        email=user.email,
        role_id=role.id if role is not None else None,
        role_name=role.name if role is not None else None,
        permissions=effective_permissions(role),
    )


__all__ = [
    "AuthenticatedPrincipal",
    "effective_permissions",
    "parse_user_id",
    "resolve_principal",
]
