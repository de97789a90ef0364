from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, Final
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from crm_api.common.logging import log_context
from crm_api.common.time import utc_now
from crm_api.core.errors import (
    ConflictError,
    Err,
    ImmutableEntityError,
    NotFoundError,
    Ok,
    Result,
    ValidationError,
)
from crm_api.core.rbac.catalog import ACTIONS
from crm_api.core.rbac.evaluator import normalize_permission_set
from crm_api.core.rbac.system_roles import GENERAL_DEPARTMENT, SYSTEM_ROLES
from crm_api.core.rbac.types import Permission, parse_permissions, validate_resource_name
from crm_api.db.models import Department, Role, RoleStatus
from crm_api.features.permissions.service import PermissionCatalogService

from .lifecycle import (
    check_deletable,
    check_status_transition,
    resolve_role_name,
    validate_department_scope,
    validate_description,
    validate_display_name,
    validate_hierarchy_level,
    validate_max_users,
)

logger = logging.getLogger(__name__)

_UNSET: Final = object()

type DepartmentRef = UUID | str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def role_permissions(role: Role) -> tuple[Permission, ...]:
    """Return the role's stored permissions; malformed entries are dropped."""

    return normalize_permission_set(role.permissions or [])


def _dump_permissions(permissions: Iterable[Permission]) -> list[dict[str, Any]]:
    return [permission.to_dict() for permission in permissions]


def _normalize_tags(tags: Iterable[str] | None) -> list[str]:
    if not tags:
        return []
    seen: dict[str, None] = {}
    for tag in tags:
        candidate = str(tag).strip()
        if candidate:
            seen.setdefault(candidate, None)
    return list(seen)


def _validate_validity(valid_from: datetime | None, valid_until: datetime | None) -> None:
    if valid_from is not None and valid_until is not None and valid_until <= valid_from:
        raise ValidationError("Validity end must be after its start", field="valid_until")


class RoleService:
    """Role CRUD, lifecycle transitions, and system role seeding."""

    def __init__(self, *, session: Session) -> None:
        self._session = session
        self._catalog = PermissionCatalogService(session=session)

    # ------------- validation --------------------

    def validate_permissions(
        self,
        entries: Sequence[Mapping[str, Any] | Permission],
    ) -> list[Permission]:
        """Parse ``entries`` and check them against the catalog.

        Resources must be known catalog entries; actions must come from the
        shared action vocabulary.
        """

        permissions = parse_permissions(entries)
        known = self._catalog.known_resources()
        for index, permission in enumerate(permissions):
            validate_resource_name(permission.resource, field=f"permissions[{index}].resource")
            if permission.resource not in known:
                raise ValidationError(
                    f"Unknown resource '{permission.resource}'",
                    field=f"permissions[{index}].resource",
                )
            unknown_actions = sorted(permission.actions - set(ACTIONS))
            if unknown_actions:
                raise ValidationError(
                    f"Unknown actions for '{permission.resource}': {', '.join(unknown_actions)}",
                    field=f"permissions[{index}].actions",
                )
        return permissions

    # ------------- departments -------------------

    def get_department(self, ref: DepartmentRef) -> Department | None:
        if isinstance(ref, str):
            try:
                ref = UUID(ref)
            except ValueError:
                pass
        if isinstance(ref, UUID):
            return self._session.get(Department, ref)
        stmt = select(Department).where(Department.name == ref.strip().lower()).limit(1)
        return self._session.execute(stmt).scalar_one_or_none()

    def _require_department(self, ref: DepartmentRef) -> Department:
        department = self.get_department(ref)
        if department is None:
            raise NotFoundError(f"Department '{ref}' not found")
        return department

    def ensure_department(self, name: str, *, display_name: str | None = None) -> Department:
        department = self.get_department(name)
        if department is None:
            department = Department(
                name=name.strip().lower(),
                display_name=display_name or name.strip().title(),
            )
            self._session.add(department)
            self._session.flush([department])
        return department

    # ------------- queries -----------------------

    def get_role(self, role_id: UUID, *, include_deleted: bool = False) -> Role | None:
        role = self._session.get(Role, role_id)
        if role is None or (role.is_deleted and not include_deleted):
            return None
        return role

    def require_role(self, role_id: UUID, *, include_deleted: bool = False) -> Role:
        role = self.get_role(role_id, include_deleted=include_deleted)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    def _find_by_name(self, name: str, department_id: UUID | None) -> Role | None:
        stmt = select(Role).where(Role.name == name)
        if department_id is None:
            stmt = stmt.where(Role.department_id.is_(None))
        else:
            stmt = stmt.where(Role.department_id == department_id)
        return self._session.execute(stmt.limit(1)).scalar_one_or_none()

    def list_roles(
        self,
        *,
        department: DepartmentRef | None = None,
        status: RoleStatus | None = None,
        is_system_role: bool | None = None,
        include_deleted: bool = False,
    ) -> Sequence[Role]:
        stmt: Select[tuple[Role]] = select(Role)
        if department is not None:
            stmt = stmt.where(Role.department_id == self._require_department(department).id)
        if status is not None:
            stmt = stmt.where(Role.status == status)
        if is_system_role is not None:
            stmt = stmt.where(Role.is_system_role.is_(is_system_role))
        if not include_deleted:
            stmt = stmt.where(Role.is_deleted.is_(False))
        stmt = stmt.order_by(Role.hierarchy_level.desc(), Role.name)
        return self._session.execute(stmt).scalars().all()

    def find_system_roles(self) -> Sequence[Role]:
        return self.list_roles(is_system_role=True)

    def get_hierarchy_roles(self, max_level: int) -> Sequence[Role]:
        """Active roles at or below ``max_level``, most senior first."""

        stmt = (
            select(Role)
            .where(
                Role.hierarchy_level <= max_level,
                Role.status == RoleStatus.ACTIVE,
                Role.is_deleted.is_(False),
            )
            .order_by(Role.hierarchy_level.desc(), Role.name)
        )
        return self._session.execute(stmt).scalars().all()

    # ------------- mutations ---------------------

    def create_role(
        self,
        *,
        display_name: str,
        name: str | None = None,
        description: str | None = None,
        department: DepartmentRef | None = None,
        permissions: Sequence[Mapping[str, Any] | Permission] = (),
        hierarchy_level: int = 1,
        is_system_role: bool = False,
        max_users: int | None = None,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        notes: str | None = None,
        tags: Iterable[str] | None = None,
        actor_id: UUID | None = None,
    ) -> Role:
        display_value = validate_display_name(display_name)
        name_value = resolve_role_name(name, display_value)
        validate_department_scope(
            is_system_role=is_system_role,
            has_department=department is not None,
        )
        department_row = self._require_department(department) if department is not None else None
        department_id = department_row.id if department_row is not None else None
        parsed = self.validate_permissions(permissions)
        _validate_validity(valid_from, valid_until)

        if self._find_by_name(name_value, department_id) is not None:
            raise ConflictError(f"Role '{name_value}' already exists in this scope")

        role = Role(
            name=name_value,
            display_name=display_value,
            description=validate_description(description),
            department_id=department_id,
            permissions=_dump_permissions(parsed),
            hierarchy_level=validate_hierarchy_level(hierarchy_level),
            is_system_role=is_system_role,
            status=RoleStatus.ACTIVE,
            max_users=validate_max_users(max_users),
            valid_from=valid_from,
            valid_until=valid_until,
            notes=notes,
            tags=_normalize_tags(tags),
            created_by=actor_id,
            updated_by=actor_id,
        )
        self._session.add(role)
        self._session.flush([role])

        logger.info(
            "roles.create.success",
            extra=log_context(role_id=role.id, user_id=actor_id, role_name=role.name),
        )
        return role

    def update_role(
        self,
        role_id: UUID,
        *,
        display_name: str | None = None,
        description: str | None | object = _UNSET,
        department: DepartmentRef | None | object = _UNSET,
        permissions: Sequence[Mapping[str, Any] | Permission] | None = None,
        hierarchy_level: int | None = None,
        max_users: int | None | object = _UNSET,
        notes: str | None | object = _UNSET,
        tags: Iterable[str] | None = None,
        actor_id: UUID | None = None,
    ) -> Role:
        """Apply a partial update.

        System roles keep their permissions and stay department-less; attempts
        to change either raise :class:`ImmutableEntityError`.
        """

        role = self.require_role(role_id)

        if role.is_system_role and (permissions is not None or department is not _UNSET):
            raise ImmutableEntityError("System role permissions and department cannot be changed")

        if display_name is not None:
            role.display_name = validate_display_name(display_name)
        if description is not _UNSET:
            role.description = validate_description(description)  # type: ignore[arg-type]
        if department is not _UNSET:
            validate_department_scope(is_system_role=False, has_department=department is not None)
            department_row = self._require_department(department)  # type: ignore[arg-type]
            if department_row.id != role.department_id:
                if self._find_by_name(role.name, department_row.id) is not None:
                    raise ConflictError(f"Role '{role.name}' already exists in this scope")
                role.department_id = department_row.id
                role.department = department_row
        if permissions is not None:
            role.permissions = _dump_permissions(self.validate_permissions(permissions))
        if hierarchy_level is not None:
            role.hierarchy_level = validate_hierarchy_level(hierarchy_level)
        if max_users is not _UNSET:
            role.max_users = validate_max_users(max_users)  # type: ignore[arg-type]
        if notes is not _UNSET:
            role.notes = notes  # type: ignore[assignment]
        if tags is not None:
            role.tags = _normalize_tags(tags)
        role.updated_by = actor_id

        self._session.flush([role])
        logger.info("roles.update.success", extra=log_context(role_id=role.id, user_id=actor_id))
        return role

    def replace_permissions(
        self,
        role_id: UUID,
        permissions: Sequence[Mapping[str, Any] | Permission],
        *,
        actor_id: UUID | None = None,
    ) -> Role:
        return self.update_role(role_id, permissions=permissions, actor_id=actor_id)

    def change_status(
        self,
        role_id: UUID,
        status: RoleStatus,
        *,
        actor_id: UUID | None = None,
    ) -> Role:
        role = self.require_role(role_id)
        target = RoleStatus(status)
        if role.is_system_role and target != RoleStatus.ACTIVE:
            raise ImmutableEntityError("System roles must remain active")
        check_status_transition(role.status, target)

        previous = role.status
        role.status = target
        role.updated_by = actor_id
        self._session.flush([role])
        logger.info(
            "roles.status.changed",
            extra=log_context(
                role_id=role.id,
                user_id=actor_id,
                previous=RoleStatus(previous).value,
                status=target.value,
            ),
        )
        return role

    def delete_role(
        self,
        role_id: UUID,
        *,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> Result[Role, ImmutableEntityError | NotFoundError]:
        """Soft-delete a role.

        System roles are refused with an :class:`ImmutableEntityError` result
        and are left exactly as they were.
        """

        role = self.get_role(role_id)
        if role is None:
            return Err(NotFoundError("Role not found"))

        blocked = check_deletable(is_system_role=role.is_system_role)
        if blocked is not None:
            logger.warning(
                "roles.delete.rejected",
                extra=log_context(role_id=role.id, user_id=actor_id, reason="system_role"),
            )
            return Err(blocked)

        role.is_deleted = True
        role.status = RoleStatus.DELETED
        role.deleted_at = utc_now()
        role.deleted_by = actor_id
        role.deletion_reason = (reason or "").strip() or None
        role.updated_by = actor_id
        self._session.flush([role])

        logger.info(
            "roles.delete.success",
            extra=log_context(role_id=role.id, user_id=actor_id),
        )
        return Ok(role)

    def restore_role(self, role_id: UUID, *, actor_id: UUID | None = None) -> Role:
        """Bring a soft-deleted role back as ``inactive``."""

        role = self.require_role(role_id, include_deleted=True)
        if not role.is_deleted:
            raise ValidationError("Role is not deleted", field="status")

        role.is_deleted = False
        role.status = RoleStatus.INACTIVE
        role.deleted_at = None
        role.deleted_by = None
        role.deletion_reason = None
        role.updated_by = actor_id
        self._session.flush([role])

        logger.info("roles.restore.success", extra=log_context(role_id=role.id, user_id=actor_id))
        return role

    # ------------- seeding -----------------------

    def sync_system_roles(self) -> None:
        """Ensure built-in roles exist with their canonical definitions."""

        logger.debug("roles.system.sync.start")

        self._catalog.sync_catalog()
        general = self.ensure_department(GENERAL_DEPARTMENT)

        for definition in SYSTEM_ROLES:
            department_id = None if definition.is_system_role else general.id
            role = self._find_by_name(definition.name, department_id)
            permissions = _dump_permissions(definition.permissions)
            if role is None:
                role = Role(
                    name=definition.name,
                    display_name=definition.display_name,
                    description=definition.description,
                    department_id=department_id,
                    permissions=permissions,
                    hierarchy_level=definition.hierarchy_level,
                    is_system_role=definition.is_system_role,
                    status=RoleStatus.ACTIVE,
                    tags=[],
                )
                self._session.add(role)
                continue

            if not definition.is_system_role:
                # Department templates are seeded once and then owned by admins.
                continue
            role.display_name = definition.display_name
            role.description = definition.description
            role.permissions = permissions
            role.hierarchy_level = definition.hierarchy_level
            role.is_system_role = True
            role.status = RoleStatus.ACTIVE
            role.is_deleted = False

        self._session.flush()
        logger.debug("roles.system.sync.success", extra={"total": len(SYSTEM_ROLES)})


__all__ = ["RoleService", "role_permissions"]
