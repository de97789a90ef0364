"""Persistence of the permission catalog (``system_permissions`` table)."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from crm_api.common.logging import log_context
from crm_api.core.errors import Err, ImmutableEntityError, NotFoundError, Ok, Result
from crm_api.core.rbac.catalog import CATALOG, CATALOG_REGISTRY, PermissionDefinition
from crm_api.db.models import SystemPermission

logger = logging.getLogger(__name__)


def _serialize_actions(definition: PermissionDefinition) -> list[dict[str, object]]:
    return [
        {
            "action": entry.action,
            "description": entry.description,
            "conditions": list(entry.conditions),
        }
        for entry in definition.available_actions
    ]


class PermissionCatalogService:
    """Sync, list, and protect persisted catalog entries."""

    def __init__(self, *, session: Session) -> None:
        self._session = session

    def sync_catalog(self) -> None:
        """Upsert the canonical catalog and drop rows no longer in it.

        ``is_active`` is left alone on existing rows so deactivated entries stay
        deactivated across restarts.
        """

        logger.debug("permissions.catalog.sync.start")

        result = self._session.execute(select(SystemPermission))
        existing = {row.resource: row for row in result.scalars().all()}

        for definition in CATALOG:
            current = existing.get(definition.resource)
            if current is None:
                self._session.add(
                    SystemPermission(
                        resource=definition.resource,
                        display_name=definition.display_name,
                        description=definition.description,
                        category=definition.category,
                        available_actions=_serialize_actions(definition),
                        is_core=definition.is_core,
                        is_active=True,
                    )
                )
                continue

            current.display_name = definition.display_name
            current.description = definition.description
            current.category = definition.category
            current.available_actions = _serialize_actions(definition)
            current.is_core = definition.is_core
            if definition.is_core:
                current.is_active = True

        stale = set(existing) - set(CATALOG_REGISTRY)
        if stale:
            self._session.execute(
                delete(SystemPermission).where(SystemPermission.resource.in_(tuple(stale)))
            )

        self._session.flush()
        logger.debug(
            "permissions.catalog.sync.success",
            extra={"total": len(CATALOG), "removed": len(stale)},
        )

    def list_permissions(
        self,
        *,
        category: str | None = None,
        include_inactive: bool = False,
    ) -> Sequence[SystemPermission]:
        stmt = select(SystemPermission).order_by(SystemPermission.resource)
        if category:
            stmt = stmt.where(SystemPermission.category == category.strip().lower())
        if not include_inactive:
            stmt = stmt.where(SystemPermission.is_active.is_(True))
        return self._session.execute(stmt).scalars().all()

    def get_permission(self, resource: str) -> SystemPermission | None:
        stmt = select(SystemPermission).where(
            SystemPermission.resource == resource.strip().lower()
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def known_resources(self) -> frozenset[str]:
        """Resources a role may reference.

        Falls back to the in-code catalog until the table has been synced.
        """

        rows = self._session.execute(
            select(SystemPermission.resource, SystemPermission.is_active)
        ).all()
        if not rows:
            return frozenset(CATALOG_REGISTRY)
        return frozenset(resource for resource, is_active in rows if is_active)

    def delete_permission(
        self,
        resource: str,
    ) -> Result[SystemPermission, ImmutableEntityError | NotFoundError]:
        """Deactivate a non-core entry; core entries are rejected untouched."""

        row = self.get_permission(resource)
        if row is None or not row.is_active:
            return Err(NotFoundError(f"Permission '{resource}' not found"))
        if row.is_core:
            logger.warning(
                "permissions.delete.rejected",
                extra=log_context(resource=row.resource, reason="core"),
            )
            return Err(ImmutableEntityError("Core permissions cannot be deleted"))

        row.is_active = False
        self._session.flush([row])
        logger.info("permissions.delete.success", extra=log_context(resource=row.resource))
        return Ok(row)


__all__ = ["PermissionCatalogService"]
