"""Shape checks and restore planning for backup documents.

A backup is a JSON object with ``metadata`` and ``collections`` keys. Nothing
else about it is interpreted until both are present; the plan then reports
which collections a restore would touch and how many documents each holds.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from crm_api.common.logging import log_context
from crm_api.core.errors import ValidationError

logger = logging.getLogger(__name__)

REQUIRED_KEYS: tuple[str, ...] = ("metadata", "collections")


@dataclass(frozen=True, slots=True)
class CollectionPlan:
    name: str
    document_count: int


@dataclass(frozen=True, slots=True)
class RestorePlan:
    """Dry-run summary of a restore."""

    source_database: str | None
    backup_timestamp: str | None
    collections: tuple[CollectionPlan, ...]
    skipped: tuple[str, ...] = field(default=())

    @property
    def total_documents(self) -> int:
        return sum(item.document_count for item in self.collections)


def load_backup(raw: str | bytes) -> dict[str, Any]:
    try:
        document = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Backup file is not valid JSON", field="backup") from exc
    return validate_backup_document(document)


def validate_backup_document(document: object) -> dict[str, Any]:
    """Return ``document`` when it carries both required keys."""

    if not isinstance(document, Mapping):
        raise ValidationError("Backup must be a JSON object", field="backup")
    missing = [key for key in REQUIRED_KEYS if document.get(key) is None]
    if missing:
        raise ValidationError(
            "Invalid backup file format: missing " + ", ".join(missing),
            field=f"backup.{missing[0]}",
        )
    if not isinstance(document["collections"], Mapping):
        raise ValidationError("Backup collections must be an object", field="backup.collections")
    return dict(document)


def _document_count(documents: object) -> int:
    if isinstance(documents, list):
        return len(documents)
    return 0


def plan_restore(document: object, restore_tables: Iterable[str] | None = None) -> RestorePlan:
    """Validate ``document`` and describe what a restore would write."""

    backup = validate_backup_document(document)
    collections: Mapping[str, Any] = backup["collections"]
    metadata = backup["metadata"] if isinstance(backup["metadata"], Mapping) else {}

    wanted = [name for name in (restore_tables or []) if name]
    if wanted:
        selected = [name for name in collections if name in wanted]
        skipped = tuple(name for name in wanted if name not in collections)
    else:
        selected = list(collections)
        skipped = ()

    plan = RestorePlan(
        source_database=metadata.get("database"),
        backup_timestamp=metadata.get("timestamp"),
        collections=tuple(
            CollectionPlan(name=name, document_count=_document_count(collections[name]))
            for name in selected
        ),
        skipped=skipped,
    )
    logger.info(
        "backup.restore.planned",
        extra=log_context(
            collections=len(plan.collections),
            documents=plan.total_documents,
            skipped=list(skipped),
        ),
    )
    return plan


__all__ = [
    "CollectionPlan",
    "RestorePlan",
    "load_backup",
    "plan_restore",
    "validate_backup_document",
]
