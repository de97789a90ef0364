from __future__ import annotations

from typing import Any

from crm_api.common.schema import BaseSchema

from .service import RestorePlan


class RestoreValidateRequest(BaseSchema):
    backup: dict[str, Any]
    restore_tables: list[str] | None = None


class CollectionPlanOut(BaseSchema):
    name: str
    document_count: int


class RestorePlanOut(BaseSchema):
    """Dry-run result returned before a restore is attempted."""

    valid: bool = True
    source_database: str | None
    backup_timestamp: str | None
    collections: list[CollectionPlanOut]
    skipped: list[str]
    total_documents: int

    @classmethod
    def from_plan(cls, plan: RestorePlan) -> RestorePlanOut:
        return cls(
            source_database=plan.source_database,
            backup_timestamp=plan.backup_timestamp,
            collections=[
                CollectionPlanOut(name=item.name, document_count=item.document_count)
                for item in plan.collections
            ],
            skipped=list(plan.skipped),
            total_documents=plan.total_documents,
        )
