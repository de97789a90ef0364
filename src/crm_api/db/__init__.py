"""Persistence layer: SQLAlchemy models, engine helpers, and request sessions."""

from .base import NAMING_CONVENTION, Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, metadata
from .engine import build_engine, create_schema, session_scope
from .models import Department, Role, RoleStatus, SystemPermission, User

__all__ = [
    "Base",
    "Department",
    "NAMING_CONVENTION",
    "Role",
    "RoleStatus",
    "SystemPermission",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDPrimaryKeyMixin",
    "User",
    "build_engine",
    "create_schema",
    "metadata",
    "session_scope",
]
