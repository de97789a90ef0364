"""API router composition for the CRM FastAPI application."""

from __future__ import annotations

from fastapi import APIRouter

from .features.access.router import router as access_router
from .features.backup.router import router as backup_router
from .features.health.router import router as health_router
from .features.permissions.router import router as permissions_router
from .features.roles.router import router as roles_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(permissions_router)
api_router.include_router(access_router)
api_router.include_router(roles_router)
api_router.include_router(backup_router)

__all__ = ["api_router"]
