"""FastAPI lifespan helpers for the CRM application."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import Lifespan
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from crm_api.db.engine import session_scope
from crm_api.db.session import get_session_factory_from_app, init_db, shutdown_db
from crm_api.features.roles.service import RoleService
from crm_api.settings import Settings

logger = logging.getLogger(__name__)


def seed_system_roles(session_factory: sessionmaker[Session]) -> None:
    """Sync the permission catalog and built-in roles in one transaction."""

    with session_scope(session_factory) as session:
        RoleService(session=session).sync_system_roles()
    logger.info("startup.seed.complete")


def create_application_lifespan(
    *,
    settings: Settings,
    engine: Engine | None = None,
) -> Lifespan[FastAPI]:
    """Return the FastAPI lifespan handler used by the app factory."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        init_db(app, settings, engine=engine)
        if settings.seed_system_roles_on_startup:
            await asyncio.to_thread(seed_system_roles, get_session_factory_from_app(app))
        logger.info(
            "startup.complete",
            extra={"app_name": settings.app_name, "app_version": settings.app_version},
        )
        try:
            yield
        finally:
            shutdown_db(app)

    return lifespan


__all__ = ["create_application_lifespan", "seed_system_roles"]
