from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from crm_api.db.engine import build_engine, create_schema
from crm_api.db.models import Role, User
from crm_api.features.roles.service import RoleService
from crm_api.main import create_app
from crm_api.settings import Settings


def pytest_collection_modifyitems(config, items) -> None:
    for item in items:
        path_str = str(Path(str(item.fspath)))
        if "/tests/integration/" in path_str:
            item.add_marker(pytest.mark.integration)
        elif "/tests/unit/" in path_str:
            item.add_marker(pytest.mark.unit)


@dataclass(frozen=True, slots=True)
class SeededUser:
    id: UUID
    email: str

    @property
    def headers(self) -> dict[str, str]:
        return {"X-User-Id": str(self.id)}


@dataclass(frozen=True, slots=True)
class SeededIdentity:
    admin: SeededUser
    hr_manager: SeededUser
    member: SeededUser
    orphan: SeededUser
    inactive: SeededUser


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        log_level="WARNING",
        app_version="test",
    )


@pytest.fixture()
def engine(settings: Settings) -> Iterator[Engine]:
    engine = build_engine(settings)
    create_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def db_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture()
def db_session(db_sessionmaker: sessionmaker[Session]) -> Iterator[Session]:
    session = db_sessionmaker()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def seeded_roles(db_session: Session) -> dict[str, Role]:
    RoleService(session=db_session).sync_system_roles()
    db_session.commit()
    roles = db_session.execute(select(Role)).scalars().all()
    return {role.name: role for role in roles}


@pytest.fixture()
def seeded_identity(db_session: Session, seeded_roles: dict[str, Role]) -> SeededIdentity:
    suffix = uuid4().hex[:8]

    def _create_user(label: str, role: Role | None, *, is_active: bool = True) -> SeededUser:
        user = User(
            email=f"{label}-{suffix}@example.com",
            display_name=label.title(),
            is_active=is_active,
            role_id=role.id if role is not None else None,
        )
        db_session.add(user)
        db_session.flush()
        return SeededUser(id=user.id, email=user.email)

    identity = SeededIdentity(
        admin=_create_user("admin", seeded_roles["super_admin"]),
        hr_manager=_create_user("hr", seeded_roles["hr_manager"]),
        member=_create_user("member", seeded_roles["team_member"]),
        orphan=_create_user("orphan", None),
        inactive=_create_user("inactive", seeded_roles["super_admin"], is_active=False),
    )
    db_session.commit()
    return identity


@pytest.fixture()
def app(settings: Settings, engine: Engine) -> FastAPI:
    return create_app(settings=settings, engine=engine)


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with LifespanManager(app):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://testserver",
        ) as client:
            yield client
