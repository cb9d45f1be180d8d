from __future__ import annotations

import os

# Settings are read at import time of src.api.main; configure before importing it.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["AUTO_SEED"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from typing import AsyncIterator, Dict  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.api.main import app  # noqa: E402
from src.core.security import get_password_hash  # noqa: E402
from src.db import session as db_session  # noqa: E402
from src.db.base import Base  # noqa: E402
from src.db.session import get_async_session  # noqa: E402
from src.repositories.security import (  # noqa: E402
    ADMIN_ROLE_NAME,
    MANAGER_ROLE_NAME,
    USER_ROLE_NAME,
    SecurityRepository,
)
from src.services.cache import cache_service  # noqa: E402
from src.services.identity import RoleService  # noqa: E402

ADMIN_EMAIL = "admin@stockapp.com"
ADMIN_PASSWORD = "Admin123!"
USER_EMAIL = "clerk@stockapp.com"
USER_PASSWORD = "Clerk123!"


@pytest.fixture
async def session_maker(monkeypatch) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """In-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False, autocommit=False)

    # Code that opens its own sessions (seeding, WebSocket snapshot) must hit the same database.
    monkeypatch.setattr(db_session, "_ENGINE", engine)
    monkeypatch.setattr(db_session, "_SESSION_MAKER", maker)

    await cache_service.clear()
    yield maker
    await cache_service.clear()
    await engine.dispose()


@pytest.fixture
async def session(session_maker) -> AsyncIterator[AsyncSession]:
    async with session_maker() as s:
        yield s


@pytest.fixture
async def seeded(session_maker) -> Dict[str, int]:
    """Roles plus an admin and a plain user; returns their ids."""
    async with session_maker() as s:
        repo = SecurityRepository(s)
        roles = {name: await repo.create_role(name) for name in (ADMIN_ROLE_NAME, MANAGER_ROLE_NAME, USER_ROLE_NAME)}
        await RoleService(s).ensure_admin_has_all_permissions()
        admin = await repo.create_user(
            email=ADMIN_EMAIL, username=ADMIN_EMAIL, hashed_password=get_password_hash(ADMIN_PASSWORD)
        )
        await repo.set_user_role(admin.id, roles[ADMIN_ROLE_NAME].id)
        clerk = await repo.create_user(
            email=USER_EMAIL, username=USER_EMAIL, hashed_password=get_password_hash(USER_PASSWORD)
        )
        await repo.set_user_role(clerk.id, roles[USER_ROLE_NAME].id)
        await s.commit()
        return {
            "admin_id": admin.id,
            "user_id": clerk.id,
            "admin_role_id": roles[ADMIN_ROLE_NAME].id,
            "manager_role_id": roles[MANAGER_ROLE_NAME].id,
            "user_role_id": roles[USER_ROLE_NAME].id,
        }


@pytest.fixture
async def client(session_maker) -> AsyncIterator[httpx.AsyncClient]:
    async def _override_session() -> AsyncIterator[AsyncSession]:
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_async_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


async def _login(client: httpx.AsyncClient, email: str, password: str) -> Dict[str, str]:
    res = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
async def admin_headers(client, seeded) -> Dict[str, str]:
    return await _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
async def user_headers(client, seeded) -> Dict[str, str]:
    return await _login(client, USER_EMAIL, USER_PASSWORD)
