"""Shared test fixtures.

Every test gets its own SQLite database file (aiosqlite) with the schema
created from the ORM metadata. Redis is not started; link-code endpoints use
the in-memory ``FakeRedis`` below through a dependency override.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mcquest.auth.jwt import create_access_token
from mcquest.config import get_settings
from mcquest.database import close_db, get_engine, init_db
from mcquest.db.base import Base
from mcquest.db.models import (
    ROLE_ADMIN,
    ROLE_PLAYER,
    ROLE_SYSTEM,
    Action,
    Challenge,
    ChallengeTask,
    User,
)
from mcquest.main import create_app
from mcquest.redis_client import get_optional_redis, get_redis


@pytest.fixture(autouse=True)
def _test_settings(tmp_path, monkeypatch):
    """Point settings at a throwaway SQLite file."""
    monkeypatch.setenv("MCQ_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'mcquest.db'}")
    monkeypatch.setenv("MCQ_LOG_FORMAT", "console")
    monkeypatch.setenv("MCQ_TASK_PARAMETER_MATCH", "subset")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Initialized engine with all tables; yields a session factory for short-lived sessions."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service-level tests."""
    async with database() as session:
        yield session


# ---------------------------------------------------------------------------
# Redis stand-in
# ---------------------------------------------------------------------------


class FakeRedis:
    """Just enough of redis.asyncio.Redis for link codes and notification push."""

    def __init__(self) -> None:
        self.store: dict[str, tuple[str, float | None]] = {}
        self.publish = AsyncMock(return_value=1)

    def _alive(self, key: str) -> bool:
        entry = self.store.get(key)
        if entry is None:
            return False
        expires = entry[1]
        if expires is not None and expires <= time.monotonic():
            del self.store[key]
            return False
        return True

    async def set(self, key: str, value: Any, ex: int | None = None, nx: bool = False) -> bool | None:
        if nx and self._alive(key):
            return None
        self.store[key] = (str(value), time.monotonic() + ex if ex else None)
        return True

    async def get(self, key: str) -> str | None:
        return self.store[key][0] if self._alive(key) else None

    async def getdel(self, key: str) -> str | None:
        if not self._alive(key):
            return None
        return self.store.pop(key)[0]

    async def ttl(self, key: str) -> int:
        if not self._alive(key):
            return -2
        expires = self.store[key][1]
        return -1 if expires is None else max(0, round(expires - time.monotonic()))


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# ---------------------------------------------------------------------------
# App and HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def app(database, fake_redis) -> FastAPI:
    application = create_app()
    application.dependency_overrides[get_redis] = lambda: fake_redis
    application.dependency_overrides[get_optional_redis] = lambda: fake_redis
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over ASGI (lifespan is not run; ``database`` did the setup)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def auth():
    """Build bearer headers for a user: ``client.get(url, headers=auth(user))``."""
    return auth_headers


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


class Seed:
    """Creates rows through a session (flush only; callers commit when needed)."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def user(self, username: str = "steve", role: str = ROLE_PLAYER, uuid_mc: str | None = None) -> User:
        user = User(username=username, role=role, uuid_mc=uuid_mc or str(uuid.uuid4()))
        self.db.add(user)
        await self.db.flush()
        return user

    async def player(self, username: str = "steve") -> User:
        return await self.user(username, ROLE_PLAYER)

    async def admin(self, username: str = "admin") -> User:
        return await self.user(username, ROLE_ADMIN)

    async def system(self, username: str = "plugin") -> User:
        return await self.user(username, ROLE_SYSTEM)

    async def action(self, name: str, description: str | None = None) -> Action:
        action = Action(name=name, description=description)
        self.db.add(action)
        await self.db.flush()
        return action

    async def challenge(
        self,
        title: str = "Stone Age",
        type_: str = "special",
        reward_xp: int = 0,
        reward_points: int = 0,
        expires_at: Any = None,
    ) -> Challenge:
        challenge = Challenge(
            title=title,
            type=type_,
            reward_xp=reward_xp,
            reward_points=reward_points,
            expires_at=expires_at,
        )
        self.db.add(challenge)
        await self.db.flush()
        return challenge

    async def task(
        self,
        challenge: Challenge,
        action: Action,
        quantity: int = 1,
        parameters: dict[str, Any] | None = None,
    ) -> ChallengeTask:
        task = ChallengeTask(
            challenge_id=challenge.id,
            action_id=action.id,
            quantity=quantity,
            parameters=parameters,
        )
        self.db.add(task)
        await self.db.flush()
        return task


@pytest.fixture
def seed(db_session: AsyncSession) -> Seed:
    return Seed(db_session)
