"""Health endpoint tests."""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy import func, select

from mcquest import main
from mcquest.actions.seed import DEFAULT_ACTIONS
from mcquest.database import get_engine
from mcquest.db.models import Action


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness_without_redis(client: AsyncClient) -> None:
    """Redis never configured is reported as disabled and does not degrade readiness."""
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok", "redis": "disabled"}


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    data = response.json()
    assert data["version"] == "0.1.0"
    assert "environment" in data


@pytest.mark.asyncio
async def test_startup_seeds_default_actions(database, monkeypatch: pytest.MonkeyPatch) -> None:
    """Lifespan seeds the action catalog through a session it closes before serving."""
    for name in ("init_db", "close_db", "init_redis", "close_redis"):
        monkeypatch.setattr(main, name, AsyncMock())

    async with main.lifespan(FastAPI()):
        assert get_engine().pool.checkedout() == 0
        async with database() as s:
            count = (await s.execute(select(func.count()).select_from(Action))).scalar_one()
        assert count == len(DEFAULT_ACTIONS)
