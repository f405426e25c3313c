"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from mcquest.actions.router import router as actions_router
from mcquest.actions.seed import seed_actions
from mcquest.auth.router import router as auth_router
from mcquest.badges.router import router as badges_router
from mcquest.challenges.router import router as challenges_router
from mcquest.config import get_settings
from mcquest.database import close_db, get_session_factory, init_db
from mcquest.health.router import router as health_router
from mcquest.middleware import setup_middleware
from mcquest.notifications.router import router as notifications_router
from mcquest.progress.router import router as progress_router
from mcquest.redis_client import close_redis, init_redis
from mcquest.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    try:
        await init_redis(settings.redis_url)
    except Exception:
        logger.warning("redis_unavailable", redis_url=settings.redis_url, exc_info=True)

    if settings.seed_default_actions:
        try:
            async with get_session_factory()() as db:
                await seed_actions(db)
        except Exception:
            logger.warning("action_seed_failed", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="MCQuest API",
        description="Backend API for Minecraft server challenges, progress and rewards",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(badges_router)
    app.include_router(actions_router)
    app.include_router(progress_router)
    app.include_router(challenges_router)
    app.include_router(notifications_router)

    return app


app = create_app()
