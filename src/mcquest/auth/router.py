"""Authentication router: in-game account linking and current user."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.auth.dependencies import get_current_user, require_system
from mcquest.auth.jwt import create_access_token
from mcquest.auth.link_codes import consume_link_code, create_link_code, get_link_code_ttl
from mcquest.auth.schemas import (
    CompleteLinkRequest,
    LinkCodeResponse,
    LinkCodeStatusResponse,
    TokenResponse,
    UserResponse,
)
from mcquest.database import get_session
from mcquest.db.models import User
from mcquest.redis_client import get_redis
from mcquest.users.service import upsert_linked_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def user_response(user: User) -> UserResponse:
    """Build a UserResponse from a User model."""
    return UserResponse(
        id=user.id,
        uuid_mc=user.uuid_mc,
        username=user.username,
        role=user.role,
        total_xp=user.total_xp,
        total_points=user.total_points,
        total_challenges_completed=user.total_challenges_completed,
        created_at=user.created_at,
        last_login=user.last_login,
    )


@router.post("/link/generate", response_model=LinkCodeResponse)
async def generate_link(redis: Redis = Depends(get_redis)) -> LinkCodeResponse:  # type: ignore[assignment]
    """Issue a short-lived code the player types in game to link their account."""
    code, ttl = await create_link_code(redis)
    return LinkCodeResponse(
        code=code,
        expires_in=ttl,
        instruction=f"Type /link {code} in game to link your account",
    )


@router.get("/link/verify/{code}", response_model=LinkCodeStatusResponse)
async def verify_link(code: str, redis: Redis = Depends(get_redis)) -> LinkCodeStatusResponse:  # type: ignore[assignment]
    """Report whether a link code is still redeemable."""
    ttl = await get_link_code_ttl(redis, code)
    return LinkCodeStatusResponse(valid=ttl is not None, expires_in=ttl)


@router.post("/link/complete", response_model=TokenResponse)
async def complete_link(
    body: CompleteLinkRequest,
    _system: User = Depends(require_system),
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Redeem a link code on behalf of an in-game player and issue their token."""
    await consume_link_code(redis, body.code)
    user, created = await upsert_linked_user(db, body.uuid_mc, body.username)
    await db.commit()
    logger.info("account_linked", user_id=user.id, created=created)
    return TokenResponse(access_token=create_access_token(user.id, user.role), user=user_response(user))


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user."""
    return user_response(user)
