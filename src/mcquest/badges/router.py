"""Badge endpoints: catalog, player badges, admin award/revoke."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.auth.dependencies import get_current_user, require_admin
from mcquest.badges import service
from mcquest.badges.schemas import (
    BadgeAwardResponse,
    BadgeCreateRequest,
    BadgeResponse,
    BadgeRevokeResponse,
    BadgeUpdateRequest,
    UserBadgeResponse,
)
from mcquest.database import get_session
from mcquest.db.models import User
from mcquest.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1", tags=["Badges"])


@router.get("/badges", response_model=list[BadgeResponse])
async def list_badges(db: AsyncSession = Depends(get_session)):
    return [BadgeResponse.model_validate(b) for b in await service.list_badges(db)]


@router.get("/badges/{badge_id}", response_model=BadgeResponse)
async def get_badge(badge_id: int, db: AsyncSession = Depends(get_session)):
    return BadgeResponse.model_validate(await service.get_badge(db, badge_id))


@router.post("/badges", response_model=BadgeResponse, status_code=201)
async def create_badge(
    body: BadgeCreateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    badge = await service.create_badge(db, body.name, body.description, body.criteria)
    await db.commit()
    return BadgeResponse.model_validate(badge)


@router.put("/badges/{badge_id}", response_model=BadgeResponse)
async def update_badge(
    badge_id: int,
    body: BadgeUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    badge = await service.update_badge(db, badge_id, **body.model_dump(exclude_unset=True))
    await db.commit()
    return BadgeResponse.model_validate(badge)


@router.delete("/badges/{badge_id}", status_code=204)
async def delete_badge(
    badge_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> None:
    await service.delete_badge(db, badge_id)
    await db.commit()


@router.get("/users/me/badges", response_model=list[UserBadgeResponse])
async def my_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Badges earned by the authenticated player."""
    return [UserBadgeResponse.model_validate(ub) for ub in await service.list_user_badges(db, user.id)]


@router.post("/badges/{badge_id}/award/{user_id}", response_model=BadgeAwardResponse)
async def award_badge(
    badge_id: int,
    user_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_optional_redis),
):
    """Award a badge; awarding one the player already holds is a no-op."""
    awarded = await service.award_badge(db, user_id, badge_id, redis=redis)
    await db.commit()
    return BadgeAwardResponse(user_id=user_id, badge_id=badge_id, awarded=awarded)


@router.delete("/badges/{badge_id}/award/{user_id}", response_model=BadgeRevokeResponse)
async def revoke_badge(
    badge_id: int,
    user_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    revoked = await service.revoke_badge(db, user_id, badge_id)
    await db.commit()
    return BadgeRevokeResponse(user_id=user_id, badge_id=badge_id, revoked=revoked)
