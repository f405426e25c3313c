"""Badge catalog and idempotent award/revoke."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.models import Badge, User, UserBadge
from mcquest.errors import BadgeNotFoundError, DuplicateNameError, UserNotFoundError
from mcquest.notifications.service import notify_badge_awarded

logger = structlog.get_logger()


async def list_badges(db: AsyncSession) -> list[Badge]:
    result = await db.execute(select(Badge).order_by(Badge.id))
    return list(result.scalars().all())


async def get_badge(db: AsyncSession, badge_id: int) -> Badge:
    badge = await db.get(Badge, badge_id)
    if badge is None:
        raise BadgeNotFoundError
    return badge


async def create_badge(
    db: AsyncSession, name: str, description: str | None = None, criteria: dict[str, Any] | None = None
) -> Badge:
    badge = Badge(name=name, description=description, criteria=criteria)
    try:
        async with db.begin_nested():
            db.add(badge)
    except IntegrityError:
        raise DuplicateNameError(f"Badge '{name}' already exists") from None
    logger.info("badge_created", badge_id=badge.id, name=name)
    return badge


async def update_badge(db: AsyncSession, badge_id: int, **changes: Any) -> Badge:
    badge = await get_badge(db, badge_id)
    try:
        async with db.begin_nested():
            for field in ("name", "description", "criteria"):
                if field in changes:
                    setattr(badge, field, changes[field])
    except IntegrityError:
        raise DuplicateNameError(f"Badge '{changes.get('name')}' already exists") from None
    return badge


async def delete_badge(db: AsyncSession, badge_id: int) -> None:
    """Delete a badge; player awards of it cascade."""
    badge = await get_badge(db, badge_id)
    await db.delete(badge)
    await db.flush()
    logger.info("badge_deleted", badge_id=badge_id)


async def has_badge(db: AsyncSession, user_id: int, badge_id: int) -> bool:
    result = await db.execute(
        select(UserBadge.id).where(UserBadge.user_id == user_id, UserBadge.badge_id == badge_id)
    )
    return result.scalar_one_or_none() is not None


async def award_badge(db: AsyncSession, user_id: int, badge_id: int, redis: Any | None = None) -> bool:
    """Award a badge. Returns True if awarded now, False if the player already had it.

    The first award emits a ``badge`` notification.
    """
    badge = await get_badge(db, badge_id)
    if await db.get(User, user_id) is None:
        raise UserNotFoundError
    if await has_badge(db, user_id, badge_id):
        return False

    try:
        async with db.begin_nested():
            db.add(UserBadge(user_id=user_id, badge_id=badge_id, earned_at=datetime.now(timezone.utc)))
    except IntegrityError:
        # Race condition: badge already awarded
        return False

    await notify_badge_awarded(db, user_id, badge.id, badge.name, redis=redis)
    logger.info("badge_awarded", user_id=user_id, badge_id=badge_id)
    return True


async def revoke_badge(db: AsyncSession, user_id: int, badge_id: int) -> bool:
    """Revoke a badge. Returns False if the player did not hold it."""
    result = await db.execute(
        delete(UserBadge)
        .where(UserBadge.user_id == user_id, UserBadge.badge_id == badge_id)
        .execution_options(synchronize_session="fetch")
    )
    await db.flush()
    revoked = result.rowcount > 0
    if revoked:
        logger.info("badge_revoked", user_id=user_id, badge_id=badge_id)
    return revoked


async def list_user_badges(db: AsyncSession, user_id: int) -> list[UserBadge]:
    result = await db.execute(
        select(UserBadge).where(UserBadge.user_id == user_id).order_by(UserBadge.earned_at, UserBadge.id)
    )
    return list(result.scalars().all())
