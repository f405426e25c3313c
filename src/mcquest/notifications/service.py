"""Notification creation and delivery service.

Notifications are:
1. Persisted in the database (content is write-once)
2. Pushed best-effort to the player's Redis pub/sub channel ``ws:user:{id}``

Types: new_challenge, accepted, completed, reward, badge
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.models import ROLE_PLAYER, Notification, User
from mcquest.errors import NotificationNotFoundError

logger = structlog.get_logger()

TYPE_NEW_CHALLENGE = "new_challenge"
TYPE_ACCEPTED = "accepted"
TYPE_COMPLETED = "completed"
TYPE_REWARD = "reward"
TYPE_BADGE = "badge"

VALID_TYPES = {TYPE_NEW_CHALLENGE, TYPE_ACCEPTED, TYPE_COMPLETED, TYPE_REWARD, TYPE_BADGE}


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type_: str,
    message: str,
    metadata: dict[str, Any] | None = None,
    redis: Any | None = None,
) -> Notification:
    """Create a notification and push it to the player's channel."""
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {sorted(VALID_TYPES)}")

    notification = Notification(
        user_id=user_id,
        type=type_,
        message=message,
        notification_metadata=metadata or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()

    if redis is not None:
        await _push(redis, notification)

    return notification


async def _push(redis: Any, notification: Notification) -> None:  # noqa: ANN401
    payload = {
        "event": "notification",
        "data": {
            "id": notification.id,
            "type": notification.type,
            "message": notification.message,
            "metadata": notification.notification_metadata,
            "timestamp": notification.created_at.isoformat() if notification.created_at else None,
            "read": False,
        },
    }
    try:
        await redis.publish(f"ws:user:{notification.user_id}", json.dumps(payload))
    except Exception:
        # Delivery is fire-and-forget; the persisted row is the source of truth
        logger.warning("notification_push_failed", notification_id=notification.id, exc_info=True)


# ---------------------------------------------------------------------------
# Typed helpers
# ---------------------------------------------------------------------------


async def notify_challenge_completed(
    db: AsyncSession, user_id: int, challenge_id: int, challenge_title: str, redis: Any | None = None
) -> Notification:
    return await create_notification(
        db,
        user_id,
        TYPE_COMPLETED,
        f"Challenge completed: {challenge_title}",
        metadata={"challenge_id": challenge_id},
        redis=redis,
    )


async def notify_reward_granted(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    challenge_title: str,
    xp: int,
    points: int,
    redis: Any | None = None,
) -> Notification:
    return await create_notification(
        db,
        user_id,
        TYPE_REWARD,
        f"You earned {xp} XP and {points} points for completing {challenge_title}",
        metadata={"challenge_id": challenge_id, "xp": xp, "points": points},
        redis=redis,
    )


async def notify_badge_awarded(
    db: AsyncSession, user_id: int, badge_id: int, badge_name: str, redis: Any | None = None
) -> Notification:
    return await create_notification(
        db,
        user_id,
        TYPE_BADGE,
        f'Congratulations! You earned the badge "{badge_name}"',
        metadata={"badge_id": badge_id},
        redis=redis,
    )


async def announce_new_challenge(
    db: AsyncSession, challenge_id: int, challenge_title: str, redis: Any | None = None
) -> int:
    """Send a new_challenge notification to every player. Returns the number notified."""
    result = await db.execute(select(User.id).where(User.role == ROLE_PLAYER))
    player_ids = [row[0] for row in result]
    for uid in player_ids:
        await create_notification(
            db,
            uid,
            TYPE_NEW_CHALLENGE,
            f"New challenge available: {challenge_title}",
            metadata={"challenge_id": challenge_id},
            redis=redis,
        )
    return len(player_ids)


# ---------------------------------------------------------------------------
# Queries and read-state
# ---------------------------------------------------------------------------


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    include_read: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Notification], int]:
    """Get a player's notifications (paginated, most recent first)."""
    conditions = [Notification.user_id == user_id]
    if not include_read:
        conditions.append(Notification.read.is_(False))

    total = (
        await db.execute(select(func.count()).select_from(Notification).where(*conditions))
    ).scalar_one()

    result = await db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def get_notification(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    """Fetch one of the player's notifications."""
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotificationNotFoundError
    return notification


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount


async def delete_notification(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    result = await db.execute(
        delete(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount > 0


async def delete_read_notifications(db: AsyncSession, user_id: int) -> int:
    """Delete every read notification of the player. Returns count deleted."""
    result = await db.execute(
        delete(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(True))
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return result.scalar_one()
