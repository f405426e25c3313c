"""Challenge completion evaluator.

A challenge is complete for a player when every one of its tasks has a
completed progress row for that player, and it has at least one task. The
``accepted -> completed`` membership transition is a conditional UPDATE; only
the caller whose UPDATE changed the row grants the reward and emits the
``completed`` / ``reward`` notifications, so re-evaluation is always safe.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.models import (
    MEMBERSHIP_ACCEPTED,
    MEMBERSHIP_COMPLETED,
    Challenge,
    ChallengeMembership,
    ChallengeTask,
    TaskProgress,
)
from mcquest.notifications.service import notify_challenge_completed, notify_reward_granted
from mcquest.rewards.ledger import grant_challenge_reward

logger = structlog.get_logger()


async def count_tasks(db: AsyncSession, challenge_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(ChallengeTask).where(ChallengeTask.challenge_id == challenge_id)
    )
    return result.scalar_one()


async def count_completed_tasks(db: AsyncSession, user_id: int, challenge_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(TaskProgress)
        .join(ChallengeTask, ChallengeTask.id == TaskProgress.task_id)
        .where(
            ChallengeTask.challenge_id == challenge_id,
            TaskProgress.user_id == user_id,
            TaskProgress.completed.is_(True),
        )
    )
    return result.scalar_one()


async def all_tasks_completed(db: AsyncSession, user_id: int, challenge_id: int) -> bool:
    """True iff the challenge has tasks and the player completed every one."""
    total = await count_tasks(db, challenge_id)
    if total == 0:
        return False
    return await count_completed_tasks(db, user_id, challenge_id) == total


async def check_completion(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    redis: Any | None = None,
) -> bool:
    """Evaluate a player's challenge and apply the completion transition once.

    Returns True when all tasks are completed (whether the transition happened
    now or earlier), False otherwise.

    The membership row is locked before counting. Two requests finishing the
    last two tasks at once then evaluate one after the other, and the second
    one counts the first one's committed progress.
    """
    await db.execute(
        select(ChallengeMembership.id)
        .where(ChallengeMembership.user_id == user_id, ChallengeMembership.challenge_id == challenge_id)
        .with_for_update()
    )
    if not await all_tasks_completed(db, user_id, challenge_id):
        return False

    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(ChallengeMembership)
        .where(
            ChallengeMembership.user_id == user_id,
            ChallengeMembership.challenge_id == challenge_id,
            ChallengeMembership.status == MEMBERSHIP_ACCEPTED,
        )
        .values(status=MEMBERSHIP_COMPLETED, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Already completed, or the player is not a member
        return True

    membership = (
        await db.execute(
            select(ChallengeMembership)
            .where(ChallengeMembership.user_id == user_id, ChallengeMembership.challenge_id == challenge_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    challenge = await db.get(Challenge, challenge_id)

    logger.info("challenge_completed", user_id=user_id, challenge_id=challenge_id, membership_id=membership.id)

    if await grant_challenge_reward(db, user_id, challenge, membership.id):
        await notify_challenge_completed(db, user_id, challenge.id, challenge.title, redis=redis)
        if challenge.reward_xp > 0 or challenge.reward_points > 0:
            await notify_reward_granted(
                db,
                user_id,
                challenge.id,
                challenge.title,
                xp=challenge.reward_xp,
                points=challenge.reward_points,
                redis=redis,
            )
    return True


async def is_challenge_completed(db: AsyncSession, user_id: int, challenge_id: int) -> bool:
    """Read-only view: membership completed, or all tasks currently completed."""
    result = await db.execute(
        select(ChallengeMembership.status).where(
            ChallengeMembership.user_id == user_id,
            ChallengeMembership.challenge_id == challenge_id,
        )
    )
    if result.scalar_one_or_none() == MEMBERSHIP_COMPLETED:
        return True
    return await all_tasks_completed(db, user_id, challenge_id)
