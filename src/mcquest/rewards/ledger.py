"""Reward ledger: exactly-once application of challenge rewards to a player.

Every grant inserts one ``reward_ledger`` row keyed by
``challenge:{challenge_id}:membership:{membership_id}``. The counter update on
``users`` is a single ``col = col + n`` statement, so concurrent grants for
different challenges never lose each other's increments.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.dialect import dialect_insert
from mcquest.db.models import Challenge, RewardLedger, User

logger = structlog.get_logger()


def reward_idempotency_key(challenge_id: int, membership_id: int) -> str:
    return f"challenge:{challenge_id}:membership:{membership_id}"


async def grant_challenge_reward(
    db: AsyncSession,
    user_id: int,
    challenge: Challenge,
    membership_id: int,
) -> bool:
    """Credit a challenge's reward to a player. Returns True if granted, False if duplicate.

    1. Insert the ledger row (ON CONFLICT DO NOTHING on the idempotency key)
    2. If a row was inserted, add xp/points and bump total_challenges_completed
    """
    key = reward_idempotency_key(challenge.id, membership_id)
    stmt = (
        dialect_insert(db, RewardLedger)
        .values(
            user_id=user_id,
            challenge_id=challenge.id,
            membership_id=membership_id,
            xp=challenge.reward_xp,
            points=challenge.reward_points,
            description=f"Completed challenge: {challenge.title}"[:256],
            idempotency_key=key,
            created_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["idempotency_key"])
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        logger.info("reward_duplicate_skipped", user_id=user_id, idempotency_key=key)
        return False

    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            total_xp=User.total_xp + challenge.reward_xp,
            total_points=User.total_points + challenge.reward_points,
            total_challenges_completed=User.total_challenges_completed + 1,
        )
        .execution_options(synchronize_session=False)
    )
    await db.flush()

    logger.info(
        "reward_granted",
        user_id=user_id,
        challenge_id=challenge.id,
        xp=challenge.reward_xp,
        points=challenge.reward_points,
    )
    return True


async def get_reward_history(db: AsyncSession, user_id: int, limit: int = 50) -> list[RewardLedger]:
    """Most recent reward grants for a player."""
    result = await db.execute(
        select(RewardLedger)
        .where(RewardLedger.user_id == user_id)
        .order_by(RewardLedger.created_at.desc(), RewardLedger.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
