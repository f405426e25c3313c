"""Challenge membership manager: join and leave.

Rules:
- A player may join a challenge once (UNIQUE(user_id, challenge_id) -> 409)
- Expired challenges cannot be joined (410)
- Joining creates the membership and one zero-valued progress row per task
  inside a single SAVEPOINT: either all rows exist afterwards or none do
- Leaving removes the player's progress rows for the challenge, then the
  membership; leaving a challenge one is not a member of is a no-op
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.challenges.service import get_challenge, is_active
from mcquest.db.models import MEMBERSHIP_ACCEPTED, ChallengeMembership, ChallengeTask, TaskProgress
from mcquest.errors import AlreadyJoinedError, ChallengeExpiredError

logger = structlog.get_logger()


async def get_membership(db: AsyncSession, user_id: int, challenge_id: int) -> ChallengeMembership | None:
    result = await db.execute(
        select(ChallengeMembership).where(
            ChallengeMembership.user_id == user_id,
            ChallengeMembership.challenge_id == challenge_id,
        )
    )
    return result.scalar_one_or_none()


async def join_challenge(db: AsyncSession, user_id: int, challenge_id: int) -> ChallengeMembership:
    """Join a challenge.

    Raises:
        ChallengeNotFoundError: unknown challenge.
        ChallengeExpiredError: the challenge's expiry is in the past.
        AlreadyJoinedError: a membership already exists.
    """
    challenge = await get_challenge(db, challenge_id)
    if not is_active(challenge):
        raise ChallengeExpiredError

    if await get_membership(db, user_id, challenge_id) is not None:
        raise AlreadyJoinedError

    task_ids = (
        await db.execute(select(ChallengeTask.id).where(ChallengeTask.challenge_id == challenge_id))
    ).scalars().all()

    now = datetime.now(timezone.utc)
    membership = ChallengeMembership(
        user_id=user_id,
        challenge_id=challenge_id,
        status=MEMBERSHIP_ACCEPTED,
        joined_at=now,
    )
    try:
        async with db.begin_nested():
            db.add(membership)
            db.add_all(
                TaskProgress(user_id=user_id, task_id=task_id, progress=0, completed=False, created_at=now)
                for task_id in task_ids
            )
    except IntegrityError:
        # A concurrent join won the unique (user_id, challenge_id) race
        raise AlreadyJoinedError from None

    logger.info("challenge_joined", user_id=user_id, challenge_id=challenge_id, tasks=len(task_ids))
    return membership


async def leave_challenge(db: AsyncSession, user_id: int, challenge_id: int) -> bool:
    """Leave a challenge. Returns False if the player was not a member."""
    membership = await get_membership(db, user_id, challenge_id)
    if membership is None:
        return False

    task_ids = select(ChallengeTask.id).where(ChallengeTask.challenge_id == challenge_id)
    result = await db.execute(
        delete(TaskProgress)
        .where(TaskProgress.user_id == user_id, TaskProgress.task_id.in_(task_ids))
        .execution_options(synchronize_session="fetch")
    )
    await db.delete(membership)
    await db.flush()

    logger.info("challenge_left", user_id=user_id, challenge_id=challenge_id, progress_rows=result.rowcount)
    return True
