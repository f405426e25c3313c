"""Progress read paths and admin adjustments."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.models import (
    MEMBERSHIP_ACCEPTED,
    Challenge,
    ChallengeMembership,
    ChallengeTask,
    TaskProgress,
    User,
)
from mcquest.errors import ChallengeNotFoundError, ProgressNotFoundError, TaskNotFoundError, UserNotFoundError
from mcquest.progress import evaluator, tracker

logger = structlog.get_logger()


async def get_progress(db: AsyncSession, progress_id: int) -> TaskProgress:
    row = await db.get(TaskProgress, progress_id)
    if row is None:
        raise ProgressNotFoundError
    return row


async def list_user_progress(db: AsyncSession, user_id: int) -> list[TaskProgress]:
    """All progress rows of a player, ordered by task."""
    if await db.get(User, user_id) is None:
        raise UserNotFoundError
    result = await db.execute(
        select(TaskProgress).where(TaskProgress.user_id == user_id).order_by(TaskProgress.task_id)
    )
    return list(result.scalars().all())


async def list_user_challenge_progress(
    db: AsyncSession, user_id: int, challenge_id: int
) -> tuple[list[TaskProgress], bool]:
    """A player's progress rows for one challenge plus whether it is completed."""
    if await db.get(User, user_id) is None:
        raise UserNotFoundError
    if await db.get(Challenge, challenge_id) is None:
        raise ChallengeNotFoundError
    result = await db.execute(
        select(TaskProgress)
        .join(ChallengeTask, ChallengeTask.id == TaskProgress.task_id)
        .where(TaskProgress.user_id == user_id, ChallengeTask.challenge_id == challenge_id)
        .order_by(TaskProgress.task_id)
    )
    rows = list(result.scalars().all())
    return rows, await evaluator.is_challenge_completed(db, user_id, challenge_id)


async def list_challenge_progress(db: AsyncSession, challenge_id: int) -> list[TaskProgress]:
    """Every player's progress rows for one challenge."""
    if await db.get(Challenge, challenge_id) is None:
        raise ChallengeNotFoundError
    result = await db.execute(
        select(TaskProgress)
        .join(ChallengeTask, ChallengeTask.id == TaskProgress.task_id)
        .where(ChallengeTask.challenge_id == challenge_id)
        .order_by(TaskProgress.user_id, TaskProgress.task_id)
    )
    return list(result.scalars().all())


async def increment_task(
    db: AsyncSession, user_id: int, task_id: int, amount: int = 1, redis: Any | None = None
) -> tuple[TaskProgress, bool]:
    """Direct increment by task id. Returns (row, challenge_completed).

    Raises:
        UserNotFoundError / TaskNotFoundError: unknown player or task.
    """
    if await db.get(User, user_id) is None:
        raise UserNotFoundError
    row = await tracker.increment(db, user_id, task_id, amount)
    if row is None:
        raise TaskNotFoundError
    challenge_completed = False
    if row.completed:
        challenge_completed = await evaluator.check_completion(db, user_id, row.task.challenge_id, redis=redis)
    return row, challenge_completed


async def update_progress(
    db: AsyncSession, progress_id: int, value: int, redis: Any | None = None
) -> tuple[TaskProgress, bool]:
    """Set an absolute progress value. A resulting completion runs the evaluator."""
    row = await tracker.set_progress(db, progress_id, value)
    if row is None:
        raise ProgressNotFoundError
    challenge_completed = False
    if row.completed:
        challenge_completed = await evaluator.check_completion(db, row.user_id, row.task.challenge_id, redis=redis)
    logger.info("task_progress_set", progress_id=progress_id, progress=value, completed=row.completed)
    return row, challenge_completed


async def delete_progress(db: AsyncSession, progress_id: int) -> None:
    row = await db.get(TaskProgress, progress_id)
    if row is None:
        raise ProgressNotFoundError
    await db.delete(row)
    await db.flush()


async def reset_user_challenge_progress(db: AsyncSession, user_id: int, challenge_id: int) -> int:
    """Zero a player's progress on a challenge and reopen the membership.

    Rewards already granted stay granted; completing again after a reset
    does not grant twice for the same membership.
    """
    if await db.get(Challenge, challenge_id) is None:
        raise ChallengeNotFoundError
    task_ids = select(ChallengeTask.id).where(ChallengeTask.challenge_id == challenge_id)
    result = await db.execute(
        delete(TaskProgress)
        .where(TaskProgress.user_id == user_id, TaskProgress.task_id.in_(task_ids))
        .execution_options(synchronize_session="fetch")
    )
    removed = result.rowcount

    membership = (
        await db.execute(
            select(ChallengeMembership).where(
                ChallengeMembership.user_id == user_id, ChallengeMembership.challenge_id == challenge_id
            )
        )
    ).scalar_one_or_none()
    if membership is not None:
        for (task_id,) in (await db.execute(task_ids)).all():
            await tracker.ensure_progress_row(db, user_id, task_id)
        membership.status = MEMBERSHIP_ACCEPTED
        membership.completed_at = None
    await db.flush()
    logger.info("challenge_progress_reset", user_id=user_id, challenge_id=challenge_id, rows=removed)
    return removed
