"""Task management within a challenge."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.actions.service import get_action
from mcquest.challenges.service import get_challenge
from mcquest.db.models import MEMBERSHIP_ACCEPTED, ChallengeMembership, ChallengeTask, TaskProgress
from mcquest.errors import TaskNotFoundError
from mcquest.progress import evaluator

logger = structlog.get_logger()


async def list_tasks(db: AsyncSession, challenge_id: int) -> list[ChallengeTask]:
    await get_challenge(db, challenge_id)
    result = await db.execute(
        select(ChallengeTask).where(ChallengeTask.challenge_id == challenge_id).order_by(ChallengeTask.id)
    )
    return list(result.scalars().all())


async def get_task(db: AsyncSession, challenge_id: int, task_id: int) -> ChallengeTask:
    """Fetch a task, scoped to its challenge."""
    task = await db.get(ChallengeTask, task_id)
    if task is None or task.challenge_id != challenge_id:
        raise TaskNotFoundError
    return task


async def create_task(
    db: AsyncSession,
    challenge_id: int,
    action_id: int,
    quantity: int = 1,
    parameters: dict[str, Any] | None = None,
) -> ChallengeTask:
    """Add a task to a challenge.

    Players already working on the challenge get a zero-valued progress row
    for the new task, so every accepted member keeps one row per task.
    """
    await get_challenge(db, challenge_id)
    action = await get_action(db, action_id)

    task = ChallengeTask(challenge_id=challenge_id, action_id=action.id, quantity=quantity, parameters=parameters)
    db.add(task)
    await db.flush()
    await db.refresh(task, attribute_names=["action"])

    member_ids = (
        await db.execute(
            select(ChallengeMembership.user_id).where(
                ChallengeMembership.challenge_id == challenge_id,
                ChallengeMembership.status == MEMBERSHIP_ACCEPTED,
            )
        )
    ).scalars().all()
    now = datetime.now(timezone.utc)
    db.add_all(
        TaskProgress(user_id=user_id, task_id=task.id, progress=0, completed=False, created_at=now)
        for user_id in member_ids
    )
    await db.flush()

    logger.info(
        "task_created",
        challenge_id=challenge_id,
        task_id=task.id,
        action=action.name,
        quantity=quantity,
        backfilled=len(member_ids),
    )
    return task


async def reevaluate_members(db: AsyncSession, challenge_id: int, redis: Any | None = None) -> int:
    """Run the completion check for every accepted member of a challenge.

    Returns the number of members whose challenge is now complete.
    """
    member_ids = (
        await db.execute(
            select(ChallengeMembership.user_id)
            .where(
                ChallengeMembership.challenge_id == challenge_id,
                ChallengeMembership.status == MEMBERSHIP_ACCEPTED,
            )
            .order_by(ChallengeMembership.id)
        )
    ).scalars().all()
    completed = 0
    for user_id in member_ids:
        if await evaluator.check_completion(db, user_id, challenge_id, redis=redis):
            completed += 1
    if completed:
        logger.info("task_edit_completed_members", challenge_id=challenge_id, completed=completed)
    return completed


async def update_task(
    db: AsyncSession,
    challenge_id: int,
    task_id: int,
    redis: Any | None = None,
    **changes: Any,
) -> ChallengeTask:
    """Apply a partial update.

    Lowering ``quantity`` can complete existing progress rows, so accepted
    members are re-evaluated afterwards.
    """
    task = await get_task(db, challenge_id, task_id)
    if changes.get("action_id") is not None:
        task.action_id = (await get_action(db, changes["action_id"])).id
    quantity_changed = changes.get("quantity") is not None
    if quantity_changed:
        task.quantity = changes["quantity"]
        # Keep completed == (progress >= quantity) for existing rows
        await db.execute(
            update(TaskProgress)
            .where(TaskProgress.task_id == task.id)
            .values(completed=TaskProgress.progress >= task.quantity)
            .execution_options(synchronize_session=False)
        )
    if "parameters" in changes:
        task.parameters = changes["parameters"]
    await db.flush()
    if quantity_changed:
        await reevaluate_members(db, challenge_id, redis=redis)
    # action is eager-loaded; refresh so the response reflects a changed action_id
    await db.refresh(task, attribute_names=["action"])
    logger.info("task_updated", challenge_id=challenge_id, task_id=task_id)
    return task


async def delete_task(db: AsyncSession, challenge_id: int, task_id: int, redis: Any | None = None) -> None:
    """Delete a task; its progress rows cascade.

    Removing a member's last pending task completes the challenge for them.
    """
    task = await get_task(db, challenge_id, task_id)
    await db.delete(task)
    await db.flush()
    logger.info("task_deleted", challenge_id=challenge_id, task_id=task_id)
    await reevaluate_members(db, challenge_id, redis=redis)
