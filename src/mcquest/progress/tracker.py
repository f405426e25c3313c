"""Task progress tracker: the atomic increment and completion-detection primitive.

``increment`` never reads the counter into Python: the new value is computed by
the database in one ``UPDATE ... SET progress = progress + :n`` so concurrent
increments for the same (player, task) cannot lose each other's updates, and
``completed`` is written in the same statement from the same expression.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.dialect import dialect_insert
from mcquest.db.models import ChallengeTask, TaskProgress, User

logger = structlog.get_logger()


async def ensure_progress_row(db: AsyncSession, user_id: int, task_id: int) -> bool:
    """Create a zero-valued progress row if none exists. Returns True if one was created."""
    stmt = (
        dialect_insert(db, TaskProgress)
        .values(
            user_id=user_id,
            task_id=task_id,
            progress=0,
            completed=False,
            created_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["user_id", "task_id"])
    )
    result = await db.execute(stmt)
    return result.rowcount > 0


async def increment(
    db: AsyncSession,
    user_id: int,
    task_id: int,
    amount: int = 1,
) -> TaskProgress | None:
    """Add ``amount`` to a player's progress on a task.

    Returns the updated row, or None when the player or the task does not exist.
    A missing progress row is created at zero first; progress may exceed the
    task's target and ``completed`` stays true once the target is reached.

    Raises:
        ValueError: If amount < 1.
    """
    if amount < 1:
        raise ValueError("amount must be >= 1")

    task = await db.get(ChallengeTask, task_id)
    if task is None:
        return None
    if await db.get(User, user_id) is None:
        return None

    if await ensure_progress_row(db, user_id, task_id):
        logger.warning("task_progress_auto_created", user_id=user_id, task_id=task_id)

    new_progress = TaskProgress.progress + amount
    result = await db.execute(
        update(TaskProgress)
        .where(TaskProgress.user_id == user_id, TaskProgress.task_id == task_id)
        .values(
            progress=new_progress,
            completed=new_progress >= task.quantity,
            updated_at=datetime.now(timezone.utc),
        )
        .returning(TaskProgress.id)
        .execution_options(synchronize_session=False)
    )
    progress_id = result.scalar_one()

    # Refresh any stale identity-map copy with the committed values
    row = await db.get(TaskProgress, progress_id, populate_existing=True)
    logger.info(
        "task_progress_incremented",
        user_id=user_id,
        task_id=task_id,
        amount=amount,
        progress=row.progress,
        completed=row.completed,
    )
    return row


async def set_progress(db: AsyncSession, progress_id: int, value: int) -> TaskProgress | None:
    """Overwrite a progress row with an absolute value, recomputing ``completed``."""
    if value < 0:
        raise ValueError("progress must be >= 0")
    row = await db.get(TaskProgress, progress_id)
    if row is None:
        return None
    await db.execute(
        update(TaskProgress)
        .where(TaskProgress.id == progress_id)
        .values(
            progress=value,
            completed=value >= row.task.quantity,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    return await db.get(TaskProgress, progress_id, populate_existing=True)
