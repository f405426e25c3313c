"""Action catalog CRUD."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.models import Action, ChallengeTask
from mcquest.errors import ActionNotFoundError, ConflictError, DuplicateNameError

logger = structlog.get_logger()


async def list_actions(db: AsyncSession) -> list[Action]:
    result = await db.execute(select(Action).order_by(Action.name))
    return list(result.scalars().all())


async def get_action(db: AsyncSession, action_id: int) -> Action:
    action = await db.get(Action, action_id)
    if action is None:
        raise ActionNotFoundError
    return action


async def create_action(
    db: AsyncSession, name: str, description: str | None = None, parameters: dict[str, Any] | None = None
) -> Action:
    """Create a catalog entry. Raises DuplicateNameError if the name is taken."""
    action = Action(name=name, description=description, parameters=parameters)
    try:
        async with db.begin_nested():
            db.add(action)
    except IntegrityError:
        raise DuplicateNameError(f"Action '{name}' already exists") from None
    logger.info("action_created", action_id=action.id, name=name)
    return action


async def update_action(db: AsyncSession, action_id: int, **changes: Any) -> Action:
    action = await get_action(db, action_id)
    try:
        async with db.begin_nested():
            for field in ("name", "description", "parameters"):
                if field in changes:
                    setattr(action, field, changes[field])
    except IntegrityError:
        raise DuplicateNameError(f"Action '{changes.get('name')}' already exists") from None
    return action


async def delete_action(db: AsyncSession, action_id: int) -> None:
    """Delete an action. Refused while any task references it."""
    action = await get_action(db, action_id)
    in_use = (
        await db.execute(select(func.count()).select_from(ChallengeTask).where(ChallengeTask.action_id == action_id))
    ).scalar_one()
    if in_use:
        raise ConflictError(f"Action is used by {in_use} task(s)")
    await db.delete(action)
    await db.flush()
    logger.info("action_deleted", action_id=action_id)
