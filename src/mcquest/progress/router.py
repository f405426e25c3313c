"""Progress endpoints: plugin-facing writes and read paths."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.auth.dependencies import require_admin, require_admin_or_system, require_system
from mcquest.database import get_session
from mcquest.db.models import TaskProgress, User
from mcquest.errors import UserNotFoundError
from mcquest.progress import service as progress_service
from mcquest.progress.action_router import route_action
from mcquest.progress.schemas import (
    ActionEventRequest,
    ActionEventResponse,
    IncrementProgressRequest,
    ProgressResponse,
    ProgressUpdateResponse,
    SetProgressRequest,
    TaskOutcomeResponse,
    UserChallengeProgressResponse,
)
from mcquest.redis_client import get_optional_redis
from mcquest.users.service import get_user_by_id

router = APIRouter(prefix="/api/v1", tags=["Progress"])


def progress_response(row: TaskProgress) -> ProgressResponse:
    """Build a ProgressResponse; ``row.task`` is eager-loaded."""
    return ProgressResponse(
        id=row.id,
        user_id=row.user_id,
        task_id=row.task_id,
        challenge_id=row.task.challenge_id,
        progress=row.progress,
        target=row.task.quantity,
        completed=row.completed,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Plugin writes
# ---------------------------------------------------------------------------


@router.post("/progress/increment", response_model=ProgressUpdateResponse)
async def increment_progress(
    body: IncrementProgressRequest,
    _system: User = Depends(require_system),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_optional_redis),
):
    """Add ``amount`` to one task's progress and evaluate the challenge."""
    row, challenge_completed = await progress_service.increment_task(
        db, body.user_id, body.task_id, body.amount, redis=redis
    )
    response = ProgressUpdateResponse(**progress_response(row).model_dump(), challengeCompleted=challenge_completed)
    await db.commit()
    return response


async def _route(body: ActionEventRequest, db: AsyncSession, redis: Any) -> ActionEventResponse:
    if await get_user_by_id(db, body.user_id) is None:
        raise UserNotFoundError
    outcomes = await route_action(
        db, body.user_id, body.action_name, body.quantity, body.parameters, redis=redis
    )
    await db.commit()
    return ActionEventResponse(results=[TaskOutcomeResponse(**o.to_dict()) for o in outcomes])


@router.post("/progress/actions", response_model=ActionEventResponse)
async def report_action(
    body: ActionEventRequest,
    _system: User = Depends(require_system),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_optional_redis),
):
    """Apply an in-game action event to every matching task of the player."""
    return await _route(body, db, redis)


@router.post("/challenges/progress/update", response_model=ActionEventResponse)
async def report_action_legacy(
    body: ActionEventRequest,
    _system: User = Depends(require_system),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_optional_redis),
):
    """Same as ``POST /progress/actions``; path kept for existing plugin builds."""
    return await _route(body, db, redis)


# ---------------------------------------------------------------------------
# Single rows
# ---------------------------------------------------------------------------


@router.get("/progress/{progress_id}", response_model=ProgressResponse)
async def get_progress(progress_id: int, db: AsyncSession = Depends(get_session)):
    return progress_response(await progress_service.get_progress(db, progress_id))


@router.put("/progress/{progress_id}", response_model=ProgressUpdateResponse)
async def set_progress(
    progress_id: int,
    body: SetProgressRequest,
    _caller: User = Depends(require_admin_or_system),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_optional_redis),
):
    """Overwrite a progress value; ``completed`` is recomputed from the target."""
    row, challenge_completed = await progress_service.update_progress(db, progress_id, body.progress, redis=redis)
    response = ProgressUpdateResponse(**progress_response(row).model_dump(), challengeCompleted=challenge_completed)
    await db.commit()
    return response


@router.delete("/progress/{progress_id}", status_code=204)
async def delete_progress(
    progress_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> None:
    await progress_service.delete_progress(db, progress_id)
    await db.commit()


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/progress", response_model=list[ProgressResponse])
async def list_user_progress(user_id: int, db: AsyncSession = Depends(get_session)):
    return [progress_response(r) for r in await progress_service.list_user_progress(db, user_id)]


@router.get("/users/{user_id}/challenges/{challenge_id}/progress", response_model=UserChallengeProgressResponse)
async def list_user_challenge_progress(user_id: int, challenge_id: int, db: AsyncSession = Depends(get_session)):
    rows, completed = await progress_service.list_user_challenge_progress(db, user_id, challenge_id)
    return UserChallengeProgressResponse(
        user_id=user_id,
        challenge_id=challenge_id,
        progress=[progress_response(r) for r in rows],
        challengeCompleted=completed,
    )


@router.delete("/users/{user_id}/challenges/{challenge_id}/progress", status_code=204)
async def reset_user_challenge_progress(
    user_id: int,
    challenge_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Zero a player's progress on a challenge."""
    await progress_service.reset_user_challenge_progress(db, user_id, challenge_id)
    await db.commit()


@router.get("/challenges/{challenge_id}/progress", response_model=list[ProgressResponse])
async def list_challenge_progress(challenge_id: int, db: AsyncSession = Depends(get_session)):
    return [progress_response(r) for r in await progress_service.list_challenge_progress(db, challenge_id)]
