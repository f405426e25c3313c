"""Action catalog endpoints: public reads, admin writes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.actions import service
from mcquest.actions.schemas import ActionCreateRequest, ActionResponse, ActionUpdateRequest
from mcquest.auth.dependencies import require_admin
from mcquest.database import get_session
from mcquest.db.models import User

router = APIRouter(prefix="/api/v1/actions", tags=["Actions"])


@router.get("", response_model=list[ActionResponse])
async def list_actions(db: AsyncSession = Depends(get_session)):
    return [ActionResponse.model_validate(a) for a in await service.list_actions(db)]


@router.get("/{action_id}", response_model=ActionResponse)
async def get_action(action_id: int, db: AsyncSession = Depends(get_session)):
    return ActionResponse.model_validate(await service.get_action(db, action_id))


@router.post("", response_model=ActionResponse, status_code=201)
async def create_action(
    body: ActionCreateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Add an action type to the catalog (409 if the name exists)."""
    action = await service.create_action(db, body.name, body.description, body.parameters)
    await db.commit()
    return ActionResponse.model_validate(action)


@router.put("/{action_id}", response_model=ActionResponse)
async def update_action(
    action_id: int,
    body: ActionUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    action = await service.update_action(db, action_id, **body.model_dump(exclude_unset=True))
    await db.commit()
    return ActionResponse.model_validate(action)


@router.delete("/{action_id}", status_code=204)
async def delete_action(
    action_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Remove an action; refused with 409 while tasks use it."""
    await service.delete_action(db, action_id)
    await db.commit()
