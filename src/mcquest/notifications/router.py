"""Notification API endpoints for the authenticated player."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.auth.dependencies import get_current_user
from mcquest.database import get_session
from mcquest.db.models import Notification, User
from mcquest.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from mcquest.notifications.service import (
    delete_notification,
    delete_read_notifications,
    get_notification,
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


def _to_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        type=n.type,
        message=n.message,
        read=n.read,
        metadata=n.notification_metadata or {},
        created_at=n.created_at,
    )


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    include_read: bool = Query(False),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List the player's notifications (paginated, unread only unless include_read)."""
    notifications, total = await get_notifications(db, user.id, include_read, page, per_page)
    return NotificationListResponse(
        notifications=[_to_response(n) for n in notifications],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_notification_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    count = await get_unread_count(db, user.id)
    return UnreadCountResponse(unread_count=count)


@router.post("/notifications/read-all", status_code=200)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark all notifications as read."""
    count = await mark_all_as_read(db, user.id)
    await db.commit()
    return {"detail": f"Marked {count} notifications as read", "count": count}


@router.delete("/notifications/read", status_code=200)
async def clear_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Delete every read notification."""
    count = await delete_read_notifications(db, user.id)
    await db.commit()
    return {"detail": f"Deleted {count} notifications", "count": count}


@router.get("/notifications/{notification_id}", response_model=NotificationResponse)
async def read_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _to_response(await get_notification(db, user.id, notification_id))


@router.post("/notifications/{notification_id}/read", status_code=200)
async def mark_notification_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark a notification as read."""
    found = await mark_as_read(db, user.id, notification_id)
    if not found:
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    return {"detail": "Notification marked as read"}


@router.delete("/notifications/{notification_id}", status_code=204)
async def remove_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    if not await delete_notification(db, user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
