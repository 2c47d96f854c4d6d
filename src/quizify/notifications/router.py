"""Notification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.auth.dependencies import get_current_user
from quizify.database import get_session
from quizify.db.models import Notification, User
from quizify.notifications.schemas import (
    DetailResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from quizify.notifications.service import (
    delete_all_notifications,
    delete_notification,
    get_unread_count,
    get_user_notifications,
    mark_all_as_read,
    mark_as_read,
)
from quizify.realtime.notifier import Notifier, get_notifier

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


def _to_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=str(n.id),
        type=n.type,
        title=n.title,
        message=n.message,
        is_read=n.is_read,
        created_at=n.created_at,
        data=n.data or {},
    )


@router.get("", response_model=NotificationListResponse, response_model_by_alias=True)
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List the user's most recent notifications."""
    notifications = await get_user_notifications(db, user.id, limit)
    unread = await get_unread_count(db, user.id)
    return NotificationListResponse(
        notifications=[_to_response(n) for n in notifications],
        unread_count=unread,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get unread notification count."""
    return UnreadCountResponse(count=await get_unread_count(db, user.id))


@router.patch("/read-all", response_model=DetailResponse)
async def read_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Mark all notifications as read."""
    count = await mark_all_as_read(db, notifier, user.id)
    return DetailResponse(detail=f"Marked {count} notifications as read")


@router.patch("/{notification_id}/read", response_model=NotificationResponse, response_model_by_alias=True)
async def read_one(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Mark a notification as read."""
    notification = await mark_as_read(db, notifier, user.id, notification_id)
    return _to_response(notification)


@router.delete("", response_model=DetailResponse)
async def delete_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Delete all of the user's notifications."""
    count = await delete_all_notifications(db, notifier, user.id)
    return DetailResponse(detail=f"Deleted {count} notifications")


@router.delete("/{notification_id}", response_model=DetailResponse)
async def delete_one(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Delete a notification."""
    await delete_notification(db, notifier, user.id, notification_id)
    return DetailResponse(detail="Notification deleted")
