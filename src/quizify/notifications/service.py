"""Notification persistence and delivery.

Every mutation is committed first and then pushed to the user's room as a
delta event, so a client that re-fetches after a push always sees the change.
Pushes are best-effort (see ``quizify.realtime.notifier``).

Types: level_up, achievement, daily_task, system
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.db.models import Notification
from quizify.errors import NotFoundError
from quizify.realtime.events import (
    NotificationItem,
    notification_created_event,
    notification_deleted_event,
    notification_read_event,
    notifications_deleted_all_event,
    notifications_read_all_event,
)
from quizify.realtime.notifier import Notifier

logger = logging.getLogger(__name__)

VALID_TYPES = {"level_up", "achievement", "daily_task", "system"}


def to_item(notification: Notification) -> NotificationItem:
    return NotificationItem(
        id=str(notification.id),
        type=notification.type,
        title=notification.title,
        message=notification.message,
        is_read=notification.is_read,
        created_at=notification.created_at,
        data=notification.data or {},
    )


async def create_notification(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    type_: str,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> Notification:
    """Persist a notification and push it to the user's room."""
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {sorted(VALID_TYPES)}")

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        data=data or {},
        is_read=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.commit()

    await notifier.emit_to_user(user_id, notification_created_event(to_item(notification)))
    return notification


async def get_user_notifications(db: AsyncSession, user_id: int, limit: int = 20) -> list[Notification]:
    """Most recent notifications first."""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return result.scalar_one()


async def _get_owned(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    return notification


async def mark_as_read(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    notification_id: int,
) -> Notification:
    """Mark one of the user's notifications as read. Raises NotFoundError."""
    notification = await _get_owned(db, user_id, notification_id)
    notification.is_read = True
    await db.commit()

    await notifier.emit_to_user(user_id, notification_read_event(notification_id))
    return notification


async def mark_all_as_read(db: AsyncSession, notifier: Notifier, user_id: int) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()

    await notifier.emit_to_user(user_id, notifications_read_all_event())
    return result.rowcount


async def delete_notification(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    notification_id: int,
) -> None:
    """Delete one of the user's notifications. Raises NotFoundError."""
    notification = await _get_owned(db, user_id, notification_id)
    await db.delete(notification)
    await db.commit()

    await notifier.emit_to_user(user_id, notification_deleted_event(notification_id))


async def delete_all_notifications(db: AsyncSession, notifier: Notifier, user_id: int) -> int:
    result = await db.execute(delete(Notification).where(Notification.user_id == user_id))
    await db.commit()

    await notifier.emit_to_user(user_id, notifications_deleted_all_event())
    logger.info("Deleted %d notifications for user %s", result.rowcount, user_id)
    return result.rowcount
