"""Client-side state for a user's real-time channel.

``NotificationSubscriber`` keeps a local notification list in step with the
server. Push delivery is best-effort, so every (re)connect starts with a
``notification:get`` fetch. Every delta it applies is idempotent, which makes a
duplicated or late push harmless. A ``levelUp`` push shows a ``LevelUpModal``
that hides itself after a few seconds. The modal is only ever driven by a
pushed event.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol, cast

import structlog

from quizify.config import get_settings
from quizify.realtime.events import (
    EventKind,
    LevelUpPayload,
    NotificationDataPayload,
    NotificationItem,
    NotificationRefPayload,
    ServerEvent,
)

logger = structlog.get_logger()


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class LevelUpModal:
    """Transient level-up banner: visible until ``display_seconds`` pass or ``dismiss()``."""

    def __init__(self, display_seconds: float | None = None) -> None:
        self.display_seconds = get_settings().level_up_modal_seconds if display_seconds is None else display_seconds
        self.visible = False
        self.new_level: int | None = None
        self.previous_level: int | None = None
        self._hide_handle: asyncio.TimerHandle | None = None

    def show(self, new_level: int, previous_level: int) -> None:
        """Display the modal; a second level-up while visible restarts the timer."""
        self._cancel_timer()
        self.new_level = new_level
        self.previous_level = previous_level
        self.visible = True
        self._hide_handle = asyncio.get_running_loop().call_later(self.display_seconds, self.dismiss)

    def dismiss(self) -> None:
        self._cancel_timer()
        self.visible = False

    def _cancel_timer(self) -> None:
        if self._hide_handle is not None:
            self._hide_handle.cancel()
            self._hide_handle = None


class NotificationCalls(Protocol):
    """Request/response calls the subscriber makes on the user's behalf."""

    async def mark_as_read(self, notification_id: str) -> None: ...

    async def delete(self, notification_id: str) -> None: ...


SendFn = Callable[[dict[str, Any]], Awaitable[None]]


class NotificationSubscriber:
    """Reconciles the local notification list against fetches and push deltas."""

    def __init__(self, send: SendFn, api: NotificationCalls, modal: LevelUpModal | None = None) -> None:
        self._send = send
        self.api = api
        self.modal = modal or LevelUpModal()
        self.state = ConnectionState.DISCONNECTED
        self.notifications: list[NotificationItem] = []  # newest first

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)

    def find(self, notification_id: str) -> NotificationItem | None:
        return next((n for n in self.notifications if n.id == notification_id), None)

    # ── Connection lifecycle ──

    def on_connecting(self) -> None:
        self.state = ConnectionState.CONNECTING

    async def on_connected(self) -> None:
        """Subscribed: fetch the current list to cover pushes missed while offline."""
        self.state = ConnectionState.CONNECTED
        await self._send({"action": "notification:get"})

    def on_disconnected(self) -> None:
        self.state = ConnectionState.DISCONNECTED

    # ── Push events ──

    def handle_event(self, event: ServerEvent) -> None:
        """Apply one server event to local state."""
        kind = event.kind
        payload = event.payload

        if kind is EventKind.LEVEL_UP:
            level_up = cast(LevelUpPayload, payload)
            self.modal.show(level_up.new_level, level_up.previous_level)
        elif kind is EventKind.NOTIFICATION_DATA:
            data = cast(NotificationDataPayload, payload)
            if data.snapshot:
                self.notifications = list(data.notifications)
            else:
                for item in data.notifications:
                    self._insert(item)
        elif kind is EventKind.NOTIFICATION_READ:
            self._mark_read(cast(NotificationRefPayload, payload).notification_id)
        elif kind is EventKind.NOTIFICATION_READ_ALL:
            self.notifications = [n if n.is_read else n.model_copy(update={"is_read": True}) for n in self.notifications]
        elif kind is EventKind.NOTIFICATION_DELETED:
            self._remove(cast(NotificationRefPayload, payload).notification_id)
        elif kind is EventKind.NOTIFICATION_DELETED_ALL:
            self.notifications = []
        else:  # pragma: no cover - every kind is handled above
            logger.warning("unhandled_event", kind=kind.value)

    # ── User actions ──

    async def mark_as_read(self, notification_id: str) -> None:
        """Mark read on the server, then locally. Raises whatever the call raises."""
        await self.api.mark_as_read(notification_id)
        self._mark_read(notification_id)

    async def delete(self, notification_id: str) -> None:
        await self.api.delete(notification_id)
        self._remove(notification_id)

    # ── Idempotent mutations ──

    def _insert(self, item: NotificationItem) -> None:
        if self.find(item.id) is None:
            self.notifications.insert(0, item)

    def _mark_read(self, notification_id: str) -> None:
        self.notifications = [
            n.model_copy(update={"is_read": True}) if n.id == notification_id and not n.is_read else n
            for n in self.notifications
        ]

    def _remove(self, notification_id: str) -> None:
        self.notifications = [n for n in self.notifications if n.id != notification_id]
