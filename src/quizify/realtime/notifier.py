"""Best-effort delivery of events to a user's room.

``Notifier.emit_to_user`` is the only way the rest of the service pushes
events. Delivery is at-most-once: if no connection is in the room when the
event is emitted, it is dropped. Implementations never raise.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

import structlog

from quizify.realtime.events import ServerEvent
from quizify.realtime.manager import ConnectionManager

logger = structlog.get_logger()

USER_CHANNEL_PREFIX = "ws:user:"


def user_channel(user_id: int) -> str:
    return f"{USER_CHANNEL_PREFIX}{user_id}"


class Notifier(Protocol):
    async def emit_to_user(self, user_id: int, event: ServerEvent) -> None: ...


class LocalNotifier:
    """Delivers straight to this process's connection manager."""

    def __init__(self, connections: ConnectionManager) -> None:
        self.connections = connections

    async def emit_to_user(self, user_id: int, event: ServerEvent) -> None:
        try:
            sent = await self.connections.send_to_user(user_id, event)
        except Exception:
            logger.warning("event_delivery_failed", user_id=user_id, kind=event.kind.value, exc_info=True)
            return
        logger.debug("event_emitted", user_id=user_id, kind=event.kind.value, recipients=sent)


class RedisNotifier:
    """Publishes to ``ws:user:{id}``; every API instance's PubSubBridge forwards it to local sockets."""

    def __init__(self, redis: Any) -> None:
        self.redis = redis

    async def emit_to_user(self, user_id: int, event: ServerEvent) -> None:
        try:
            await self.redis.publish(user_channel(user_id), json.dumps(event.to_wire()))
        except Exception:
            logger.warning("event_publish_failed", user_id=user_id, kind=event.kind.value, exc_info=True)
            return
        logger.debug("event_published", user_id=user_id, kind=event.kind.value)


class NullNotifier:
    """Drops every event. Used by scripts that write data without a socket layer."""

    async def emit_to_user(self, user_id: int, event: ServerEvent) -> None:
        return None


_notifier: Notifier | None = None


def set_notifier(notifier: Notifier | None) -> None:
    global _notifier  # noqa: PLW0603
    _notifier = notifier


def get_notifier() -> Notifier:
    """FastAPI dependency: the notifier installed at startup."""
    if _notifier is None:
        msg = "Notifier not initialized. Call set_notifier() first."
        raise RuntimeError(msg)
    return _notifier
