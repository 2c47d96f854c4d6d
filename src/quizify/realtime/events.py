"""Typed server → client events pushed over a user's room.

Wire format (Redis pub/sub and WebSocket alike)::

    {"event": "<kind>", "data": {...camelCase payload...}}

Each kind has exactly one payload model; ``decode_event`` dispatches on the
kind explicitly so an unknown kind or mismatched payload is rejected instead
of being handed to a handler that guesses.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventKind(str, Enum):
    LEVEL_UP = "levelUp"
    NOTIFICATION_DATA = "notification:data"
    NOTIFICATION_READ = "notification:read"
    NOTIFICATION_READ_ALL = "notification:read-all"
    NOTIFICATION_DELETED = "notification:deleted"
    NOTIFICATION_DELETED_ALL = "notification:deleted-all"


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class LevelUpPayload(_Payload):
    new_level: int = Field(..., ge=1)
    previous_level: int = Field(..., ge=1)
    total_quizzes_answered: int = Field(..., ge=0)


class NotificationItem(_Payload):
    id: str
    type: str
    title: str
    message: str
    is_read: bool = False
    created_at: datetime | None = None
    data: dict[str, Any] = {}


class NotificationDataPayload(_Payload):
    """``snapshot`` is True for a full list (reply to notification:get), False for a created delta."""

    notifications: list[NotificationItem]
    snapshot: bool = False


class NotificationRefPayload(_Payload):
    notification_id: str


class EmptyPayload(_Payload):
    pass


EventPayload = Union[LevelUpPayload, NotificationDataPayload, NotificationRefPayload, EmptyPayload]


class ServerEvent(BaseModel):
    """One event addressed to a user's room."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    payload: EventPayload

    def to_wire(self) -> dict[str, Any]:
        return {"event": self.kind.value, "data": self.payload.model_dump(mode="json", by_alias=True)}


class InvalidEventError(ValueError):
    """Raised when a wire message does not decode to a known event."""


def decode_event(message: dict[str, Any]) -> ServerEvent:
    """Parse a wire message into a ServerEvent."""
    try:
        kind = EventKind(message.get("event"))
    except ValueError as e:
        raise InvalidEventError(f"Unknown event: {message.get('event')!r}") from e

    data = message.get("data") or {}
    try:
        if kind is EventKind.LEVEL_UP:
            payload: EventPayload = LevelUpPayload.model_validate(data)
        elif kind is EventKind.NOTIFICATION_DATA:
            payload = NotificationDataPayload.model_validate(data)
        elif kind in (EventKind.NOTIFICATION_READ, EventKind.NOTIFICATION_DELETED):
            payload = NotificationRefPayload.model_validate(data)
        elif kind in (EventKind.NOTIFICATION_READ_ALL, EventKind.NOTIFICATION_DELETED_ALL):
            payload = EmptyPayload()
        else:  # pragma: no cover - every kind is handled above
            raise InvalidEventError(f"Unhandled event kind: {kind.value}")
    except ValueError as e:
        if isinstance(e, InvalidEventError):
            raise
        raise InvalidEventError(f"Invalid payload for {kind.value}: {e}") from e

    return ServerEvent(kind=kind, payload=payload)


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def level_up_event(previous_level: int, new_level: int, total_quizzes_answered: int) -> ServerEvent:
    return ServerEvent(
        kind=EventKind.LEVEL_UP,
        payload=LevelUpPayload(
            new_level=new_level,
            previous_level=previous_level,
            total_quizzes_answered=total_quizzes_answered,
        ),
    )


def notification_created_event(item: NotificationItem) -> ServerEvent:
    return ServerEvent(
        kind=EventKind.NOTIFICATION_DATA,
        payload=NotificationDataPayload(notifications=[item], snapshot=False),
    )


def notification_snapshot_event(items: list[NotificationItem]) -> ServerEvent:
    return ServerEvent(
        kind=EventKind.NOTIFICATION_DATA,
        payload=NotificationDataPayload(notifications=items, snapshot=True),
    )


def notification_read_event(notification_id: int | str) -> ServerEvent:
    return ServerEvent(
        kind=EventKind.NOTIFICATION_READ,
        payload=NotificationRefPayload(notification_id=str(notification_id)),
    )


def notification_deleted_event(notification_id: int | str) -> ServerEvent:
    return ServerEvent(
        kind=EventKind.NOTIFICATION_DELETED,
        payload=NotificationRefPayload(notification_id=str(notification_id)),
    )


def notifications_read_all_event() -> ServerEvent:
    return ServerEvent(kind=EventKind.NOTIFICATION_READ_ALL, payload=EmptyPayload())


def notifications_deleted_all_event() -> ServerEvent:
    return ServerEvent(kind=EventKind.NOTIFICATION_DELETED_ALL, payload=EmptyPayload())
