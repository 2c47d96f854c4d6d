"""Pydantic response models for notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NotificationResponse(_CamelModel):
    id: str
    type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime
    data: dict[str, Any] = {}


class NotificationListResponse(_CamelModel):
    notifications: list[NotificationResponse]
    unread_count: int


class UnreadCountResponse(BaseModel):
    count: int


class DetailResponse(BaseModel):
    detail: str
