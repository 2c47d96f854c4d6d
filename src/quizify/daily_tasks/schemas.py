"""Pydantic models for daily task endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DailyTaskResponse(_CamelModel):
    id: str
    task_id: str
    name: str
    description: str
    type: str
    requirement: int
    points: int
    progress: int
    completed: bool
    completed_at: datetime | None = None


class DailyTaskStats(_CamelModel):
    total: int
    completed: int
    incomplete: int
    progress_percentage: int


class DailyTasksResponse(_CamelModel):
    tasks: list[DailyTaskResponse]
    stats: DailyTaskStats


class TaskProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0)


class TaskProgressResponse(_CamelModel):
    message: str
    task: DailyTaskResponse
