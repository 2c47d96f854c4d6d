"""Pydantic response models for progression endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Level ---


class LevelResponse(_CamelModel):
    level: int
    total_quizzes_answered: int
    last_level_up: datetime | None = None
    next_level: int
    quizzes_into_level: int
    quizzes_for_level: int
    quizzes_to_next_level: int


class LevelEntry(_CamelModel):
    level: int
    min_quizzes: int
    max_quizzes: int | None = None


class AllLevelsResponse(_CamelModel):
    levels: list[LevelEntry]


# --- Achievements ---


class AchievementCriteria(_CamelModel):
    type: str
    value: int
    quiz_id: str | None = None


class AchievementResponse(_CamelModel):
    id: str
    slug: str
    name: str
    description: str
    badge: str
    criteria: AchievementCriteria


class UserAchievementResponse(AchievementResponse):
    unlocked: bool
    unlocked_at: datetime | None = None


class AchievementStats(_CamelModel):
    total: int
    unlocked: int
    locked: int
    progress_percentage: int


class AllAchievementsResponse(_CamelModel):
    achievements: list[AchievementResponse]


class UserAchievementsResponse(_CamelModel):
    achievements: list[UserAchievementResponse]
    stats: AchievementStats
