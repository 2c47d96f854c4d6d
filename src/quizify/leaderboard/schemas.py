"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LeaderboardUser(_CamelModel):
    id: str
    username: str


class GlobalLeaderboardEntry(_CamelModel):
    position: int
    user: LeaderboardUser
    total_score: int
    average_score: float
    quizzes_completed: int
    last_updated: datetime | None = None


class GlobalLeaderboardResponse(_CamelModel):
    leaderboard: list[GlobalLeaderboardEntry]
    total_entries: int
    current_page: int
    total_pages: int


class QuizLeaderboardEntry(_CamelModel):
    position: int
    user: LeaderboardUser
    score: int
    time_spent: int
    completed_at: datetime | None = None


class QuizLeaderboardResponse(_CamelModel):
    quiz: str
    leaderboard: list[QuizLeaderboardEntry]
    total_entries: int
    current_page: int
    total_pages: int


class GlobalRanking(_CamelModel):
    total_score: int
    quizzes_completed: int
    average_score: float
    rank: int | None = None
    total_participants: int
    percentile: int | None = None


class QuizRanking(_CamelModel):
    quiz: str
    score: int
    time_spent: int
    rank: int
    total_participants: int
    percentile: int


class UserRankingsResponse(_CamelModel):
    global_: GlobalRanking = Field(..., alias="global")
    quizzes: list[QuizRanking]
