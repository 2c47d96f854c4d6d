"""Pydantic request/response models for quiz attempt endpoints.

JSON keys are camelCase to match the mobile and web clients.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnswerIn(_CamelModel):
    question_id: str = Field(..., min_length=1, max_length=64)
    selected_answer: str
    is_correct: bool
    time_spent: int = Field(0, ge=0)


class QuizAttemptCreate(_CamelModel):
    quiz: str = Field(..., min_length=1, max_length=64)
    answers: list[AnswerIn] = []
    score: int = Field(0, ge=0)
    total_possible_score: int = Field(..., ge=0)
    time_spent: int = Field(0, ge=0)
    started_at: datetime | None = None
    idempotency_key: str | None = Field(None, min_length=1, max_length=128)

    @model_validator(mode="after")
    def _score_within_total(self) -> QuizAttemptCreate:
        if self.score > self.total_possible_score:
            raise ValueError("score cannot exceed totalPossibleScore")
        return self


class QuizAttemptResponse(_CamelModel):
    id: str
    quiz: str
    user: str
    answers: list[AnswerIn]
    score: int
    total_possible_score: int
    time_spent: int
    completed: bool
    started_at: datetime | None = None
    completed_at: datetime | None = None


class UserLevelSummary(_CamelModel):
    level: int
    total_quizzes_answered: int


class QuizAttemptCreatedResponse(_CamelModel):
    quiz_attempt: QuizAttemptResponse
    user_level: UserLevelSummary


class QuizAttemptListResponse(_CamelModel):
    attempts: list[QuizAttemptResponse]
    total: int
