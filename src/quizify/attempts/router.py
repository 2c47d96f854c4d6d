"""Quiz attempt API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.attempts.schemas import (
    AnswerIn,
    QuizAttemptCreate,
    QuizAttemptCreatedResponse,
    QuizAttemptListResponse,
    QuizAttemptResponse,
    UserLevelSummary,
)
from quizify.attempts.service import get_attempt, list_attempts, record_attempt
from quizify.auth.dependencies import get_current_user, get_optional_user
from quizify.config import get_settings
from quizify.database import get_session
from quizify.db.models import QuizAttempt, User
from quizify.realtime.notifier import Notifier, get_notifier

router = APIRouter(prefix="/api/v1/quiz-attempts", tags=["Quiz Attempts"])


def _to_response(attempt: QuizAttempt) -> QuizAttemptResponse:
    return QuizAttemptResponse(
        id=str(attempt.id),
        quiz=attempt.quiz_id,
        user=str(attempt.user_id),
        answers=[AnswerIn.model_validate(a) for a in attempt.answers or []],
        score=attempt.score,
        total_possible_score=attempt.total_possible_score,
        time_spent=attempt.time_spent,
        completed=attempt.completed,
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
    )


@router.post("", response_model=QuizAttemptCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz_attempt(
    body: QuizAttemptCreate,
    response: Response,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Record a completed attempt and return the user's updated level.

    A replay of an already-recorded ``idempotencyKey`` returns 200 with the
    original attempt.
    """
    result = await record_attempt(
        db,
        notifier,
        user.id if user is not None else None,
        body,
        max_retries=get_settings().level_update_max_retries,
    )
    if result.replayed:
        response.status_code = status.HTTP_200_OK

    return QuizAttemptCreatedResponse(
        quiz_attempt=_to_response(result.attempt),
        user_level=UserLevelSummary(
            level=result.level.new_level,
            total_quizzes_answered=result.level.total_quizzes_answered,
        ),
    )


@router.get("", response_model=QuizAttemptListResponse)
async def list_my_attempts(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List the user's attempts, most recent first."""
    attempts, total = await list_attempts(db, user.id, limit)
    return QuizAttemptListResponse(attempts=[_to_response(a) for a in attempts], total=total)


@router.get("/{attempt_id}", response_model=QuizAttemptResponse)
async def get_my_attempt(
    attempt_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get one of the user's attempts."""
    return _to_response(await get_attempt(db, user.id, attempt_id))
