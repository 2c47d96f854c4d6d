"""Quiz attempt recording with level recomputation and level-up emission."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.attempts.schemas import QuizAttemptCreate
from quizify.daily_tasks.service import record_quiz_progress
from quizify.db.models import QuizAttempt
from quizify.errors import NotFoundError, UserIdentityRequiredError
from quizify.notifications.service import create_notification
from quizify.progression.achievement_service import UnlockCandidate, check_achievements
from quizify.progression.level_service import LevelChange, reconcile_level
from quizify.realtime.events import level_up_event
from quizify.realtime.notifier import Notifier

logger = structlog.get_logger()


@dataclass
class AttemptResult:
    attempt: QuizAttempt
    level: LevelChange
    replayed: bool = False
    unlocked: list[UnlockCandidate] = field(default_factory=list)


async def get_attempt_by_key(db: AsyncSession, user_id: int, idempotency_key: str) -> QuizAttempt | None:
    result = await db.execute(
        select(QuizAttempt).where(
            QuizAttempt.user_id == user_id,
            QuizAttempt.idempotency_key == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


async def _persist_attempt(db: AsyncSession, user_id: int, payload: QuizAttemptCreate) -> tuple[QuizAttempt, bool]:
    """Insert the attempt and commit. Returns (attempt, replayed)."""
    if payload.idempotency_key:
        existing = await get_attempt_by_key(db, user_id, payload.idempotency_key)
        if existing is not None:
            return existing, True

    now = datetime.now(timezone.utc)
    attempt = QuizAttempt(
        user_id=user_id,
        quiz_id=payload.quiz,
        answers=[a.model_dump(by_alias=True) for a in payload.answers],
        score=payload.score,
        total_possible_score=payload.total_possible_score,
        time_spent=payload.time_spent,
        completed=True,
        started_at=payload.started_at or now,
        completed_at=now,
        idempotency_key=payload.idempotency_key,
    )
    db.add(attempt)
    try:
        await db.commit()
    except IntegrityError:
        # Same idempotency key submitted concurrently; the other insert won
        await db.rollback()
        if not payload.idempotency_key:
            raise
        existing = await get_attempt_by_key(db, user_id, payload.idempotency_key)
        if existing is None:
            raise
        return existing, True
    return attempt, False


async def record_attempt(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int | None,
    payload: QuizAttemptCreate,
    *,
    max_retries: int = 5,
) -> AttemptResult:
    """Record a finished attempt and bring the user's level up to date.

    1. Persist the attempt (committed on its own; a failure here stops everything)
    2. Recount completed attempts and compare-and-swap the level record
    3. On a level increase, push ``levelUp`` and persist a level_up notification
    4. Unlock any achievements the user now qualifies for
    5. Advance today's quiz-driven daily tasks (new attempts only)

    If step 2 fails the attempt stays recorded and the error propagates; the
    next attempt (or a replay with the same idempotency key) reconciles the level.
    Failures in steps 3 to 5 are logged; the attempt and level still stand.
    """
    if user_id is None:
        raise UserIdentityRequiredError

    attempt, replayed = await _persist_attempt(db, user_id, payload)
    attempt_id, score = attempt.id, attempt.score

    try:
        change = await reconcile_level(db, user_id, max_retries=max_retries)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.warning("level_reconcile_failed", user_id=user_id, attempt_id=attempt_id)
        raise

    if change.leveled_up:
        logger.info(
            "level_up_emitted",
            user_id=user_id,
            previous_level=change.previous_level,
            new_level=change.new_level,
            total_quizzes_answered=change.total_quizzes_answered,
        )
        await notifier.emit_to_user(
            user_id,
            level_up_event(change.previous_level, change.new_level, change.total_quizzes_answered),
        )
        await _notify_level_up(db, notifier, user_id, change)

    unlocked = await _unlock_achievements(db, notifier, user_id)
    if not replayed:
        await _advance_daily_tasks(db, notifier, user_id, score)
    # A rollback above (lost creation race, achievement race) expires loaded rows
    await db.refresh(attempt)
    return AttemptResult(attempt=attempt, level=change, replayed=replayed, unlocked=unlocked)


# The level is already committed when these run; failures are logged and swallowed.


async def _notify_level_up(db: AsyncSession, notifier: Notifier, user_id: int, change: LevelChange) -> None:
    try:
        await create_notification(
            db,
            notifier,
            user_id,
            "level_up",
            title="Level Up!",
            message=f"Congratulations! You reached level {change.new_level}",
            data={
                "previousLevel": change.previous_level,
                "newLevel": change.new_level,
                "totalQuizzesAnswered": change.total_quizzes_answered,
            },
        )
    except Exception:
        await db.rollback()
        logger.warning("level_up_notification_failed", user_id=user_id, new_level=change.new_level, exc_info=True)


async def _unlock_achievements(db: AsyncSession, notifier: Notifier, user_id: int) -> list[UnlockCandidate]:
    try:
        return await check_achievements(db, notifier, user_id)
    except Exception:
        await db.rollback()
        logger.warning("achievement_check_failed", user_id=user_id, exc_info=True)
        return []


async def list_attempts(db: AsyncSession, user_id: int, limit: int = 20) -> tuple[list[QuizAttempt], int]:
    """The user's attempts, most recent first, plus the total count."""
    total = (
        await db.execute(select(func.count()).select_from(QuizAttempt).where(QuizAttempt.user_id == user_id))
    ).scalar_one()
    result = await db.execute(
        select(QuizAttempt)
        .where(QuizAttempt.user_id == user_id)
        .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_attempt(db: AsyncSession, user_id: int, attempt_id: int) -> QuizAttempt:
    result = await db.execute(
        select(QuizAttempt).where(QuizAttempt.id == attempt_id, QuizAttempt.user_id == user_id)
    )
    attempt = result.scalar_one_or_none()
    if attempt is None:
        raise NotFoundError(f"Quiz attempt {attempt_id} not found")
    return attempt


async def _advance_daily_tasks(db: AsyncSession, notifier: Notifier, user_id: int, score: int) -> None:
    try:
        await record_quiz_progress(db, notifier, user_id, score)
    except Exception:
        await db.rollback()
        logger.warning("daily_task_progress_failed", user_id=user_id, exc_info=True)
