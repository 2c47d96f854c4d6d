"""Per-user level record: lazy creation and compare-and-swap reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.db.models import QuizAttempt, UserLevel
from quizify.errors import LevelUpdateConflictError
from quizify.progression.levels import calculate_level

logger = structlog.get_logger()


@dataclass(frozen=True)
class LevelChange:
    """Outcome of one reconciliation of a user's level record."""

    previous_level: int
    new_level: int
    total_quizzes_answered: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.previous_level


async def get_level_record(db: AsyncSession, user_id: int) -> UserLevel | None:
    result = await db.execute(select(UserLevel).where(UserLevel.user_id == user_id))
    return result.scalar_one_or_none()


async def get_or_create_level_record(db: AsyncSession, user_id: int) -> UserLevel:
    """Get the user's level record, creating it at level 1 with no quizzes if absent."""
    record = await get_level_record(db, user_id)
    if record is not None:
        return record

    record = UserLevel(
        user_id=user_id,
        level=1,
        total_quizzes_answered=0,
        version=0,
        updated_at=datetime.now(timezone.utc),
    )
    db.add(record)
    try:
        await db.flush()
    except IntegrityError:
        # Another request created it first
        await db.rollback()
        record = await get_level_record(db, user_id)
        if record is None:
            raise
    return record


async def count_completed_attempts(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(QuizAttempt)
        .where(QuizAttempt.user_id == user_id, QuizAttempt.completed.is_(True))
    )
    return result.scalar_one()


async def reconcile_level(db: AsyncSession, user_id: int, max_retries: int = 5) -> LevelChange:
    """Recount completed attempts and bring the level record in line with it.

    The write is a compare-and-swap on ``version``: if another request updated
    the record between our read and our write, we re-read and recount. Only the
    writer whose swap succeeds observes a given level transition, so each
    crossing is reported exactly once. The caller commits.
    """
    for attempt in range(1, max_retries + 1):
        record = await get_or_create_level_record(db, user_id)
        await db.refresh(record)

        seen_version = record.version
        previous_level = record.level
        previous_total = record.total_quizzes_answered

        # Counter never moves backwards, even if our count raced a newer writer
        total = max(await count_completed_attempts(db, user_id), previous_total)
        new_level = calculate_level(total)

        if total == previous_total and new_level == previous_level:
            return LevelChange(previous_level, previous_level, total)

        now = datetime.now(timezone.utc)
        values: dict = {
            "total_quizzes_answered": total,
            "level": new_level,
            "version": seen_version + 1,
            "updated_at": now,
        }
        if new_level > previous_level:
            values["last_level_up"] = now

        result = await db.execute(
            update(UserLevel)
            .where(UserLevel.user_id == user_id, UserLevel.version == seen_version)
            .values(**values)
        )
        if result.rowcount == 1:
            await db.flush()
            return LevelChange(previous_level, new_level, total)

        logger.info("level_update_conflict", user_id=user_id, attempt=attempt, version=seen_version)

    raise LevelUpdateConflictError
