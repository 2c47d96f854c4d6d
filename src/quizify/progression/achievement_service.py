"""Achievement unlocks evaluated after each recorded attempt."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.db.models import Achievement, QuizAttempt, UserAchievement
from quizify.notifications.service import create_notification
from quizify.realtime.notifier import Notifier

logger = logging.getLogger(__name__)

CRITERIA_TYPES = {"quizzes_completed", "perfect_scores", "total_points", "specific_quiz"}


@dataclass(frozen=True)
class AttemptStats:
    quizzes_completed: int
    perfect_scores: int
    total_points: int
    per_quiz: dict[str, int]


@dataclass(frozen=True)
class UnlockCandidate:
    """Plain snapshot of an achievement row, safe to use across commits and rollbacks."""

    id: int
    slug: str
    name: str
    description: str
    badge: str
    criteria_type: str
    criteria_value: int
    criteria_quiz_id: str | None

    @classmethod
    def from_row(cls, a: Achievement) -> UnlockCandidate:
        return cls(
            id=a.id,
            slug=a.slug,
            name=a.name,
            description=a.description,
            badge=a.badge,
            criteria_type=a.criteria_type,
            criteria_value=a.criteria_value,
            criteria_quiz_id=a.criteria_quiz_id,
        )


async def get_attempt_stats(db: AsyncSession, user_id: int) -> AttemptStats:
    """Aggregate a user's completed attempts for criteria evaluation."""
    completed = (QuizAttempt.user_id == user_id, QuizAttempt.completed.is_(True))
    row = (
        await db.execute(
            select(
                func.count(),
                func.coalesce(
                    func.sum(case((QuizAttempt.score == QuizAttempt.total_possible_score, 1), else_=0)), 0
                ),
                func.coalesce(func.sum(QuizAttempt.score), 0),
            ).where(*completed)
        )
    ).one()

    per_quiz_rows = await db.execute(
        select(QuizAttempt.quiz_id, func.count()).where(*completed).group_by(QuizAttempt.quiz_id)
    )
    return AttemptStats(
        quizzes_completed=int(row[0]),
        perfect_scores=int(row[1]),
        total_points=int(row[2]),
        per_quiz={quiz_id: int(n) for quiz_id, n in per_quiz_rows},
    )


def is_unlocked(achievement: Achievement | UnlockCandidate, stats: AttemptStats) -> bool:
    """Check a single achievement's criteria against the user's stats."""
    kind = achievement.criteria_type
    target = achievement.criteria_value

    if kind == "quizzes_completed":
        return stats.quizzes_completed >= target
    if kind == "perfect_scores":
        return stats.perfect_scores >= target
    if kind == "total_points":
        return stats.total_points >= target
    if kind == "specific_quiz":
        if not achievement.criteria_quiz_id:
            return False
        return stats.per_quiz.get(achievement.criteria_quiz_id, 0) >= max(target, 1)
    return False


async def check_achievements(db: AsyncSession, notifier: Notifier, user_id: int) -> list[UnlockCandidate]:
    """Unlock every achievement the user now qualifies for. Returns the new unlocks."""
    unlocked_ids = set(
        (await db.execute(select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)))
        .scalars()
        .all()
    )
    candidates = [
        UnlockCandidate.from_row(a)
        for a in (await db.execute(select(Achievement).order_by(Achievement.sort_order))).scalars().all()
        if a.id not in unlocked_ids
    ]
    if not candidates:
        return []

    stats = await get_attempt_stats(db, user_id)
    now = datetime.now(timezone.utc)
    newly_unlocked: list[UnlockCandidate] = []

    for achievement in candidates:
        if not is_unlocked(achievement, stats):
            continue
        db.add(UserAchievement(user_id=user_id, achievement_id=achievement.id, unlocked_at=now))
        try:
            await db.commit()
        except IntegrityError:
            # Race condition: unlocked by a concurrent request
            await db.rollback()
            continue
        newly_unlocked.append(achievement)

    for achievement in newly_unlocked:
        logger.info("User %s unlocked achievement %s", user_id, achievement.slug)
        await create_notification(
            db,
            notifier,
            user_id,
            "achievement",
            title="Achievement Unlocked!",
            message=f"{achievement.name}: {achievement.description}",
            data={"achievementId": achievement.id, "slug": achievement.slug, "badge": achievement.badge},
        )

    return newly_unlocked


async def get_user_achievements(db: AsyncSession, user_id: int) -> list[tuple[Achievement, UserAchievement | None]]:
    """All achievements paired with the user's unlock row, if any."""
    achievements = (await db.execute(select(Achievement).order_by(Achievement.sort_order))).scalars().all()
    unlocks = {
        ua.achievement_id: ua
        for ua in (
            await db.execute(select(UserAchievement).where(UserAchievement.user_id == user_id))
        ).scalars().all()
    }
    return [(a, unlocks.get(a.id)) for a in achievements]
