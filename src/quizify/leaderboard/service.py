"""Leaderboards computed from completed quiz attempts.

Global standings rank users by total score, then average score, then number
of quizzes completed. A quiz board ranks each user's best attempt on that
quiz: highest score, then least time spent. Users tied on the ranking keys
share a rank.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.db.models import QuizAttempt, User


@dataclass(frozen=True)
class GlobalEntry:
    position: int
    user_id: int
    username: str
    total_score: int
    average_score: float
    quizzes_completed: int
    last_updated: datetime | None


@dataclass(frozen=True)
class QuizEntry:
    position: int
    user_id: int
    username: str
    score: int
    time_spent: int
    completed_at: datetime | None


@dataclass(frozen=True)
class Page:
    entries: list
    total_entries: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_entries / self.limit) if self.limit else 0


def percentile(rank: int, total: int) -> int:
    """Share of participants ranked below ``rank``, rounded to a whole percent."""
    return round((total - rank) / total * 100) if total else 0


def _global_totals():
    return (
        select(
            QuizAttempt.user_id.label("user_id"),
            func.sum(QuizAttempt.score).label("total_score"),
            func.avg(QuizAttempt.score).label("average_score"),
            func.count(QuizAttempt.id).label("quizzes_completed"),
            func.max(QuizAttempt.completed_at).label("last_updated"),
        )
        .where(QuizAttempt.completed.is_(True))
        .group_by(QuizAttempt.user_id)
        .subquery("global_totals")
    )


def _best_attempts(*filters):
    """Each user's best completed attempt per quiz."""
    ranked = (
        select(
            QuizAttempt.user_id.label("user_id"),
            QuizAttempt.quiz_id.label("quiz_id"),
            QuizAttempt.score.label("score"),
            QuizAttempt.time_spent.label("time_spent"),
            QuizAttempt.completed_at.label("completed_at"),
            func.row_number()
            .over(
                partition_by=(QuizAttempt.quiz_id, QuizAttempt.user_id),
                order_by=(QuizAttempt.score.desc(), QuizAttempt.time_spent.asc(), QuizAttempt.id.asc()),
            )
            .label("rn"),
        )
        .where(QuizAttempt.completed.is_(True), *filters)
        .subquery("ranked_attempts")
    )
    return select(ranked).where(ranked.c.rn == 1).subquery("best_attempts")


async def get_global_leaderboard(db: AsyncSession, page: int = 1, limit: int = 20) -> Page:
    totals = _global_totals()
    offset = (page - 1) * limit
    result = await db.execute(
        select(totals, User.username)
        .join(User, User.id == totals.c.user_id)
        .order_by(
            totals.c.total_score.desc(),
            totals.c.average_score.desc(),
            totals.c.quizzes_completed.desc(),
            totals.c.user_id.asc(),
        )
        .offset(offset)
        .limit(limit)
    )
    entries = [
        GlobalEntry(
            position=offset + i + 1,
            user_id=row.user_id,
            username=row.username,
            total_score=int(row.total_score),
            average_score=float(row.average_score),
            quizzes_completed=int(row.quizzes_completed),
            last_updated=row.last_updated,
        )
        for i, row in enumerate(result)
    ]
    total = (await db.execute(select(func.count()).select_from(totals))).scalar_one()
    return Page(entries=entries, total_entries=total, page=page, limit=limit)


async def get_quiz_leaderboard(db: AsyncSession, quiz_id: str, page: int = 1, limit: int = 20) -> Page:
    best = _best_attempts(QuizAttempt.quiz_id == quiz_id)
    offset = (page - 1) * limit
    result = await db.execute(
        select(best, User.username)
        .join(User, User.id == best.c.user_id)
        .order_by(best.c.score.desc(), best.c.time_spent.asc(), best.c.user_id.asc())
        .offset(offset)
        .limit(limit)
    )
    entries = [
        QuizEntry(
            position=offset + i + 1,
            user_id=row.user_id,
            username=row.username,
            score=row.score,
            time_spent=row.time_spent,
            completed_at=row.completed_at,
        )
        for i, row in enumerate(result)
    ]
    total = (await db.execute(select(func.count()).select_from(best))).scalar_one()
    return Page(entries=entries, total_entries=total, page=page, limit=limit)


async def get_user_rankings(db: AsyncSession, user_id: int) -> dict:
    """The user's global standing plus their rank on every quiz they completed."""
    totals = _global_totals()
    participants = (await db.execute(select(func.count()).select_from(totals))).scalar_one()
    mine = (await db.execute(select(totals).where(totals.c.user_id == user_id))).one_or_none()

    if mine is None:
        global_rank = {
            "total_score": 0,
            "quizzes_completed": 0,
            "average_score": 0.0,
            "rank": None,
            "total_participants": participants,
            "percentile": None,
        }
    else:
        higher = (
            await db.execute(select(func.count()).select_from(totals).where(totals.c.total_score > mine.total_score))
        ).scalar_one()
        rank = higher + 1
        global_rank = {
            "total_score": int(mine.total_score),
            "quizzes_completed": int(mine.quizzes_completed),
            "average_score": float(mine.average_score),
            "rank": rank,
            "total_participants": participants,
            "percentile": percentile(rank, participants),
        }

    played = select(QuizAttempt.quiz_id).where(QuizAttempt.user_id == user_id, QuizAttempt.completed.is_(True))
    best = _best_attempts(QuizAttempt.quiz_id.in_(played))
    boards: dict[str, list] = defaultdict(list)
    for row in await db.execute(select(best)):
        boards[row.quiz_id].append(row)

    quizzes = []
    for quiz_id, rows in boards.items():
        own = next(r for r in rows if r.user_id == user_id)
        rank = 1 + sum(
            1 for r in rows if r.score > own.score or (r.score == own.score and r.time_spent < own.time_spent)
        )
        quizzes.append({
            "quiz": quiz_id,
            "score": own.score,
            "time_spent": own.time_spent,
            "rank": rank,
            "total_participants": len(rows),
            "percentile": percentile(rank, len(rows)),
        })
    quizzes.sort(key=lambda q: (-q["score"], q["quiz"]))

    return {"global": global_rank, "quizzes": quizzes}
