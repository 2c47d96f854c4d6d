"""Progression API endpoints: levels and achievements."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.auth.dependencies import get_current_user
from quizify.database import get_session
from quizify.db.models import Achievement, User
from quizify.progression.achievement_service import get_user_achievements
from quizify.progression.level_service import get_level_record
from quizify.progression.levels import LEVEL_THRESHOLDS, level_progress
from quizify.progression.schemas import (
    AchievementCriteria,
    AchievementResponse,
    AchievementStats,
    AllAchievementsResponse,
    AllLevelsResponse,
    LevelEntry,
    LevelResponse,
    UserAchievementResponse,
    UserAchievementsResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Progression"])


def _achievement_fields(a: Achievement) -> dict:
    return {
        "id": str(a.id),
        "slug": a.slug,
        "name": a.name,
        "description": a.description,
        "badge": a.badge,
        "criteria": AchievementCriteria(type=a.criteria_type, value=a.criteria_value, quiz_id=a.criteria_quiz_id),
    }


# ── Public endpoints ──


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """Get the level bands."""
    return AllLevelsResponse(
        levels=[LevelEntry(level=lvl, min_quizzes=low, max_quizzes=high) for lvl, low, high in LEVEL_THRESHOLDS]
    )


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(db: AsyncSession = Depends(get_session)):
    """Get all achievement definitions."""
    result = await db.execute(select(Achievement).order_by(Achievement.sort_order))
    return AllAchievementsResponse(
        achievements=[AchievementResponse(**_achievement_fields(a)) for a in result.scalars().all()]
    )


# ── Authenticated endpoints ──


@router.get("/users/me/level", response_model=LevelResponse)
async def my_level(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get the user's level and progress to the next one."""
    record = await get_level_record(db, user.id)
    total = record.total_quizzes_answered if record else 0
    progress = level_progress(total)
    return LevelResponse(
        level=progress["level"],
        total_quizzes_answered=total,
        last_level_up=record.last_level_up if record else None,
        next_level=progress["next_level"],
        quizzes_into_level=progress["quizzes_into_level"],
        quizzes_for_level=progress["quizzes_for_level"],
        quizzes_to_next_level=progress["quizzes_to_next_level"],
    )


@router.get("/achievements/user", response_model=UserAchievementsResponse)
async def my_achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get all achievements with the user's unlock state."""
    rows = await get_user_achievements(db, user.id)
    items = [
        UserAchievementResponse(
            **_achievement_fields(a),
            unlocked=ua is not None,
            unlocked_at=ua.unlocked_at if ua else None,
        )
        for a, ua in rows
    ]
    total = len(items)
    unlocked = sum(1 for i in items if i.unlocked)
    return UserAchievementsResponse(
        achievements=items,
        stats=AchievementStats(
            total=total,
            unlocked=unlocked,
            locked=total - unlocked,
            progress_percentage=round(unlocked / total * 100) if total else 0,
        ),
    )
