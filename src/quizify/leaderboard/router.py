"""Leaderboard API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.auth.dependencies import get_current_user
from quizify.database import get_session
from quizify.db.models import User
from quizify.leaderboard.schemas import (
    GlobalLeaderboardEntry,
    GlobalLeaderboardResponse,
    GlobalRanking,
    LeaderboardUser,
    QuizLeaderboardEntry,
    QuizLeaderboardResponse,
    QuizRanking,
    UserRankingsResponse,
)
from quizify.leaderboard.service import get_global_leaderboard, get_quiz_leaderboard, get_user_rankings

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])


# ── Public endpoints ──


@router.get("/global", response_model=GlobalLeaderboardResponse)
async def global_leaderboard(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    """Top performers across all quizzes."""
    data = await get_global_leaderboard(db, page, limit)
    return GlobalLeaderboardResponse(
        leaderboard=[
            GlobalLeaderboardEntry(
                position=e.position,
                user=LeaderboardUser(id=str(e.user_id), username=e.username),
                total_score=e.total_score,
                average_score=e.average_score,
                quizzes_completed=e.quizzes_completed,
                last_updated=e.last_updated,
            )
            for e in data.entries
        ],
        total_entries=data.total_entries,
        current_page=data.page,
        total_pages=data.total_pages,
    )


@router.get("/quiz/{quiz_id}", response_model=QuizLeaderboardResponse)
async def quiz_leaderboard(
    quiz_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    """Best attempt per user on one quiz."""
    data = await get_quiz_leaderboard(db, quiz_id, page, limit)
    return QuizLeaderboardResponse(
        quiz=quiz_id,
        leaderboard=[
            QuizLeaderboardEntry(
                position=e.position,
                user=LeaderboardUser(id=str(e.user_id), username=e.username),
                score=e.score,
                time_spent=e.time_spent,
                completed_at=e.completed_at,
            )
            for e in data.entries
        ],
        total_entries=data.total_entries,
        current_page=data.page,
        total_pages=data.total_pages,
    )


# ── Authenticated endpoints ──


@router.get("/user", response_model=UserRankingsResponse)
async def my_rankings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The user's global rank and per-quiz ranks."""
    data = await get_user_rankings(db, user.id)
    return UserRankingsResponse(
        global_=GlobalRanking(**data["global"]),
        quizzes=[QuizRanking(**q) for q in data["quizzes"]],
    )
