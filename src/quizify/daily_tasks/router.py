"""Daily task API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.auth.dependencies import get_current_user
from quizify.daily_tasks.schemas import (
    DailyTaskResponse,
    DailyTasksResponse,
    DailyTaskStats,
    TaskProgressResponse,
    TaskProgressUpdate,
)
from quizify.daily_tasks.service import TaskProgress, get_daily_tasks, update_task_progress
from quizify.database import get_session
from quizify.db.models import User
from quizify.realtime.notifier import Notifier, get_notifier

router = APIRouter(prefix="/api/v1/daily-tasks", tags=["Daily Tasks"])


def _to_response(t: TaskProgress) -> DailyTaskResponse:
    return DailyTaskResponse(
        id=str(t.assignment_id),
        task_id=str(t.task_id),
        name=t.name,
        description=t.description,
        type=t.type,
        requirement=t.requirement,
        points=t.points,
        progress=t.progress,
        completed=t.completed,
        completed_at=t.completed_at,
    )


@router.get("", response_model=DailyTasksResponse)
async def list_daily_tasks(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Today's tasks with the user's progress."""
    tasks = await get_daily_tasks(db, user.id)
    total = len(tasks)
    completed = sum(1 for t in tasks if t.completed)
    return DailyTasksResponse(
        tasks=[_to_response(t) for t in tasks],
        stats=DailyTaskStats(
            total=total,
            completed=completed,
            incomplete=total - completed,
            progress_percentage=round(completed / total * 100) if total else 0,
        ),
    )


@router.put("/{task_id}/progress", response_model=TaskProgressResponse)
async def set_task_progress(
    task_id: int,
    body: TaskProgressUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Set today's progress on a task (for task types not driven by quiz attempts)."""
    task = await update_task_progress(db, notifier, user.id, task_id, body.progress)
    return TaskProgressResponse(message="Task progress updated", task=_to_response(task))
