"""Daily task assignment and progress.

Active tasks are assigned lazily: a user's row for a task and UTC day is
created the first time it is read or advanced. Recording an attempt advances
``complete_quiz`` (by one) and ``score_points`` (by the score). Completion is
a one-way transition guarded by ``completed = false``, so the ``daily_task``
notification goes out once per task per day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.db.models import DailyTask, UserDailyTask
from quizify.errors import NotFoundError
from quizify.notifications.service import create_notification
from quizify.realtime.notifier import Notifier

logger = logging.getLogger(__name__)

TASK_TYPES = {"complete_quiz", "score_points", "login", "streak"}


@dataclass(frozen=True)
class TaskProgress:
    """A task definition joined with the user's progress for one day."""

    assignment_id: int
    task_id: int
    name: str
    description: str
    type: str
    requirement: int
    points: int
    progress: int
    completed: bool
    completed_at: datetime | None

    @classmethod
    def from_rows(cls, task: DailyTask, assignment: UserDailyTask) -> TaskProgress:
        return cls(
            assignment_id=assignment.id,
            task_id=task.id,
            name=task.name,
            description=task.description,
            type=task.type,
            requirement=task.requirement,
            points=task.points,
            progress=assignment.progress,
            completed=assignment.completed,
            completed_at=assignment.completed_at,
        )


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _insert(db: AsyncSession):
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    return sqlite_insert if dialect == "sqlite" else pg_insert


async def _active_tasks(db: AsyncSession, task_type: str | None = None) -> list[DailyTask]:
    stmt = select(DailyTask).where(DailyTask.is_active.is_(True)).order_by(DailyTask.sort_order, DailyTask.id)
    if task_type is not None:
        stmt = stmt.where(DailyTask.type == task_type)
    return list((await db.execute(stmt)).scalars().all())


async def _get_assignment(db: AsyncSession, user_id: int, task_id: int, day: date) -> UserDailyTask | None:
    result = await db.execute(
        select(UserDailyTask)
        .where(
            UserDailyTask.user_id == user_id,
            UserDailyTask.task_id == task_id,
            UserDailyTask.assigned_date == day,
        )
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def _upsert_progress(
    db: AsyncSession, user_id: int, task_id: int, day: date, *, add: int = 0, set_to: int | None = None
) -> UserDailyTask:
    """Create today's assignment if missing, then add to (or set) its progress.

    Progress of a completed assignment is left alone.
    """
    insert = _insert(db)
    initial = set_to if set_to is not None else add
    stmt = insert(UserDailyTask).values(
        user_id=user_id, task_id=task_id, assigned_date=day, progress=initial, completed=False
    )
    new_progress = stmt.excluded.progress if set_to is not None else UserDailyTask.progress + stmt.excluded.progress
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "task_id", "assigned_date"],
        set_={"progress": new_progress},
        where=UserDailyTask.completed.is_(False),
    )
    await db.execute(stmt)
    assignment = await _get_assignment(db, user_id, task_id, day)
    if assignment is None:  # pragma: no cover - the upsert above guarantees a row
        raise RuntimeError(f"daily task assignment missing for user {user_id} task {task_id}")
    return assignment


async def _complete_if_reached(db: AsyncSession, task: DailyTask, assignment: UserDailyTask) -> bool:
    """Flip to completed once progress meets the requirement. True only for the request that flipped it."""
    if assignment.completed or assignment.progress < task.requirement:
        return False
    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(UserDailyTask)
        .where(UserDailyTask.id == assignment.id, UserDailyTask.completed.is_(False))
        .values(completed=True, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    await db.refresh(assignment)
    return True


async def _notify_completed(db: AsyncSession, notifier: Notifier, user_id: int, task: TaskProgress) -> None:
    logger.info("User %s completed daily task %s", user_id, task.task_id)
    await create_notification(
        db,
        notifier,
        user_id,
        "daily_task",
        title="Daily Task Complete!",
        message=f"{task.name}: +{task.points} points",
        data={"taskId": task.task_id, "points": task.points},
    )


async def get_daily_tasks(db: AsyncSession, user_id: int, day: date | None = None) -> list[TaskProgress]:
    """Every active task with the user's progress for ``day``, assigning missing ones."""
    day = day or utc_today()
    tasks = await _active_tasks(db)
    rows: list[TaskProgress] = []
    for task in tasks:
        assignment = await _get_assignment(db, user_id, task.id, day)
        if assignment is None:
            assignment = await _upsert_progress(db, user_id, task.id, day)
        rows.append(TaskProgress.from_rows(task, assignment))
    await db.commit()
    return rows


async def update_task_progress(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    task_id: int,
    progress: int,
    day: date | None = None,
) -> TaskProgress:
    """Set today's progress on one task. Completion is never undone."""
    day = day or utc_today()
    task = await db.get(DailyTask, task_id)
    if task is None:
        raise NotFoundError(f"Daily task {task_id} not found")

    assignment = await _upsert_progress(db, user_id, task.id, day, set_to=progress)
    just_completed = await _complete_if_reached(db, task, assignment)
    row = TaskProgress.from_rows(task, assignment)
    await db.commit()

    if just_completed:
        await _notify_completed(db, notifier, user_id, row)
    return row


async def record_quiz_progress(
    db: AsyncSession, notifier: Notifier, user_id: int, score: int, day: date | None = None
) -> list[TaskProgress]:
    """Advance quiz-driven tasks for one completed attempt. Returns tasks completed by it."""
    day = day or utc_today()
    increments = {"complete_quiz": 1, "score_points": score}
    completed: list[TaskProgress] = []

    for task_type, amount in increments.items():
        for task in await _active_tasks(db, task_type):
            assignment = await _upsert_progress(db, user_id, task.id, day, add=amount)
            if await _complete_if_reached(db, task, assignment):
                completed.append(TaskProgress.from_rows(task, assignment))
    await db.commit()

    for row in completed:
        await _notify_completed(db, notifier, user_id, row)
    return completed
