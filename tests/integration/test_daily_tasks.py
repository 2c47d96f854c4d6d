"""Daily tasks: lazy assignment, quiz-driven progress, manual progress, completion notifications."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.attempts.schemas import QuizAttemptCreate
from quizify.attempts.service import record_attempt
from quizify.daily_tasks.service import (
    get_daily_tasks,
    record_quiz_progress,
    update_task_progress,
    utc_today,
)
from quizify.db.models import DailyTask, Notification
from quizify.errors import NotFoundError


def _payload(score: int = 5, **overrides) -> QuizAttemptCreate:
    data = {"quiz": "quiz-1", "answers": [], "score": score, "total_possible_score": 100, "time_spent": 30}
    data.update(overrides)
    return QuizAttemptCreate(**data)


async def _task_id(db: AsyncSession, slug: str) -> int:
    return (await db.execute(select(DailyTask.id).where(DailyTask.slug == slug))).scalar_one()


def _by_name(tasks) -> dict:
    return {t.name: t for t in tasks}


async def _daily_notifications(db: AsyncSession, user_id: int) -> list[Notification]:
    result = await db.execute(
        select(Notification).where(Notification.user_id == user_id, Notification.type == "daily_task")
    )
    return list(result.scalars().all())


class TestAssignment:
    @pytest.mark.asyncio
    async def test_active_tasks_assigned_lazily(self, db_session: AsyncSession, daily_tasks, user) -> None:
        tasks = await get_daily_tasks(db_session, user.id)

        assert [t.name for t in tasks] == ["Warm Up", "Quiz Marathon", "Point Hunter", "Check In"]
        assert all(t.progress == 0 and not t.completed for t in tasks)

        again = await get_daily_tasks(db_session, user.id)
        assert [t.assignment_id for t in again] == [t.assignment_id for t in tasks]

    @pytest.mark.asyncio
    async def test_new_day_gets_fresh_assignments(self, db_session: AsyncSession, daily_tasks, notifier, user) -> None:
        today = utc_today()
        await record_quiz_progress(db_session, notifier, user.id, 5, day=today)

        tomorrow = await get_daily_tasks(db_session, user.id, day=today + timedelta(days=1))

        assert all(t.progress == 0 for t in tomorrow)

    @pytest.mark.asyncio
    async def test_inactive_tasks_skipped(self, db_session: AsyncSession, daily_tasks, user) -> None:
        task = await db_session.get(DailyTask, await _task_id(db_session, "daily_login"))
        task.is_active = False
        await db_session.commit()

        tasks = await get_daily_tasks(db_session, user.id)

        assert "Check In" not in _by_name(tasks)


class TestQuizProgress:
    @pytest.mark.asyncio
    async def test_attempt_advances_quiz_and_points_tasks(
        self, db_session: AsyncSession, daily_tasks, notifier, user
    ) -> None:
        await record_attempt(db_session, notifier, user.id, _payload(score=30))

        tasks = _by_name(await get_daily_tasks(db_session, user.id))
        assert tasks["Warm Up"].completed is True
        assert tasks["Warm Up"].completed_at is not None
        assert tasks["Quiz Marathon"].progress == 1
        assert tasks["Point Hunter"].progress == 30
        assert tasks["Check In"].progress == 0

    @pytest.mark.asyncio
    async def test_completion_notifies_once(self, db_session: AsyncSession, daily_tasks, notifier, user) -> None:
        day = date(2026, 1, 15)
        first = await record_quiz_progress(db_session, notifier, user.id, 30, day=day)
        second = await record_quiz_progress(db_session, notifier, user.id, 30, day=day)

        assert [t.name for t in first] == ["Warm Up"]
        assert [t.name for t in second] == ["Point Hunter"]
        notes = await _daily_notifications(db_session, user.id)
        assert sorted(n.title for n in notes) == ["Daily Task Complete!", "Daily Task Complete!"]
        assert sorted(n.data["points"] for n in notes) == [10, 25]

    @pytest.mark.asyncio
    async def test_completed_task_progress_frozen(self, db_session: AsyncSession, daily_tasks, notifier, user) -> None:
        day = date(2026, 1, 15)
        for _ in range(3):
            await record_quiz_progress(db_session, notifier, user.id, 0, day=day)

        tasks = _by_name(await get_daily_tasks(db_session, user.id, day=day))
        assert tasks["Warm Up"].progress == 1
        assert tasks["Quiz Marathon"].progress == 3
        assert tasks["Quiz Marathon"].completed is True

    @pytest.mark.asyncio
    async def test_replay_does_not_advance(self, db_session: AsyncSession, daily_tasks, notifier, user) -> None:
        await record_attempt(db_session, notifier, user.id, _payload(score=10, idempotency_key="once"))
        await record_attempt(db_session, notifier, user.id, _payload(score=10, idempotency_key="once"))

        tasks = _by_name(await get_daily_tasks(db_session, user.id))
        assert tasks["Quiz Marathon"].progress == 1
        assert tasks["Point Hunter"].progress == 10


class TestManualProgress:
    @pytest.mark.asyncio
    async def test_set_progress_completes(self, db_session: AsyncSession, daily_tasks, notifier, user) -> None:
        task_id = await _task_id(db_session, "daily_login")

        row = await update_task_progress(db_session, notifier, user.id, task_id, 1)

        assert row.completed is True
        assert len(await _daily_notifications(db_session, user.id)) == 1

    @pytest.mark.asyncio
    async def test_below_requirement_stays_open(self, db_session: AsyncSession, daily_tasks, notifier, user) -> None:
        task_id = await _task_id(db_session, "daily_points_50")

        row = await update_task_progress(db_session, notifier, user.id, task_id, 20)

        assert (row.progress, row.completed) == (20, False)
        assert await _daily_notifications(db_session, user.id) == []

    @pytest.mark.asyncio
    async def test_completion_is_not_undone(self, db_session: AsyncSession, daily_tasks, notifier, user) -> None:
        task_id = await _task_id(db_session, "daily_login")
        await update_task_progress(db_session, notifier, user.id, task_id, 1)

        row = await update_task_progress(db_session, notifier, user.id, task_id, 0)

        assert row.completed is True
        assert len(await _daily_notifications(db_session, user.id)) == 1

    @pytest.mark.asyncio
    async def test_unknown_task(self, db_session: AsyncSession, daily_tasks, notifier, user) -> None:
        with pytest.raises(NotFoundError):
            await update_task_progress(db_session, notifier, user.id, 9999, 1)


class TestDailyTasksApi:
    @pytest.mark.asyncio
    async def test_list_with_stats(self, authed_client: AsyncClient, daily_tasks, attempt_payload) -> None:
        await authed_client.post("/api/v1/quiz-attempts", json=attempt_payload())

        response = await authed_client.get("/api/v1/daily-tasks")

        assert response.status_code == 200
        data = response.json()
        assert data["stats"] == {"total": 4, "completed": 1, "incomplete": 3, "progressPercentage": 25}
        warm_up = next(t for t in data["tasks"] if t["name"] == "Warm Up")
        assert warm_up["completed"] is True
        assert warm_up["type"] == "complete_quiz"
        assert {"id", "taskId", "requirement", "points", "progress", "completedAt"} <= warm_up.keys()

    @pytest.mark.asyncio
    async def test_put_progress(self, authed_client: AsyncClient, db_session: AsyncSession, daily_tasks) -> None:
        task_id = await _task_id(db_session, "daily_login")

        response = await authed_client.put(f"/api/v1/daily-tasks/{task_id}/progress", json={"progress": 1})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Task progress updated"
        assert body["task"]["completed"] is True

    @pytest.mark.asyncio
    async def test_put_unknown_task_is_404(self, authed_client: AsyncClient, daily_tasks) -> None:
        response = await authed_client.put("/api/v1/daily-tasks/9999/progress", json={"progress": 1})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_negative_progress_is_422(self, authed_client: AsyncClient, daily_tasks) -> None:
        response = await authed_client.put("/api/v1/daily-tasks/1/progress", json={"progress": -1})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_auth(self, client: AsyncClient) -> None:
        assert (await client.get("/api/v1/daily-tasks")).status_code == 401
