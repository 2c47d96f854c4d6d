"""Daily task seed data."""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.db.models import DailyTask

logger = logging.getLogger(__name__)

DAILY_TASK_SEED_DATA: list[dict] = [
    {
        "slug": "daily_quiz_1",
        "name": "Warm Up",
        "description": "Complete a quiz today",
        "type": "complete_quiz",
        "requirement": 1,
        "points": 10,
        "sort_order": 1,
    },
    {
        "slug": "daily_quiz_3",
        "name": "Quiz Marathon",
        "description": "Complete 3 quizzes today",
        "type": "complete_quiz",
        "requirement": 3,
        "points": 30,
        "sort_order": 2,
    },
    {
        "slug": "daily_points_50",
        "name": "Point Hunter",
        "description": "Score 50 points today",
        "type": "score_points",
        "requirement": 50,
        "points": 25,
        "sort_order": 3,
    },
    {
        "slug": "daily_login",
        "name": "Check In",
        "description": "Open the app today",
        "type": "login",
        "requirement": 1,
        "points": 5,
        "sort_order": 4,
    },
]


async def seed_daily_tasks(db: AsyncSession) -> int:
    """Upsert all daily task definitions. Returns number seeded."""
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    insert = sqlite_insert if dialect == "sqlite" else pg_insert

    seeded = 0
    for data in DAILY_TASK_SEED_DATA:
        stmt = insert(DailyTask).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "type": stmt.excluded.type,
                "requirement": stmt.excluded.requirement,
                "points": stmt.excluded.points,
                "sort_order": stmt.excluded.sort_order,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d daily task definitions", seeded)
    return seeded
