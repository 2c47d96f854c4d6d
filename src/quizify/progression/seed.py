"""Achievement seed data. Slugs must match the achievement cards in the mobile and web clients."""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.db.models import Achievement

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Quizzes completed
    {
        "slug": "first_quiz",
        "name": "First Steps",
        "description": "Complete your very first quiz",
        "badge": "footsteps",
        "criteria_type": "quizzes_completed",
        "criteria_value": 1,
        "sort_order": 1,
    },
    {
        "slug": "quizzes_10",
        "name": "Quiz Enthusiast",
        "description": "Complete 10 quizzes",
        "badge": "flame",
        "criteria_type": "quizzes_completed",
        "criteria_value": 10,
        "sort_order": 2,
    },
    {
        "slug": "quizzes_50",
        "name": "Quiz Veteran",
        "description": "Complete 50 quizzes",
        "badge": "medal",
        "criteria_type": "quizzes_completed",
        "criteria_value": 50,
        "sort_order": 3,
    },
    {
        "slug": "quizzes_126",
        "name": "Quiz Master",
        "description": "Complete 126 quizzes and reach the top level",
        "badge": "trophy",
        "criteria_type": "quizzes_completed",
        "criteria_value": 126,
        "sort_order": 4,
    },
    # Perfect scores
    {
        "slug": "perfect_1",
        "name": "Perfectionist",
        "description": "Get every question right in a quiz",
        "badge": "star",
        "criteria_type": "perfect_scores",
        "criteria_value": 1,
        "sort_order": 5,
    },
    {
        "slug": "perfect_10",
        "name": "Flawless",
        "description": "Score 100% in 10 quizzes",
        "badge": "diamond",
        "criteria_type": "perfect_scores",
        "criteria_value": 10,
        "sort_order": 6,
    },
    # Points
    {
        "slug": "points_500",
        "name": "Point Collector",
        "description": "Earn 500 points across all quizzes",
        "badge": "cash",
        "criteria_type": "total_points",
        "criteria_value": 500,
        "sort_order": 7,
    },
    {
        "slug": "points_5000",
        "name": "Point Hoarder",
        "description": "Earn 5,000 points across all quizzes",
        "badge": "wallet",
        "criteria_type": "total_points",
        "criteria_value": 5000,
        "sort_order": 8,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert all achievement definitions. Returns number seeded."""
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    insert = sqlite_insert if dialect == "sqlite" else pg_insert

    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = insert(Achievement).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "badge": stmt.excluded.badge,
                "criteria_type": stmt.excluded.criteria_type,
                "criteria_value": stmt.excluded.criteria_value,
                "sort_order": stmt.excluded.sort_order,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievement definitions", seeded)
    return seeded
