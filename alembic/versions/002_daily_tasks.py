"""Daily task tables.

Creates daily_tasks (definitions) and user_daily_tasks (per-user, per-day
progress). Leaderboards are computed from quiz_attempts and need no tables;
the index below serves their per-quiz ranking.

Revision ID: 002_daily_tasks
Revises: 001_progression_tables
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_daily_tasks"
down_revision: str | None = "001_progression_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Daily Tasks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_tasks (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description VARCHAR(200) NOT NULL,
            type VARCHAR(32) NOT NULL
                CHECK (type IN ('complete_quiz', 'score_points', 'login', 'streak')),
            requirement INTEGER NOT NULL CHECK (requirement >= 1),
            points INTEGER NOT NULL CHECK (points >= 1),
            is_active BOOLEAN NOT NULL DEFAULT true,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)

    # --- User Daily Tasks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_daily_tasks (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            task_id INTEGER NOT NULL REFERENCES daily_tasks(id) ON DELETE CASCADE,
            assigned_date DATE NOT NULL,
            progress INTEGER NOT NULL DEFAULT 0 CHECK (progress >= 0),
            completed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            CONSTRAINT uq_user_daily_tasks_user_task_date UNIQUE (user_id, task_id, assigned_date)
        )
    """)

    # --- Leaderboard ---
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quiz_attempts_quiz_score
        ON quiz_attempts(quiz_id, score DESC, time_spent ASC)
        WHERE completed
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_quiz_attempts_quiz_score")
    op.execute("DROP TABLE IF EXISTS user_daily_tasks")
    op.execute("DROP TABLE IF EXISTS daily_tasks")
