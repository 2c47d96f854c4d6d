"""Progression tables.

Creates user_levels, quiz_attempts, achievements, user_achievements and
notifications. The users table belongs to the auth service; it is created
here only if missing so a fresh database can be migrated on its own.

Revision ID: 001_progression_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username VARCHAR(64) UNIQUE NOT NULL,
            email VARCHAR(320) UNIQUE,
            is_banned BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Quiz Attempts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quiz_attempts (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            quiz_id VARCHAR(64) NOT NULL,
            answers JSONB NOT NULL DEFAULT '[]',
            score INTEGER NOT NULL DEFAULT 0,
            total_possible_score INTEGER NOT NULL,
            time_spent INTEGER NOT NULL DEFAULT 0,
            completed BOOLEAN NOT NULL DEFAULT false,
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            idempotency_key VARCHAR(128),
            CONSTRAINT uq_quiz_attempts_user_idempotency_key UNIQUE (user_id, idempotency_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quiz_attempts_user_completed
        ON quiz_attempts(user_id, completed)
    """)

    # --- User Levels ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_levels (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            level INTEGER NOT NULL DEFAULT 1 CHECK (level BETWEEN 1 AND 10),
            total_quizzes_answered INTEGER NOT NULL DEFAULT 0 CHECK (total_quizzes_answered >= 0),
            last_level_up TIMESTAMPTZ,
            version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) UNIQUE NOT NULL,
            description VARCHAR(200) NOT NULL,
            badge VARCHAR(256) NOT NULL,
            criteria_type VARCHAR(32) NOT NULL,
            criteria_value INTEGER NOT NULL,
            criteria_quiz_id VARCHAR(64),
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)

    # --- User Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id),
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_achievements_user_achievement UNIQUE (user_id, achievement_id)
        )
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            message TEXT NOT NULL,
            data JSONB NOT NULL DEFAULT '{}',
            is_read BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user_created
        ON notifications(user_id, created_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications")
    op.execute("DROP TABLE IF EXISTS user_achievements")
    op.execute("DROP TABLE IF EXISTS achievements")
    op.execute("DROP TABLE IF EXISTS user_levels")
    op.execute("DROP TABLE IF EXISTS quiz_attempts")
