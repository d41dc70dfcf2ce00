"""Progress & mastery tables.

Creates card_schedules, user_progress, daily_progress,
achievement_definitions and user_achievements.

Revision ID: 001_progress_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progress_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Card Schedules ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS card_schedules (
            card_id VARCHAR(64) PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            ease_factor DOUBLE PRECISION NOT NULL DEFAULT 2.5,
            interval INTEGER NOT NULL DEFAULT 0,
            repetitions INTEGER NOT NULL DEFAULT 0,
            last_reviewed TIMESTAMPTZ,
            next_review TIMESTAMPTZ,
            version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_card_schedules_user_next
        ON card_schedules(user_id, next_review)
    """)

    # --- User Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            user_id VARCHAR(64) PRIMARY KEY,
            total_xp INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_active_date DATE,
            total_notes_created INTEGER NOT NULL DEFAULT 0,
            total_folders_created INTEGER NOT NULL DEFAULT 0,
            total_tags_used INTEGER NOT NULL DEFAULT 0,
            total_links_created INTEGER NOT NULL DEFAULT 0,
            total_tasks_created INTEGER NOT NULL DEFAULT 0,
            total_tasks_completed INTEGER NOT NULL DEFAULT 0,
            early_task_completions INTEGER NOT NULL DEFAULT 0,
            total_decks_created INTEGER NOT NULL DEFAULT 0,
            total_cards_reviewed INTEGER NOT NULL DEFAULT 0,
            total_exams_created INTEGER NOT NULL DEFAULT 0,
            total_exams_completed INTEGER NOT NULL DEFAULT 0,
            total_questions_created INTEGER NOT NULL DEFAULT 0,
            total_study_minutes INTEGER NOT NULL DEFAULT 0,
            total_bugs_reported INTEGER NOT NULL DEFAULT 0,
            current_review_streak INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Daily Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_progress (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            day DATE NOT NULL,
            tasks_completed INTEGER NOT NULL DEFAULT 0,
            cards_reviewed INTEGER NOT NULL DEFAULT 0,
            notes_created INTEGER NOT NULL DEFAULT 0,
            notes_updated INTEGER NOT NULL DEFAULT 0,
            focus_minutes INTEGER NOT NULL DEFAULT 0,
            exams_completed INTEGER NOT NULL DEFAULT 0,
            questions_created INTEGER NOT NULL DEFAULT 0,
            questions_answered INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_daily_progress_user_day UNIQUE (user_id, day)
        )
    """)

    # --- Achievement Definitions (mirror of the static catalog) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_definitions (
            key VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(16) NOT NULL DEFAULT '',
            category VARCHAR(32) NOT NULL,
            tier VARCHAR(16) NOT NULL,
            requirement INTEGER,
            xp_reward INTEGER NOT NULL,
            counter VARCHAR(64),
            scope VARCHAR(16) NOT NULL DEFAULT 'cumulative',
            permanence VARCHAR(16) NOT NULL DEFAULT 'cumulative',
            catalog_version VARCHAR(32) NOT NULL
        )
    """)

    # --- User Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            achievement_key VARCHAR(64) NOT NULL,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            seen BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT uq_user_achievements_user_key UNIQUE (user_id, achievement_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_achievements_unseen
        ON user_achievements(user_id, seen)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievement_definitions CASCADE")
    op.execute("DROP TABLE IF EXISTS daily_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS user_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS card_schedules CASCADE")
