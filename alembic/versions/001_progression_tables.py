"""Progression schema.

Creates the catalog tables (if the authoring side has not already), learners,
reward_events, streak_records, topic_progress, quiz_attempts,
problem_solutions, enrollments, leaderboard_snapshots,
achievement_definitions and learner_achievements.

Revision ID: 001_progression_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Catalog (owned by course authoring) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS courses (
            id VARCHAR(36) PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            completion_reward_points INTEGER NOT NULL DEFAULT 0,
            is_published BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS course_modules (
            id VARCHAR(36) PRIMARY KEY,
            course_id VARCHAR(36) NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            "order" INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_course_modules_course ON course_modules(course_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS topics (
            id VARCHAR(36) PRIMARY KEY,
            module_id VARCHAR(36) NOT NULL REFERENCES course_modules(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            video_url TEXT,
            "order" INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_topics_module ON topics(module_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS problems (
            id VARCHAR(36) PRIMARY KEY,
            topic_id VARCHAR(36) NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            difficulty VARCHAR(16) NOT NULL DEFAULT 'easy'
                CHECK (difficulty IN ('easy', 'medium', 'hard')),
            test_cases JSONB NOT NULL DEFAULT '[]'
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_problems_topic ON problems(topic_id)")

    # --- Learners ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS learners (
            user_id VARCHAR(36) PRIMARY KEY,
            display_name VARCHAR(128),
            avatar_url TEXT,
            total_points BIGINT NOT NULL DEFAULT 0,
            total_xp BIGINT NOT NULL DEFAULT 0,
            problems_solved INTEGER NOT NULL DEFAULT 0,
            courses_completed INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_learners_total_xp ON learners(total_xp DESC)")

    # --- Reward ledger (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reward_events (
            id BIGSERIAL PRIMARY KEY,
            event_key VARCHAR(256) UNIQUE NOT NULL,
            event_type VARCHAR(32) NOT NULL,
            user_id VARCHAR(36) NOT NULL REFERENCES learners(user_id) ON DELETE CASCADE,
            subject_id VARCHAR(128) NOT NULL,
            points INTEGER NOT NULL CHECK (points >= 0),
            xp INTEGER NOT NULL CHECK (xp >= 0),
            event_metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_reward_events_user ON reward_events(user_id, created_at DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_reward_events_created ON reward_events(created_at)")

    # --- Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_records (
            user_id VARCHAR(36) PRIMARY KEY REFERENCES learners(user_id) ON DELETE CASCADE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_active_date DATE,
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # --- Progression ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS topic_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            topic_id VARCHAR(36) NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
            video_watched BOOLEAN NOT NULL DEFAULT false,
            quiz_passed BOOLEAN NOT NULL DEFAULT false,
            problems_completed INTEGER NOT NULL DEFAULT 0 CHECK (problems_completed >= 0),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_topic_progress_user_topic UNIQUE (user_id, topic_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_topic_progress_user ON topic_progress(user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS quiz_attempts (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            topic_id VARCHAR(36) NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
            score INTEGER NOT NULL CHECK (score BETWEEN 0 AND 100),
            passed BOOLEAN NOT NULL,
            attempted_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_quiz_attempts_user ON quiz_attempts(user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS problem_solutions (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            problem_id VARCHAR(36) NOT NULL REFERENCES problems(id) ON DELETE CASCADE,
            status VARCHAR(32) NOT NULL DEFAULT 'algorithm_submitted'
                CHECK (status IN ('algorithm_submitted', 'algorithm_approved', 'code_failed', 'completed')),
            algorithm_explanation TEXT,
            algorithm_feedback TEXT,
            algorithm_verified_at TIMESTAMPTZ,
            code_solution TEXT,
            language VARCHAR(32),
            code_verified_at TIMESTAMPTZ,
            points_awarded INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_problem_solution_user_problem UNIQUE (user_id, problem_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_problem_solutions_user ON problem_solutions(user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS enrollments (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            course_id VARCHAR(36) NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            enrolled_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            completion_points_awarded INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_enrollment_user_course UNIQUE (user_id, course_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_enrollments_user ON enrollments(user_id)")

    # --- Leaderboard snapshots ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_snapshots (
            id BIGSERIAL PRIMARY KEY,
            period VARCHAR(16) NOT NULL,
            period_key VARCHAR(16) NOT NULL,
            user_id VARCHAR(36) NOT NULL,
            rank INTEGER NOT NULL,
            score DOUBLE PRECISION NOT NULL,
            snapshot_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT lb_snapshots_period_user_key UNIQUE (period, period_key, user_id)
        )
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_definitions (
            id SERIAL PRIMARY KEY,
            code VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(64),
            condition_type VARCHAR(32) NOT NULL,
            condition_value INTEGER NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 0,
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS learner_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            achievement_id INTEGER NOT NULL REFERENCES achievement_definitions(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_learner_achievement UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_learner_achievements_user ON learner_achievements(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS learner_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievement_definitions CASCADE")
    op.execute("DROP TABLE IF EXISTS leaderboard_snapshots CASCADE")
    op.execute("DROP TABLE IF EXISTS enrollments CASCADE")
    op.execute("DROP TABLE IF EXISTS problem_solutions CASCADE")
    op.execute("DROP TABLE IF EXISTS quiz_attempts CASCADE")
    op.execute("DROP TABLE IF EXISTS topic_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS streak_records CASCADE")
    op.execute("DROP TABLE IF EXISTS reward_events CASCADE")
    op.execute("DROP TABLE IF EXISTS learners CASCADE")
