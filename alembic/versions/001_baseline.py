"""Baseline schema: players, catalog, memberships, progress, rewards, notifications, badges.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            uuid_mc VARCHAR(36) UNIQUE,
            username VARCHAR(64) NOT NULL,
            email VARCHAR(320) UNIQUE,
            role VARCHAR(16) NOT NULL DEFAULT 'player',
            total_xp BIGINT NOT NULL DEFAULT 0,
            total_points BIGINT NOT NULL DEFAULT 0,
            total_challenges_completed INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            last_login TIMESTAMPTZ
        )
    """)

    # --- Actions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS actions (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            description TEXT,
            parameters JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # --- Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id SERIAL PRIMARY KEY,
            title VARCHAR(100) NOT NULL,
            description TEXT,
            type VARCHAR(16) NOT NULL,
            expires_at TIMESTAMPTZ,
            reward_xp INTEGER NOT NULL DEFAULT 0,
            reward_points INTEGER NOT NULL DEFAULT 0,
            reward_item JSONB,
            creator_id BIGINT REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT challenges_reward_xp_non_negative CHECK (reward_xp >= 0),
            CONSTRAINT challenges_reward_points_non_negative CHECK (reward_points >= 0)
        )
    """)

    # --- Tasks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenge_tasks (
            id SERIAL PRIMARY KEY,
            challenge_id INTEGER NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
            action_id INTEGER NOT NULL REFERENCES actions(id) ON DELETE RESTRICT,
            quantity INTEGER NOT NULL DEFAULT 1,
            parameters JSONB,
            CONSTRAINT challenge_tasks_quantity_positive CHECK (quantity >= 1)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_challenge_tasks_challenge_id ON challenge_tasks(challenge_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_challenge_tasks_action_id ON challenge_tasks(action_id)")

    # --- Memberships ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenge_memberships (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            challenge_id INTEGER NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'accepted',
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            CONSTRAINT challenge_memberships_user_challenge_key UNIQUE (user_id, challenge_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_challenge_memberships_user_id ON challenge_memberships(user_id)")
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_challenge_memberships_challenge_id ON challenge_memberships(challenge_id)"
    )

    # --- Task progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS task_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            task_id INTEGER NOT NULL REFERENCES challenge_tasks(id) ON DELETE CASCADE,
            progress INTEGER NOT NULL DEFAULT 0,
            completed BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT task_progress_user_task_key UNIQUE (user_id, task_id),
            CONSTRAINT task_progress_non_negative CHECK (progress >= 0)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_task_progress_user_id ON task_progress(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_task_progress_task_id ON task_progress(task_id)")

    # --- Reward ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reward_ledger (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            challenge_id INTEGER REFERENCES challenges(id) ON DELETE SET NULL,
            membership_id BIGINT REFERENCES challenge_memberships(id) ON DELETE SET NULL,
            xp INTEGER NOT NULL DEFAULT 0,
            points INTEGER NOT NULL DEFAULT 0,
            description VARCHAR(256),
            idempotency_key VARCHAR(256) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_reward_ledger_user_id ON reward_ledger(user_id)")

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            message TEXT NOT NULL,
            read BOOLEAN NOT NULL DEFAULT false,
            metadata JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_notifications_user_id ON notifications(user_id)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user_unread
        ON notifications(user_id, created_at DESC) WHERE read = false
    """)

    # --- Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT,
            criteria JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id INTEGER NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_badges_user_id_badge_id_key UNIQUE (user_id, badge_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_badges_user_id ON user_badges(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS badges CASCADE")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS reward_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS task_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS challenge_memberships CASCADE")
    op.execute("DROP TABLE IF EXISTS challenge_tasks CASCADE")
    op.execute("DROP TABLE IF EXISTS challenges CASCADE")
    op.execute("DROP TABLE IF EXISTS actions CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
