"""Initial schema.

Creates users, the social graph (friendships, groups, group_members),
synced stats (daily_stats, weekly_stats, provider_logs), achievement_grants,
daily_reward_settlements and coin_ledger.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-02-22
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username VARCHAR(64) UNIQUE NOT NULL,
            api_key VARCHAR(256) NOT NULL DEFAULT '',
            wakatime_timezone VARCHAR(64),
            stats_visibility VARCHAR(16) NOT NULL DEFAULT 'everyone'
                CHECK (stats_visibility IN ('everyone', 'friends', 'no_one')),
            is_competing BOOLEAN NOT NULL DEFAULT true,
            coin_balance INTEGER NOT NULL DEFAULT 0 CHECK (coin_balance >= 0),
            equipped_skin_id VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Social graph ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS friendships (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            friend_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_friendships_user_friend UNIQUE (user_id, friend_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_friendships_friend
        ON friendships(friend_id)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS groups (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(64) NOT NULL,
            owner_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS group_members (
            id BIGSERIAL PRIMARY KEY,
            group_id BIGINT NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_group_members_group_user UNIQUE (group_id, user_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_group_members_user
        ON group_members(user_id)
    """)

    # --- Synced stats ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_stats (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            date_key VARCHAR(10) NOT NULL,
            total_seconds DOUBLE PRECISION NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL,
            error TEXT,
            fetched_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_daily_stats_user_date UNIQUE (user_id, date_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_daily_stats_date
        ON daily_stats(date_key)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS weekly_stats (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            range_key VARCHAR(32) NOT NULL,
            total_seconds DOUBLE PRECISION NOT NULL DEFAULT 0,
            daily_average_seconds DOUBLE PRECISION NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL,
            error TEXT,
            fetched_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_weekly_stats_user_range UNIQUE (user_id, range_key)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS provider_logs (
            id BIGSERIAL PRIMARY KEY,
            provider VARCHAR(32) NOT NULL,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            endpoint VARCHAR(64) NOT NULL,
            range_key VARCHAR(32),
            status_code INTEGER,
            ok BOOLEAN NOT NULL DEFAULT false,
            payload JSONB,
            error TEXT,
            fetched_at TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_provider_logs_user_time
        ON provider_logs(user_id, fetched_at DESC)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_grants (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id VARCHAR(64) NOT NULL,
            context_kind VARCHAR(16) NOT NULL,
            context_key VARCHAR(64) NOT NULL,
            awarded_at TIMESTAMPTZ NOT NULL,
            metadata JSONB,
            CONSTRAINT uq_achievement_grants_context
                UNIQUE (user_id, achievement_id, context_kind, context_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievement_grants_user
        ON achievement_grants(user_id)
    """)

    # --- Coins ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_reward_settlements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            date_key VARCHAR(10) NOT NULL,
            rank INTEGER,
            coins_awarded INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_daily_reward_settlements_user_date UNIQUE (user_id, date_key)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_ledger (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            reason VARCHAR(32) NOT NULL,
            metadata JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_coin_ledger_user
        ON coin_ledger(user_id, created_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS coin_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS daily_reward_settlements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievement_grants CASCADE")
    op.execute("DROP TABLE IF EXISTS provider_logs CASCADE")
    op.execute("DROP TABLE IF EXISTS weekly_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS daily_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS group_members CASCADE")
    op.execute("DROP TABLE IF EXISTS groups CASCADE")
    op.execute("DROP TABLE IF EXISTS friendships CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
