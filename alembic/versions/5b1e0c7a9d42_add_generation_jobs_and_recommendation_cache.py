"""Add generation_jobs and recommendation_cache tables

Revision ID: 5b1e0c7a9d42
Revises:
Create Date: 2026-10-12 09:30:00.000000

generation_jobs tracks asynchronous training program generation:
pending -> processing -> completed | failed. The API inserts pending rows;
only the worker (service role) moves status.

recommendation_cache memoizes AI coach output per user, keyed by a content
address of the request context, with a fixed expiry.

Security Model:
- Users can read their own jobs and create pending jobs for themselves.
- Users can read and delete their own cache entries.
- Status transitions and cache writes go through the service role (BYPASSRLS).
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b1e0c7a9d42"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Note: Each statement must be in a separate op.execute() for asyncpg compatibility
    op.execute("""
        CREATE OR REPLACE FUNCTION app_user_id()
        RETURNS UUID AS $$
            SELECT NULLIF(current_setting('app.current_user_id', true), '')::uuid;
        $$ LANGUAGE sql STABLE
    """)

    # ==========================================================================
    # GENERATION_JOBS TABLE
    # ==========================================================================
    op.create_table(
        "generation_jobs",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("job_type", sa.String(40), server_default="training_program", nullable=False),
        sa.Column("status", sa.String(20), server_default="pending", nullable=False),
        sa.Column("input_snapshot", postgresql.JSONB(), nullable=False),
        sa.Column("result", postgresql.JSONB(), nullable=True),
        sa.Column("error_code", sa.String(50), nullable=True),
        sa.Column("error_message", sa.String(2000), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_generation_jobs_status",
        ),
        # Exactly one terminal payload, and only once terminal
        sa.CheckConstraint(
            "(status = 'completed' AND result IS NOT NULL AND error_code IS NULL)"
            " OR (status = 'failed' AND result IS NULL AND error_code IS NOT NULL)"
            " OR (status IN ('pending', 'processing') AND result IS NULL AND error_code IS NULL)",
            name="ck_generation_jobs_terminal_payload",
        ),
    )
    op.create_index("ix_generation_jobs_id", "generation_jobs", ["id"])
    op.create_index("ix_generation_jobs_user_id", "generation_jobs", ["user_id"])
    op.create_index("ix_generation_jobs_user_created", "generation_jobs", ["user_id", "created_at"])
    op.create_index(
        "ix_generation_jobs_status_created", "generation_jobs", ["status", "created_at"]
    )

    op.execute("ALTER TABLE generation_jobs ENABLE ROW LEVEL SECURITY")

    op.execute("""
        CREATE POLICY generation_jobs_owner_select ON generation_jobs
            FOR SELECT
            USING (user_id = app_user_id())
    """)

    # Users may only create their own jobs, and only in the initial state
    op.execute("""
        CREATE POLICY generation_jobs_owner_insert ON generation_jobs
            FOR INSERT
            WITH CHECK (user_id = app_user_id() AND status = 'pending')
    """)

    # No UPDATE/DELETE policies - transitions go through service role (BYPASSRLS)

    # ==========================================================================
    # RECOMMENDATION_CACHE TABLE
    # ==========================================================================
    op.create_table(
        "recommendation_cache",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("cache_key", sa.String(255), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("value", postgresql.JSONB(), nullable=False),
        sa.Column("input_fingerprint", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Unique composite index backs the upsert's ON CONFLICT target
    op.create_index(
        "ix_recommendation_cache_key_user",
        "recommendation_cache",
        ["cache_key", "user_id"],
        unique=True,
    )
    op.create_index(
        "ix_recommendation_cache_user_expires",
        "recommendation_cache",
        ["user_id", "expires_at"],
    )
    op.create_index(
        "ix_recommendation_cache_fingerprint",
        "recommendation_cache",
        ["input_fingerprint"],
    )

    op.execute("ALTER TABLE recommendation_cache ENABLE ROW LEVEL SECURITY")

    op.execute("""
        CREATE POLICY recommendation_cache_owner_select ON recommendation_cache
            FOR SELECT
            USING (user_id = app_user_id())
    """)

    op.execute("""
        CREATE POLICY recommendation_cache_owner_delete ON recommendation_cache
            FOR DELETE
            USING (user_id = app_user_id())
    """)


def downgrade() -> None:
    op.execute("DROP POLICY IF EXISTS recommendation_cache_owner_delete ON recommendation_cache")
    op.execute("DROP POLICY IF EXISTS recommendation_cache_owner_select ON recommendation_cache")
    op.drop_index("ix_recommendation_cache_fingerprint", table_name="recommendation_cache")
    op.drop_index("ix_recommendation_cache_user_expires", table_name="recommendation_cache")
    op.drop_index("ix_recommendation_cache_key_user", table_name="recommendation_cache")
    op.drop_table("recommendation_cache")

    op.execute("DROP POLICY IF EXISTS generation_jobs_owner_insert ON generation_jobs")
    op.execute("DROP POLICY IF EXISTS generation_jobs_owner_select ON generation_jobs")
    op.drop_index("ix_generation_jobs_status_created", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_user_created", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_user_id", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_id", table_name="generation_jobs")
    op.drop_table("generation_jobs")

    op.execute("DROP FUNCTION IF EXISTS app_user_id()")
