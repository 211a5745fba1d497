"""Content items, learner access records and feedback.

Creates content_items, user_content_access and content_feedback.

Revision ID: 001_content_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_content_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the three engine tables."""
    # --- content_items ---
    op.create_table(
        "content_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("level", sa.String(16), nullable=False),
        sa.Column("target_age_cohorts", postgresql.JSONB(), nullable=False),
        sa.Column("module_id", sa.String(64), nullable=False),
        sa.Column("order_in_module", sa.Integer(), server_default="0", nullable=False),
        sa.Column("status", sa.String(24), server_default="draft", nullable=False),
        sa.Column("creator_id", sa.String(64), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=False),
        sa.Column("payload_location", sa.Text(), nullable=False),
        sa.Column("thumbnail_location", sa.Text(), nullable=False),
        sa.Column("access_requirements", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("history", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("ledger_record", postgresql.JSONB(), nullable=True),
        sa.Column("previous_ledger_records", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), server_default="0", nullable=False),
    )
    op.create_index("ix_content_items_module_status", "content_items", ["module_id", "status"])
    op.create_index("ix_content_items_status", "content_items", ["status"])
    op.create_index(
        "ix_content_items_target_age_cohorts",
        "content_items",
        ["target_age_cohorts"],
        postgresql_using="gin",
    )
    op.execute(
        "ALTER TABLE content_items ADD CONSTRAINT ck_content_items_status "
        "CHECK (status IN ('draft', 'pending_review', 'changes_requested', 'verified', 'rejected', 'published'))"
    )
    op.execute(
        "ALTER TABLE content_items ADD CONSTRAINT ck_content_items_ledger_record "
        "CHECK ((status = 'published') = (ledger_record IS NOT NULL))"
    )

    # --- user_content_access ---
    op.create_table(
        "user_content_access",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column(
            "content_id",
            sa.String(36),
            sa.ForeignKey("content_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("access_granted", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("access_granted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_status", sa.String(16), server_default="not_started", nullable=False),
        sa.Column("progress", sa.Integer(), server_default="0", nullable=False),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=True),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_reported_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_recorded", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("completed_explicitly", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("version", sa.Integer(), server_default="0", nullable=False),
        sa.UniqueConstraint("user_id", "content_id", name="uq_user_content_access"),
    )
    op.create_index("ix_user_content_access_user_id", "user_content_access", ["user_id"])
    op.execute(
        "ALTER TABLE user_content_access ADD CONSTRAINT ck_user_content_access_progress "
        "CHECK (progress BETWEEN 0 AND 100)"
    )

    # --- content_feedback ---
    op.create_table(
        "content_feedback",
        sa.Column("seq", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(36), nullable=False, unique=True),
        sa.Column(
            "content_id",
            sa.String(36),
            sa.ForeignKey("content_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_content_feedback_content_id", "content_feedback", ["content_id"])
    op.execute(
        "ALTER TABLE content_feedback ADD CONSTRAINT ck_content_feedback_rating "
        "CHECK (rating BETWEEN 1 AND 5)"
    )


def downgrade() -> None:
    """Drop the engine tables."""
    op.drop_table("content_feedback")
    op.drop_table("user_content_access")
    op.drop_table("content_items")
