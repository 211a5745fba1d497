"""ORM models for content items, learner access records and feedback.

Nested value objects (metadata, requirements, verification history, ledger
records) are stored as JSONB; the columns that listing filters touch are
denormalized so they can be indexed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from edgate.db.base import Base


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class ContentItem(Base):
    """Maps to the 'content_items' table."""

    __tablename__ = "content_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    level: Mapped[str] = mapped_column(String(16), nullable=False)
    target_age_cohorts: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    module_id: Mapped[str] = mapped_column(String(64), nullable=False)
    order_in_module: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    status: Mapped[str] = mapped_column(String(24), nullable=False, server_default="draft")
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, nullable=False)
    payload_location: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_location: Mapped[str] = mapped_column(Text, nullable=False)
    access_requirements: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, server_default="[]")
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, server_default="[]")
    ledger_record: Mapped[dict[str, Any] | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    previous_ledger_records: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, server_default="[]"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")


# ---------------------------------------------------------------------------
# Learner access
# ---------------------------------------------------------------------------


class UserContentAccess(Base):
    """Per-(user, content) access and progress; UNIQUE(user_id, content_id)."""

    __tablename__ = "user_content_access"
    __table_args__ = (UniqueConstraint("user_id", "content_id", name="uq_user_content_access"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("content_items.id", ondelete="CASCADE"), nullable=False
    )
    access_granted: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    access_granted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="not_started")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    attempts: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_accessed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_reported_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_recorded: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    completed_explicitly: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


class ContentFeedback(Base):
    """Append-only ratings. ``seq`` preserves insertion order."""

    __tablename__ = "content_feedback"

    seq: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    content_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("content_items.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
