"""Feedback record model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FeedbackRecord(BaseModel):
    """A single rating left by a learner. Never updated or deleted."""

    model_config = ConfigDict(frozen=True)

    id: str
    content_id: str
    user_id: str
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    created_at: datetime
