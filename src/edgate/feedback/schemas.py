"""Request and response models for feedback endpoints."""

from __future__ import annotations

from pydantic import BaseModel

from edgate.feedback.models import FeedbackRecord


class FeedbackRequest(BaseModel):
    rating: float
    comment: str | None = None


class FeedbackListResponse(BaseModel):
    items: list[FeedbackRecord]
    total: int
