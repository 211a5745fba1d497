"""Request and response models for access and progress endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from edgate.access.models import UserAccessRecord


class AccessCheckResponse(BaseModel):
    user_id: str
    content_id: str
    granted: bool


class GrantAccessRequest(BaseModel):
    """Grant on behalf of ``user_id``; defaults to the calling actor."""

    user_id: str | None = Field(default=None, min_length=1)


class ProgressReportRequest(BaseModel):
    progress: float
    completed: bool = False
    score: float | None = None
    reported_at: datetime | None = None


class CompletionRetryRequest(BaseModel):
    user_id: str | None = Field(default=None, min_length=1)


class AccessRecordListResponse(BaseModel):
    items: list[UserAccessRecord]
    total: int
