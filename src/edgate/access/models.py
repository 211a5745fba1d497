"""Per-learner access and progress models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from edgate.content.models import AgeCohort


class CompletionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class UserAccessRecord(BaseModel):
    """One record per (user, content) pair, created on the first access-relevant event."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    content_id: str
    access_granted: bool = False
    access_granted_at: datetime | None = None
    completion_status: CompletionStatus = CompletionStatus.NOT_STARTED
    progress: int = Field(default=0, ge=0, le=100)
    score: float | None = None
    attempts: int | None = None
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    last_reported_at: datetime | None = None
    completion_recorded: bool = False
    completed_explicitly: bool = False
    version: int = 0


class LearnerProfile(BaseModel):
    """What the profile directory knows about a learner."""

    user_id: str
    badges: frozenset[str] = frozenset()
    age_cohort: AgeCohort | None = None
