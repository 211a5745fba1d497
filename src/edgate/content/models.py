"""Content domain models: lifecycle states, metadata, prerequisites, ledger records."""

from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class ContentKind(str, Enum):
    LESSON = "lesson"
    VIDEO = "video"
    ACTIVITY = "activity"
    QUIZ = "quiz"
    GAME = "game"
    SIMULATION = "simulation"
    CERTIFICATE = "certificate"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"  # ages 6-8
    INTERMEDIATE = "intermediate"  # ages 9-11
    ADVANCED = "advanced"  # ages 12-14


class AgeCohort(str, Enum):
    YOUNG = "young"
    MIDDLE = "middle"
    OLDER = "older"


class VerificationStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    CHANGES_REQUESTED = "changes_requested"
    VERIFIED = "verified"
    REJECTED = "rejected"
    PUBLISHED = "published"


class VerificationAction(str, Enum):
    """What caused a history entry to be appended."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    REJECTED = "rejected"
    INVALIDATED = "invalidated"  # edit after sign-off
    PUBLISHED = "published"


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class ContentMetadata(BaseModel):
    """Descriptive metadata for a content item."""

    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    kind: ContentKind
    level: DifficultyLevel
    target_age_cohorts: list[AgeCohort]
    keywords: list[str] = []
    learning_objectives: list[str] = []
    topics: list[str] = []
    estimated_minutes: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("target_age_cohorts")
    @classmethod
    def _cohorts_not_empty(cls, value: list[AgeCohort]) -> list[AgeCohort]:
        if not value:
            raise ValueError("target_age_cohorts must contain at least one cohort")
        return list(dict.fromkeys(value))


# ---------------------------------------------------------------------------
# Access requirements (tagged variant)
# ---------------------------------------------------------------------------


class BadgeRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["badge_required"] = "badge_required"
    badge_id: str = Field(min_length=1)


class ModuleCompletionRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["module_completed"] = "module_completed"
    module_id: str = Field(min_length=1)


class ModuleProgressRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["progress_required"] = "progress_required"
    module_id: str = Field(min_length=1)
    threshold: int = Field(ge=0, le=100)


class AgeCohortRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["age_group_required"] = "age_group_required"
    age_cohort: AgeCohort


AccessRequirement = Annotated[
    BadgeRequirement | ModuleCompletionRequirement | ModuleProgressRequirement | AgeCohortRequirement,
    Field(discriminator="type"),
]

requirements_adapter: TypeAdapter[list[AccessRequirement]] = TypeAdapter(list[AccessRequirement])


# ---------------------------------------------------------------------------
# Verification history and ledger records
# ---------------------------------------------------------------------------


def decision_fingerprint(
    reviewer_id: str,
    content_id: str,
    action: VerificationAction,
    decided_at: datetime,
) -> str:
    """Tamper-evident digest of a decision. Not a signature: anyone can recompute it."""
    raw = f"{reviewer_id}:{content_id}:{action.value}:{decided_at.isoformat()}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class VerificationDecision(BaseModel):
    """Immutable entry in a content record's verification history."""

    model_config = ConfigDict(frozen=True)

    id: str
    content_id: str
    reviewer_id: str
    action: VerificationAction
    status: VerificationStatus
    comments: str | None = None
    decided_at: datetime
    fingerprint: str

    @classmethod
    def record(
        cls,
        content_id: str,
        reviewer_id: str,
        action: VerificationAction,
        status: VerificationStatus,
        decided_at: datetime,
        comments: str | None = None,
    ) -> VerificationDecision:
        return cls(
            id=str(uuid4()),
            content_id=content_id,
            reviewer_id=reviewer_id,
            action=action,
            status=status,
            comments=comments,
            decided_at=decided_at,
            fingerprint=decision_fingerprint(reviewer_id, content_id, action, decided_at),
        )


class LedgerRecord(BaseModel):
    """On-ledger trace of a publication. Immutable once attached."""

    model_config = ConfigDict(frozen=True)

    id: str
    content_id: str
    transaction_ref: str
    metadata_label: int
    metadata_json: str
    payload_address: str
    recorded_at: datetime
    block_height: int | None = None
    policy_id: str | None = None
    asset_name: str | None = None


# ---------------------------------------------------------------------------
# Content record
# ---------------------------------------------------------------------------


class ContentRecord(BaseModel):
    """One piece of educational material and its lifecycle state."""

    id: str
    metadata: ContentMetadata
    payload_location: str
    thumbnail_location: str
    access_requirements: list[AccessRequirement] = []
    module_id: str
    order_in_module: int = 0
    status: VerificationStatus = VerificationStatus.DRAFT
    history: list[VerificationDecision] = []
    ledger_record: LedgerRecord | None = None
    previous_ledger_records: list[LedgerRecord] = []
    creator_id: str
    created_at: datetime
    updated_at: datetime
    published_at: datetime | None = None
    version: int = 0

    @model_validator(mode="after")
    def _validate_invariants(self) -> ContentRecord:
        self.check_invariants()
        return self

    def check_invariants(self) -> None:
        """Raise ValueError if the record breaks a lifecycle invariant."""
        published = self.status == VerificationStatus.PUBLISHED
        if published != (self.ledger_record is not None):
            raise ValueError("ledger_record must be present exactly when status is published")
        if self.status != VerificationStatus.DRAFT and not self.history:
            raise ValueError("verification history must not be empty once content has left draft")


class ContentFilter(BaseModel):
    """AND-combined listing filter; unset fields match everything."""

    kind: ContentKind | None = None
    level: DifficultyLevel | None = None
    age_cohort: AgeCohort | None = None
    module_id: str | None = None
    status: VerificationStatus | None = None

    def matches(self, record: ContentRecord) -> bool:
        if self.kind is not None and record.metadata.kind != self.kind:
            return False
        if self.level is not None and record.metadata.level != self.level:
            return False
        if self.age_cohort is not None and self.age_cohort not in record.metadata.target_age_cohorts:
            return False
        if self.module_id is not None and record.module_id != self.module_id:
            return False
        if self.status is not None and record.status != self.status:
            return False
        return True


class ContentUpdate(BaseModel):
    """Partial edit. ``metadata`` is merged key-by-key into the existing metadata."""

    metadata: dict[str, Any] | None = None
    payload_location: str | None = Field(default=None, min_length=1)
    thumbnail_location: str | None = Field(default=None, min_length=1)
    access_requirements: list[AccessRequirement] | None = None
    module_id: str | None = Field(default=None, min_length=1)
    order_in_module: int | None = Field(default=None, ge=0)

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)
