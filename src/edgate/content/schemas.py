"""Request and response models for content endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from edgate.content.models import AccessRequirement, ContentMetadata, ContentRecord


class ContentCreateRequest(BaseModel):
    metadata: ContentMetadata
    payload_location: str = Field(min_length=1)
    thumbnail_location: str = Field(min_length=1)
    access_requirements: list[AccessRequirement] = []
    module_id: str = Field(min_length=1)
    order_in_module: int = Field(default=0, ge=0)


class ReviewDecisionRequest(BaseModel):
    approved: bool
    comments: str | None = None


class RejectRequest(BaseModel):
    comments: str = Field(min_length=1)


class ContentListResponse(BaseModel):
    items: list[ContentRecord]
    total: int


class PayloadUrlResponse(BaseModel):
    content_id: str
    url: str
