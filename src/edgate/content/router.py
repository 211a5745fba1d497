"""Content lifecycle endpoints: authoring, review, publication."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from edgate.content.models import (
    AgeCohort,
    ContentFilter,
    ContentKind,
    ContentRecord,
    ContentUpdate,
    DifficultyLevel,
    VerificationStatus,
)
from edgate.content.schemas import (
    ContentCreateRequest,
    ContentListResponse,
    PayloadUrlResponse,
    RejectRequest,
    ReviewDecisionRequest,
)
from edgate.dependencies import Actor, get_actor, get_engine
from edgate.engine import Engine

router = APIRouter(prefix="/api/v1/content", tags=["Content"])


@router.post("", response_model=ContentRecord, status_code=201)
async def create_content(
    body: ContentCreateRequest,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> ContentRecord:
    """Create a draft owned by the calling actor."""
    return await engine.verification.create(
        metadata=body.metadata,
        payload_location=body.payload_location,
        thumbnail_location=body.thumbnail_location,
        requirements=body.access_requirements,
        module_id=body.module_id,
        order_in_module=body.order_in_module,
        creator_id=actor.id,
    )


@router.get("", response_model=ContentListResponse)
async def list_content(
    kind: ContentKind | None = None,
    level: DifficultyLevel | None = None,
    age_cohort: AgeCohort | None = None,
    module_id: str | None = None,
    status: VerificationStatus | None = None,
    engine: Engine = Depends(get_engine),
) -> ContentListResponse:
    content_filter = ContentFilter(
        kind=kind,
        level=level,
        age_cohort=age_cohort,
        module_id=module_id,
        status=status,
    )
    items = await engine.verification.list(content_filter)
    return ContentListResponse(items=items, total=len(items))


@router.get("/{content_id}", response_model=ContentRecord)
async def get_content(content_id: str, engine: Engine = Depends(get_engine)) -> ContentRecord:
    return await engine.verification.get(content_id)


@router.patch("/{content_id}", response_model=ContentRecord)
async def edit_content(
    content_id: str,
    body: ContentUpdate,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> ContentRecord:
    """Apply an edit. Verified or published content goes back to review."""
    return await engine.verification.edit(content_id, body, editor_id=actor.id)


@router.post("/{content_id}/submit", response_model=ContentRecord)
async def submit_for_review(
    content_id: str,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> ContentRecord:
    return await engine.verification.submit_for_review(content_id, actor_id=actor.id)


@router.post("/{content_id}/review", response_model=ContentRecord)
async def record_decision(
    content_id: str,
    body: ReviewDecisionRequest,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> ContentRecord:
    return await engine.verification.record_decision(
        content_id, actor.id, approved=body.approved, comments=body.comments
    )


@router.post("/{content_id}/reject", response_model=ContentRecord)
async def reject_content(
    content_id: str,
    body: RejectRequest,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> ContentRecord:
    return await engine.verification.reject(content_id, actor.id, body.comments)


@router.post("/{content_id}/publish", response_model=ContentRecord)
async def publish_content(
    content_id: str,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> ContentRecord:
    """Upload, anchor on the ledger, then mark published. All or nothing."""
    return await engine.verification.publish(content_id, publisher_id=actor.id)


@router.get("/{content_id}/payload-url", response_model=PayloadUrlResponse)
async def payload_url(content_id: str, engine: Engine = Depends(get_engine)) -> PayloadUrlResponse:
    url = await engine.verification.payload_url(content_id)
    return PayloadUrlResponse(content_id=content_id, url=url)
