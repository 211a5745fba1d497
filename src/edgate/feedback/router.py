"""Feedback endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from edgate.dependencies import Actor, get_actor, get_engine
from edgate.engine import Engine
from edgate.feedback.models import FeedbackRecord
from edgate.feedback.schemas import FeedbackListResponse, FeedbackRequest

router = APIRouter(prefix="/api/v1/content", tags=["Feedback"])


@router.post("/{content_id}/feedback", response_model=FeedbackRecord, status_code=201)
async def add_feedback(
    content_id: str,
    body: FeedbackRequest,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> FeedbackRecord:
    """Ratings outside 1-5 are clamped, not rejected."""
    return await engine.feedback.add_feedback(actor.id, content_id, body.rating, body.comment)


@router.get("/{content_id}/feedback", response_model=FeedbackListResponse)
async def list_feedback(content_id: str, engine: Engine = Depends(get_engine)) -> FeedbackListResponse:
    items = await engine.feedback.list_feedback(content_id)
    return FeedbackListResponse(items=items, total=len(items))
