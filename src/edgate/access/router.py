"""Access and progress endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from edgate.access.models import UserAccessRecord
from edgate.access.schemas import (
    AccessCheckResponse,
    AccessRecordListResponse,
    CompletionRetryRequest,
    GrantAccessRequest,
    ProgressReportRequest,
)
from edgate.dependencies import Actor, get_actor, get_engine
from edgate.engine import Engine

router = APIRouter(prefix="/api/v1/content", tags=["Access"])
learners_router = APIRouter(prefix="/api/v1/learners/me/access", tags=["Access"])


@router.get("/{content_id}/access", response_model=AccessCheckResponse)
async def check_access(
    content_id: str,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> AccessCheckResponse:
    granted = await engine.access.check_access(actor.id, content_id)
    return AccessCheckResponse(user_id=actor.id, content_id=content_id, granted=granted)


@router.post("/{content_id}/access", response_model=UserAccessRecord)
async def grant_access(
    content_id: str,
    body: GrantAccessRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> UserAccessRecord:
    """Register a grant on the ledger, then locally. Nothing is written if the ledger fails."""
    user_id = (body.user_id if body else None) or actor.id
    return await engine.access.grant_access(user_id, content_id)


@router.post("/{content_id}/progress", response_model=UserAccessRecord)
async def report_progress(
    content_id: str,
    body: ProgressReportRequest,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> UserAccessRecord:
    return await engine.progress.update_progress(
        actor.id,
        content_id,
        body.progress,
        body.completed,
        score=body.score,
        reported_at=body.reported_at,
    )


@router.post("/{content_id}/progress/completion", response_model=UserAccessRecord)
async def retry_completion_recording(
    content_id: str,
    body: CompletionRetryRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> UserAccessRecord:
    """Operator retry for a completion the ledger never acknowledged."""
    user_id = (body.user_id if body else None) or actor.id
    return await engine.progress.retry_completion_recording(user_id, content_id)


# ---- Learner's own records ----


@learners_router.get("", response_model=AccessRecordListResponse)
async def list_my_access(
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> AccessRecordListResponse:
    items = await engine.access.list_user_access(actor.id)
    return AccessRecordListResponse(items=items, total=len(items))


@learners_router.get("/{content_id}", response_model=UserAccessRecord)
async def get_my_access(
    content_id: str,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_engine),
) -> UserAccessRecord:
    return await engine.access.get_access_record(actor.id, content_id)
