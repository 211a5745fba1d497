"""Progress tracker: per-learner progress, completion and ledger completion records."""

from __future__ import annotations

import math
from datetime import datetime, timezone

import structlog

from edgate.access.models import CompletionStatus, UserAccessRecord
from edgate.access.repository import AccessRecordRepository
from edgate.content.repository import ContentRepository
from edgate.errors import (
    ExternalServiceError,
    NotFoundError,
    PermanentServiceError,
    PreconditionFailedError,
    ValidationError,
)
from edgate.integrations.base import call_collaborator
from edgate.integrations.ledger import LedgerClient
from edgate.locks import KeyedLock, access_key
from edgate.numeric import clamp_to_int

logger = structlog.get_logger()


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def _check_score(score: float | None) -> float | None:
    if score is None:
        return None
    if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
        raise ValidationError("score must be a number", field="score")
    return float(score)


class ProgressTracker:
    """Serializes progress reports per (user, content) and keeps completion in sync with the ledger.

    Completion is sticky: once an item is Completed a later, lower progress
    report (a re-attempt) updates ``progress`` but does not revoke completion.
    """

    def __init__(
        self,
        content: ContentRepository,
        access: AccessRecordRepository,
        ledger: LedgerClient,
        locks: KeyedLock,
    ) -> None:
        self._content = content
        self._access = access
        self._ledger = ledger
        self._locks = locks

    async def update_progress(
        self,
        user_id: str,
        content_id: str,
        progress: float,
        completed: bool = False,
        *,
        score: float | None = None,
        reported_at: datetime | None = None,
    ) -> UserAccessRecord:
        """Apply a progress report.

        ``reported_at`` is the caller's wall-clock intent, captured before the
        key lock is taken. Reports older than the stored one are ignored.
        """
        reported_at = _as_utc(reported_at or datetime.now(timezone.utc))
        value = clamp_to_int(progress, "progress", 0, 100)
        checked_score = _check_score(score)
        if await self._content.get(content_id) is None:
            raise NotFoundError(f"Content {content_id} not found", content_id=content_id)

        async with self._locks.hold(access_key(user_id, content_id)):
            record = await self._access.get(user_id, content_id)
            if record is None:
                # A progress report presumes the caller already checked access.
                record = UserAccessRecord(
                    user_id=user_id,
                    content_id=content_id,
                    access_granted=True,
                    access_granted_at=reported_at,
                )
            elif record.last_reported_at is not None and reported_at < record.last_reported_at:
                logger.info(
                    "stale_progress_ignored",
                    user_id=user_id,
                    content_id=content_id,
                    reported_at=reported_at.isoformat(),
                    last_reported_at=record.last_reported_at.isoformat(),
                )
                return record

            explicit = completed or record.completed_explicitly
            status = record.completion_status
            if explicit or value == 100:
                status = CompletionStatus.COMPLETED
            elif value > 0 or status == CompletionStatus.COMPLETED:
                # Completion reached only through progress == 100 does not survive a lower report.
                status = CompletionStatus.IN_PROGRESS
            first_completion = status == CompletionStatus.COMPLETED and record.completed_at is None

            changes: dict[str, object] = {
                "progress": value,
                "completion_status": status,
                "completed_explicitly": explicit,
                "last_accessed_at": reported_at,
                "last_reported_at": reported_at,
            }
            if checked_score is not None:
                changes["score"] = checked_score
                changes["attempts"] = (record.attempts or 0) + 1
            if first_completion:
                changes["completed_at"] = reported_at

            saved = await self._access.save(record.model_copy(update=changes))
            if first_completion:
                logger.info("content_completed", user_id=user_id, content_id=content_id)
                saved = await self._record_completion(saved)
        return saved

    async def retry_completion_recording(self, user_id: str, content_id: str) -> UserAccessRecord:
        """Operator retry for a completion the ledger never acknowledged. Ledger errors propagate."""
        async with self._locks.hold(access_key(user_id, content_id)):
            record = await self._access.get(user_id, content_id)
            if record is None:
                raise NotFoundError(
                    f"No access record for user {user_id} on content {content_id}",
                    user_id=user_id,
                    content_id=content_id,
                )
            if record.completion_status != CompletionStatus.COMPLETED:
                raise PreconditionFailedError(
                    "Only completed content can have its completion recorded",
                    user_id=user_id,
                    content_id=content_id,
                    completion_status=record.completion_status.value,
                )
            if record.completion_recorded:
                return record

            recorded = await call_collaborator(
                "ledger", "record_completion", self._ledger.record_completion(user_id, content_id)
            )
            if not recorded:
                raise PermanentServiceError(
                    "Ledger declined the completion record",
                    service="ledger",
                    operation="record_completion",
                )
            saved = await self._access.save(record.model_copy(update={"completion_recorded": True}))
        logger.info("completion_recorded", user_id=user_id, content_id=content_id, retried=True)
        return saved

    async def _record_completion(self, record: UserAccessRecord) -> UserAccessRecord:
        """Best effort: local completion stands whatever the ledger says."""
        try:
            recorded = await call_collaborator(
                "ledger",
                "record_completion",
                self._ledger.record_completion(record.user_id, record.content_id),
            )
        except ExternalServiceError as exc:
            logger.warning(
                "completion_recording_failed",
                user_id=record.user_id,
                content_id=record.content_id,
                retryable=exc.retryable,
                error=exc.message,
            )
            return record
        if not recorded:
            logger.warning(
                "completion_recording_declined",
                user_id=record.user_id,
                content_id=record.content_id,
            )
            return record
        logger.info("completion_recorded", user_id=record.user_id, content_id=record.content_id)
        return await self._access.save(record.model_copy(update={"completion_recorded": True}))
