"""Feedback ledger: append-only learner ratings."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import structlog

from edgate.content.repository import ContentRepository
from edgate.errors import NotFoundError
from edgate.feedback.models import FeedbackRecord
from edgate.feedback.repository import FeedbackRepository
from edgate.numeric import clamp_to_int

logger = structlog.get_logger()

MIN_RATING = 1
MAX_RATING = 5


class FeedbackLedger:
    def __init__(self, content: ContentRepository, feedback: FeedbackRepository) -> None:
        self._content = content
        self._feedback = feedback

    async def add_feedback(
        self,
        user_id: str,
        content_id: str,
        rating: float,
        comment: str | None = None,
    ) -> FeedbackRecord:
        """Clamp the rating into [1, 5] and append. Records are never updated."""
        value = clamp_to_int(rating, "rating", MIN_RATING, MAX_RATING)
        if await self._content.get(content_id) is None:
            raise NotFoundError(f"Content {content_id} not found", content_id=content_id)

        record = FeedbackRecord(
            id=str(uuid4()),
            content_id=content_id,
            user_id=user_id,
            rating=value,
            comment=comment or None,
            created_at=datetime.now(timezone.utc),
        )
        await self._feedback.append(record)
        logger.info("feedback_added", content_id=content_id, user_id=user_id, rating=value)
        return record

    async def list_feedback(self, content_id: str) -> list[FeedbackRecord]:
        return await self._feedback.list_for_content(content_id)
