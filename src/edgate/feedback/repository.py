"""Append-only feedback storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgate.db.models import ContentFeedback
from edgate.feedback.models import FeedbackRecord


class FeedbackRepository(ABC):
    @abstractmethod
    async def append(self, record: FeedbackRecord) -> None:
        ...

    @abstractmethod
    async def list_for_content(self, content_id: str) -> list[FeedbackRecord]:
        """All records for a content id, oldest first."""
        ...


class InMemoryFeedbackRepository(FeedbackRepository):
    def __init__(self) -> None:
        self._records: dict[str, list[FeedbackRecord]] = defaultdict(list)

    async def append(self, record: FeedbackRecord) -> None:
        self._records[record.content_id].append(record)

    async def list_for_content(self, content_id: str) -> list[FeedbackRecord]:
        return list(self._records.get(content_id, []))


class SqlFeedbackRepository(FeedbackRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, record: FeedbackRecord) -> None:
        async with self._session_factory() as session:
            session.add(ContentFeedback(**record.model_dump()))
            await session.commit()

    async def list_for_content(self, content_id: str) -> list[FeedbackRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ContentFeedback)
                .where(ContentFeedback.content_id == content_id)
                .order_by(ContentFeedback.seq)
            )
            return [
                FeedbackRecord.model_validate(row, from_attributes=True)
                for row in result.scalars().all()
            ]
