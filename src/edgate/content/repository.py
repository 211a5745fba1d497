"""Content record storage: pure data access, no lifecycle policy.

Repositories hand out deep copies so callers never share mutable state with
the store, and updates are guarded by an optimistic ``version`` counter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgate.content.models import ContentFilter, ContentRecord
from edgate.db.models import ContentItem
from edgate.errors import ConflictError, NotFoundError


class ContentRepository(ABC):
    """Keyed storage of content records."""

    @abstractmethod
    async def add(self, record: ContentRecord) -> ContentRecord:
        """Insert a new record. Raises ConflictError if the id is taken."""
        ...

    @abstractmethod
    async def get(self, content_id: str) -> ContentRecord | None:
        ...

    @abstractmethod
    async def update(self, record: ContentRecord) -> ContentRecord:
        """Replace a record if its stored version still equals ``record.version``.

        Returns the stored copy with the version bumped. Raises NotFoundError or
        ConflictError.
        """
        ...

    @abstractmethod
    async def list(self, content_filter: ContentFilter | None = None) -> list[ContentRecord]:
        ...


class InMemoryContentRepository(ContentRepository):
    """Dict-backed repository for tests and single-process deployments."""

    def __init__(self) -> None:
        self._records: dict[str, ContentRecord] = {}

    async def add(self, record: ContentRecord) -> ContentRecord:
        if record.id in self._records:
            raise ConflictError(f"Content {record.id} already exists", content_id=record.id)
        stored = record.model_copy(update={"version": 0}, deep=True)
        self._records[record.id] = stored
        return stored.model_copy(deep=True)

    async def get(self, content_id: str) -> ContentRecord | None:
        record = self._records.get(content_id)
        return record.model_copy(deep=True) if record else None

    async def update(self, record: ContentRecord) -> ContentRecord:
        current = self._records.get(record.id)
        if current is None:
            raise NotFoundError(f"Content {record.id} not found", content_id=record.id)
        if current.version != record.version:
            raise ConflictError(
                f"Content {record.id} was modified concurrently",
                content_id=record.id,
                expected_version=record.version,
                actual_version=current.version,
            )
        stored = record.model_copy(update={"version": record.version + 1}, deep=True)
        self._records[record.id] = stored
        return stored.model_copy(deep=True)

    async def list(self, content_filter: ContentFilter | None = None) -> list[ContentRecord]:
        return [
            record.model_copy(deep=True)
            for record in self._records.values()
            if content_filter is None or content_filter.matches(record)
        ]


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------


def _row_values(record: ContentRecord) -> dict[str, Any]:
    data = record.model_dump(mode="json")
    return {
        "id": record.id,
        "title": record.metadata.title,
        "kind": record.metadata.kind.value,
        "level": record.metadata.level.value,
        "target_age_cohorts": data["metadata"]["target_age_cohorts"],
        "module_id": record.module_id,
        "order_in_module": record.order_in_module,
        "status": record.status.value,
        "creator_id": record.creator_id,
        "content_metadata": data["metadata"],
        "payload_location": record.payload_location,
        "thumbnail_location": record.thumbnail_location,
        "access_requirements": data["access_requirements"],
        "history": data["history"],
        "ledger_record": data["ledger_record"],
        "previous_ledger_records": data["previous_ledger_records"],
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "published_at": record.published_at,
    }


def _from_row(row: ContentItem) -> ContentRecord:
    return ContentRecord.model_validate({
        "id": row.id,
        "metadata": row.content_metadata,
        "payload_location": row.payload_location,
        "thumbnail_location": row.thumbnail_location,
        "access_requirements": row.access_requirements,
        "module_id": row.module_id,
        "order_in_module": row.order_in_module,
        "status": row.status,
        "history": row.history,
        "ledger_record": row.ledger_record,
        "previous_ledger_records": row.previous_ledger_records,
        "creator_id": row.creator_id,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
        "published_at": row.published_at,
        "version": row.version,
    })


class SqlContentRepository(ContentRepository):
    """PostgreSQL-backed repository. Each call runs in its own short transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, record: ContentRecord) -> ContentRecord:
        async with self._session_factory() as session:
            session.add(ContentItem(**_row_values(record), version=0))
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(f"Content {record.id} already exists", content_id=record.id) from exc
        return record.model_copy(update={"version": 0}, deep=True)

    async def get(self, content_id: str) -> ContentRecord | None:
        async with self._session_factory() as session:
            row = await session.get(ContentItem, content_id)
            return _from_row(row) if row else None

    async def update(self, record: ContentRecord) -> ContentRecord:
        async with self._session_factory() as session:
            result = await session.execute(
                update(ContentItem)
                .where(ContentItem.id == record.id, ContentItem.version == record.version)
                .values(**_row_values(record), version=record.version + 1)
            )
            if result.rowcount == 0:
                existing = await session.get(ContentItem, record.id)
                await session.rollback()
                if existing is None:
                    raise NotFoundError(f"Content {record.id} not found", content_id=record.id)
                raise ConflictError(
                    f"Content {record.id} was modified concurrently",
                    content_id=record.id,
                    expected_version=record.version,
                    actual_version=existing.version,
                )
            await session.commit()
        return record.model_copy(update={"version": record.version + 1}, deep=True)

    async def list(self, content_filter: ContentFilter | None = None) -> list[ContentRecord]:
        query = select(ContentItem)
        if content_filter is not None:
            if content_filter.kind is not None:
                query = query.where(ContentItem.kind == content_filter.kind.value)
            if content_filter.level is not None:
                query = query.where(ContentItem.level == content_filter.level.value)
            if content_filter.age_cohort is not None:
                query = query.where(ContentItem.target_age_cohorts.contains([content_filter.age_cohort.value]))
            if content_filter.module_id is not None:
                query = query.where(ContentItem.module_id == content_filter.module_id)
            if content_filter.status is not None:
                query = query.where(ContentItem.status == content_filter.status.value)
        query = query.order_by(ContentItem.created_at, ContentItem.id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [_from_row(row) for row in result.scalars().all()]
