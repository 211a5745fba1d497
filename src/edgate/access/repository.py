"""Storage for per-(user, content) access records."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgate.access.models import UserAccessRecord
from edgate.db.models import UserContentAccess
from edgate.errors import ConflictError


class AccessRecordRepository(ABC):
    """Keyed by (user_id, content_id)."""

    @abstractmethod
    async def get(self, user_id: str, content_id: str) -> UserAccessRecord | None:
        ...

    @abstractmethod
    async def save(self, record: UserAccessRecord) -> UserAccessRecord:
        """Insert (version 0, key absent) or replace (stored version == record.version).

        Returns the stored copy with the version bumped; raises ConflictError otherwise.
        """
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[UserAccessRecord]:
        ...


class InMemoryAccessRecordRepository(AccessRecordRepository):
    def __init__(self) -> None:
        self._records: dict[tuple[str, str], UserAccessRecord] = {}

    async def get(self, user_id: str, content_id: str) -> UserAccessRecord | None:
        record = self._records.get((user_id, content_id))
        return record.model_copy(deep=True) if record else None

    async def save(self, record: UserAccessRecord) -> UserAccessRecord:
        key = (record.user_id, record.content_id)
        current = self._records.get(key)
        current_version = current.version if current else 0
        if current_version != record.version:
            raise ConflictError(
                f"Access record for user {record.user_id} on {record.content_id} was modified concurrently",
                user_id=record.user_id,
                content_id=record.content_id,
            )
        stored = record.model_copy(update={"version": record.version + 1}, deep=True)
        self._records[key] = stored
        return stored.model_copy(deep=True)

    async def list_for_user(self, user_id: str) -> list[UserAccessRecord]:
        return [r.model_copy(deep=True) for (uid, _), r in self._records.items() if uid == user_id]


def _row_values(record: UserAccessRecord) -> dict[str, Any]:
    values = record.model_dump(exclude={"version"})
    values["completion_status"] = record.completion_status.value
    return values


def _from_row(row: UserContentAccess) -> UserAccessRecord:
    return UserAccessRecord.model_validate(row, from_attributes=True)


class SqlAccessRecordRepository(AccessRecordRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, user_id: str, content_id: str) -> UserAccessRecord | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserContentAccess).where(
                    UserContentAccess.user_id == user_id,
                    UserContentAccess.content_id == content_id,
                )
            )
            row = result.scalar_one_or_none()
            return _from_row(row) if row else None

    async def save(self, record: UserAccessRecord) -> UserAccessRecord:
        conflict = ConflictError(
            f"Access record for user {record.user_id} on {record.content_id} was modified concurrently",
            user_id=record.user_id,
            content_id=record.content_id,
        )
        async with self._session_factory() as session:
            if record.version == 0:
                session.add(UserContentAccess(**_row_values(record), version=1))
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    raise conflict from exc
            else:
                result = await session.execute(
                    update(UserContentAccess)
                    .where(
                        UserContentAccess.user_id == record.user_id,
                        UserContentAccess.content_id == record.content_id,
                        UserContentAccess.version == record.version,
                    )
                    .values(**_row_values(record), version=record.version + 1)
                )
                if result.rowcount == 0:
                    await session.rollback()
                    raise conflict
                await session.commit()
        return record.model_copy(update={"version": record.version + 1}, deep=True)

    async def list_for_user(self, user_id: str) -> list[UserAccessRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserContentAccess)
                .where(UserContentAccess.user_id == user_id)
                .order_by(UserContentAccess.access_granted_at, UserContentAccess.id)
            )
            return [_from_row(row) for row in result.scalars().all()]
