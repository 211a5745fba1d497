"""Access control evaluator: explicit grants, prerequisite clauses, ledger fallback."""

from __future__ import annotations

import math
from datetime import datetime, timezone

import structlog

from edgate.access.models import CompletionStatus, LearnerProfile, UserAccessRecord
from edgate.access.profiles import ProfileDirectory
from edgate.access.repository import AccessRecordRepository
from edgate.content.models import (
    AccessRequirement,
    AgeCohortRequirement,
    BadgeRequirement,
    ContentFilter,
    ContentRecord,
    ModuleCompletionRequirement,
    ModuleProgressRequirement,
    VerificationStatus,
)
from edgate.content.repository import ContentRepository
from edgate.errors import ExternalServiceError, NotFoundError, PermanentServiceError
from edgate.integrations.base import call_collaborator
from edgate.integrations.ledger import LedgerClient
from edgate.locks import KeyedLock, access_key

logger = structlog.get_logger()


class LearnerStateResolver:
    """Lazily loads and caches one learner's state for a single evaluation."""

    def __init__(
        self,
        user_id: str,
        content: ContentRepository,
        access: AccessRecordRepository,
        profiles: ProfileDirectory,
    ) -> None:
        self.user_id = user_id
        self._content = content
        self._access = access
        self._profiles = profiles
        self._profile: LearnerProfile | None = None
        self._modules: dict[str, list[UserAccessRecord | None]] = {}

    async def profile(self) -> LearnerProfile:
        if self._profile is None:
            self._profile = await call_collaborator(
                "profiles", "get_profile", self._profiles.get_profile(self.user_id)
            )
        return self._profile

    async def _module_records(self, module_id: str) -> list[UserAccessRecord | None]:
        """One slot per published item in the module; None where the learner has no record."""
        if module_id not in self._modules:
            published = await self._content.list(
                ContentFilter(module_id=module_id, status=VerificationStatus.PUBLISHED)
            )
            self._modules[module_id] = [
                await self._access.get(self.user_id, item.id) for item in published
            ]
        return self._modules[module_id]

    async def module_completed(self, module_id: str) -> bool:
        records = await self._module_records(module_id)
        if not records:
            return False
        return all(
            r is not None and r.completion_status == CompletionStatus.COMPLETED for r in records
        )

    async def module_progress(self, module_id: str) -> int:
        records = await self._module_records(module_id)
        if not records:
            return 0
        mean = sum(r.progress if r is not None else 0 for r in records) / len(records)
        return int(math.floor(mean + 0.5))

    async def satisfies(self, requirement: AccessRequirement) -> bool:
        if isinstance(requirement, BadgeRequirement):
            return requirement.badge_id in (await self.profile()).badges
        if isinstance(requirement, AgeCohortRequirement):
            return (await self.profile()).age_cohort == requirement.age_cohort
        if isinstance(requirement, ModuleCompletionRequirement):
            return await self.module_completed(requirement.module_id)
        if isinstance(requirement, ModuleProgressRequirement):
            return await self.module_progress(requirement.module_id) >= requirement.threshold
        raise TypeError(f"Unsupported access requirement: {requirement!r}")


class AccessEvaluator:
    """Decides whether a learner may open a content item, and records grants."""

    def __init__(
        self,
        content: ContentRepository,
        access: AccessRecordRepository,
        ledger: LedgerClient,
        profiles: ProfileDirectory,
        locks: KeyedLock,
    ) -> None:
        self._content = content
        self._access = access
        self._ledger = ledger
        self._profiles = profiles
        self._locks = locks

    async def _require_content(self, content_id: str) -> ContentRecord:
        record = await self._content.get(content_id)
        if record is None:
            raise NotFoundError(f"Content {content_id} not found", content_id=content_id)
        return record

    async def check_access(self, user_id: str, content_id: str) -> bool:
        """Short-circuiting decision: explicit grant, then requirements, then the ledger.

        An empty requirement list is "no prerequisite" and falls through to
        the ledger. The ledger's answer is returned as-is and never cached
        into the local record.
        """
        content = await self._require_content(content_id)

        record = await self._access.get(user_id, content_id)
        if record is not None and record.access_granted:
            return True

        if content.access_requirements and await self.requirements_met(
            user_id, content.access_requirements
        ):
            return True

        return await call_collaborator(
            "ledger", "check_access", self._ledger.check_access(user_id, content_id)
        )

    async def requirements_met(self, user_id: str, requirements: list[AccessRequirement]) -> bool:
        """AND over all clauses. Stops at the first unmet clause."""
        state = LearnerStateResolver(user_id, self._content, self._access, self._profiles)
        for requirement in requirements:
            if not await state.satisfies(requirement):
                logger.debug("access_requirement_unmet", user_id=user_id, requirement=requirement.type)
                return False
        return True

    async def grant_access(self, user_id: str, content_id: str) -> UserAccessRecord:
        """Register the grant on the ledger, then mirror it locally.

        The local flag never outruns the ledger: if the ledger call fails or
        declines, nothing is written. Repeat grants keep the first timestamp.
        """
        await self._require_content(content_id)

        async with self._locks.hold(access_key(user_id, content_id)):
            record = await self._access.get(user_id, content_id)
            if record is not None and record.access_granted:
                return record

            try:
                granted = await call_collaborator(
                    "ledger", "grant_access", self._ledger.grant_access(user_id, content_id)
                )
            except ExternalServiceError as exc:
                logger.warning(
                    "access_grant_failed",
                    user_id=user_id,
                    content_id=content_id,
                    retryable=exc.retryable,
                    error=exc.message,
                )
                raise
            if not granted:
                logger.warning("access_grant_declined", user_id=user_id, content_id=content_id)
                raise PermanentServiceError(
                    "Ledger declined the access grant",
                    service="ledger",
                    operation="grant_access",
                )

            now = datetime.now(timezone.utc)
            if record is None:
                record = UserAccessRecord(
                    user_id=user_id,
                    content_id=content_id,
                    access_granted=True,
                    access_granted_at=now,
                )
            else:
                record = record.model_copy(
                    update={
                        "access_granted": True,
                        "access_granted_at": record.access_granted_at or now,
                    }
                )
            saved = await self._access.save(record)

        logger.info("access_granted", user_id=user_id, content_id=content_id)
        return saved

    async def get_access_record(self, user_id: str, content_id: str) -> UserAccessRecord:
        record = await self._access.get(user_id, content_id)
        if record is None:
            raise NotFoundError(
                f"No access record for user {user_id} on content {content_id}",
                user_id=user_id,
                content_id=content_id,
            )
        return record

    async def list_user_access(self, user_id: str) -> list[UserAccessRecord]:
        return await self._access.list_for_user(user_id)
