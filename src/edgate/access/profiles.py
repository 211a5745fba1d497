"""Learner profile directory: badges and age cohort used by requirement checks."""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx

from edgate.access.models import LearnerProfile
from edgate.content.models import AgeCohort
from edgate.errors import PermanentServiceError
from edgate.integrations.base import HttpCollaborator


class ProfileDirectory(ABC):
    """Read-only source of learner state owned by another service."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> LearnerProfile:
        """Unknown learners get an empty profile rather than an error."""
        ...


class InMemoryProfileDirectory(ProfileDirectory):
    """Dictionary-backed directory for development and tests."""

    def __init__(self, profiles: dict[str, LearnerProfile] | None = None) -> None:
        self._profiles: dict[str, LearnerProfile] = dict(profiles or {})

    def set_profile(
        self,
        user_id: str,
        badges: set[str] | frozenset[str] = frozenset(),
        age_cohort: AgeCohort | None = None,
    ) -> LearnerProfile:
        profile = LearnerProfile(user_id=user_id, badges=frozenset(badges), age_cohort=age_cohort)
        self._profiles[user_id] = profile
        return profile

    async def get_profile(self, user_id: str) -> LearnerProfile:
        return self._profiles.get(user_id) or LearnerProfile(user_id=user_id)


class HttpProfileDirectory(HttpCollaborator, ProfileDirectory):
    """Fetches ``GET /users/{id}/learner-profile`` from the profile service."""

    service = "profiles"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(base_url, timeout, transport=transport)

    async def get_profile(self, user_id: str) -> LearnerProfile:
        try:
            body = await self._request("get_profile", "GET", f"/users/{user_id}/learner-profile")
        except PermanentServiceError as exc:
            if exc.details.get("upstream_status") == 404:
                return LearnerProfile(user_id=user_id)
            raise
        try:
            return LearnerProfile(
                user_id=user_id,
                badges=frozenset(body.get("badges") or []),
                age_cohort=body.get("age_cohort"),
            )
        except (AttributeError, ValueError) as exc:
            raise PermanentServiceError(
                "profiles get_profile returned a malformed profile",
                service=self.service,
                operation="get_profile",
            ) from exc
