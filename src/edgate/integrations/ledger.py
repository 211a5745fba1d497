"""Access ledger collaborator: on-chain content metadata, grants and completions.

The ledger is a trust anchor reached over a narrow HTTP interface. Signing,
transaction building and consensus all live on the other side of it.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel

from edgate.content.models import ContentKind, ContentRecord, VerificationAction
from edgate.errors import PermanentServiceError
from edgate.integrations.base import HttpCollaborator

# CIP-25 NFT metadata label
CONTENT_METADATA_LABEL = 721
CONTENT_POLICY_ID = "edgate-content-policy"
ONCHAIN_METADATA_VERSION = "1.0"

_MEDIA_TYPES: dict[ContentKind, str] = {
    ContentKind.VIDEO: "video/mp4",
    ContentKind.LESSON: "text/html",
    ContentKind.QUIZ: "application/json",
    ContentKind.GAME: "application/html",
    ContentKind.SIMULATION: "application/html",
    ContentKind.ACTIVITY: "application/html",
}


class LedgerReceipt(BaseModel):
    transaction_ref: str
    timestamp: datetime
    block_height: int | None = None


class LedgerClient(ABC):
    """Consumed interface of the access ledger."""

    @abstractmethod
    async def store_metadata(self, content_id: str, metadata: dict[str, Any]) -> LedgerReceipt:
        ...

    @abstractmethod
    async def check_access(self, user_id: str, content_id: str) -> bool:
        ...

    @abstractmethod
    async def grant_access(self, user_id: str, content_id: str) -> bool:
        ...

    @abstractmethod
    async def record_completion(self, user_id: str, content_id: str) -> bool:
        ...


def media_type_for(kind: ContentKind) -> str:
    return _MEDIA_TYPES.get(kind, "application/json")


def build_onchain_metadata(record: ContentRecord, payload_address: str) -> dict[str, Any]:
    """Subset of the record that is small enough to live on-chain."""
    metadata = record.metadata
    reviewers = sorted({
        d.reviewer_id for d in record.history if d.action == VerificationAction.APPROVED
    })
    return {
        "name": metadata.title,
        "description": metadata.description,
        "type": metadata.kind.value,
        "level": metadata.level.value,
        "targetAgeGroups": [c.value for c in metadata.target_age_cohorts],
        "learningObjectives": list(metadata.learning_objectives),
        "topics": list(metadata.topics),
        "verified": True,
        "verifiers": reviewers,
        "files": [
            {
                "name": "content",
                "mediaType": media_type_for(metadata.kind),
                "src": payload_address,
            }
        ],
        "version": ONCHAIN_METADATA_VERSION,
        "createdAt": record.created_at.isoformat(),
    }


def encode_onchain_metadata(metadata: dict[str, Any]) -> str:
    return json.dumps(metadata, sort_keys=True, separators=(",", ":"))


class HttpLedgerClient(HttpCollaborator, LedgerClient):
    """JSON/HTTP client for the ledger gateway."""

    service = "ledger"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        super().__init__(base_url, timeout, headers=headers, transport=transport)

    async def store_metadata(self, content_id: str, metadata: dict[str, Any]) -> LedgerReceipt:
        body = await self._request(
            "store_metadata",
            "POST",
            "/v1/metadata",
            json={
                "content_id": content_id,
                "label": CONTENT_METADATA_LABEL,
                "policy_id": CONTENT_POLICY_ID,
                "metadata": metadata,
            },
        )
        try:
            return LedgerReceipt.model_validate(body)
        except ValueError as exc:
            raise PermanentServiceError(
                "ledger store_metadata returned a malformed receipt",
                service=self.service,
                operation="store_metadata",
            ) from exc

    async def check_access(self, user_id: str, content_id: str) -> bool:
        body = await self._request("check_access", "GET", f"/v1/access/{user_id}/{content_id}")
        return bool(body.get("granted", False))

    async def grant_access(self, user_id: str, content_id: str) -> bool:
        body = await self._request(
            "grant_access",
            "POST",
            "/v1/access",
            json={"user_id": user_id, "content_id": content_id},
        )
        return bool(body.get("granted", False))

    async def record_completion(self, user_id: str, content_id: str) -> bool:
        body = await self._request(
            "record_completion",
            "POST",
            "/v1/completions",
            json={"user_id": user_id, "content_id": content_id},
        )
        return bool(body.get("recorded", False))
