"""Blob storage collaborator: content-addressed payload storage on IPFS."""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx

from edgate.errors import PermanentServiceError
from edgate.integrations.base import HttpCollaborator

CONTENT_ADDRESS_PREFIX = "ipfs://"


def is_content_addressed(location: str) -> bool:
    return location.startswith(CONTENT_ADDRESS_PREFIX)


def cid_of(address: str) -> str:
    return address.removeprefix(CONTENT_ADDRESS_PREFIX)


class BlobStorage(ABC):
    """Consumed interface of the blob store. Addresses look like ``ipfs://<cid>``."""

    @abstractmethod
    async def upload(self, payload: bytes) -> str:
        ...

    @abstractmethod
    async def resolve(self, address: str) -> str:
        """Retrieval URL for a content address."""
        ...

    @abstractmethod
    async def pin(self, address: str) -> bool:
        """Best-effort durability hint."""
        ...


class IpfsBlobStorage(HttpCollaborator, BlobStorage):
    """Talks to a Kubo node's HTTP RPC API; reads go through a public gateway."""

    service = "blob_storage"

    def __init__(
        self,
        api_url: str,
        gateway_url: str = "https://ipfs.io/ipfs/",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(api_url, timeout, transport=transport)
        self.gateway_url = gateway_url if gateway_url.endswith("/") else f"{gateway_url}/"

    async def upload(self, payload: bytes) -> str:
        body = await self._request(
            "upload",
            "POST",
            "/api/v0/add",
            params={"pin": "false", "cid-version": "1"},
            files={"file": ("payload.json", payload, "application/json")},
        )
        cid = body.get("Hash") if isinstance(body, dict) else None
        if not cid:
            raise PermanentServiceError(
                "blob_storage upload returned no content hash",
                service=self.service,
                operation="upload",
            )
        return f"{CONTENT_ADDRESS_PREFIX}{cid}"

    async def resolve(self, address: str) -> str:
        return f"{self.gateway_url}{cid_of(address)}"

    async def pin(self, address: str) -> bool:
        cid = cid_of(address)
        body = await self._request("pin", "POST", "/api/v0/pin/add", params={"arg": cid})
        return cid in (body.get("Pins") or [])
