"""Shared plumbing for external collaborators.

Transport outcomes are mapped onto the error taxonomy:
- connection never established      -> TransientServiceError (safe to retry)
- HTTP 429 / 5xx                     -> TransientServiceError
- other HTTP 4xx, undecodable body   -> PermanentServiceError
- timeout or failure mid-request     -> OutcomeUnknownError (request may have been applied)
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, TypeVar

import httpx

from edgate.errors import (
    ExternalServiceError,
    OutcomeUnknownError,
    PermanentServiceError,
    TransientServiceError,
)

T = TypeVar("T")


async def call_collaborator(service: str, operation: str, awaitable: Awaitable[T]) -> T:
    """Await a collaborator call, wrapping unexpected exceptions as ExternalServiceError."""
    try:
        return await awaitable
    except ExternalServiceError:
        raise
    except Exception as exc:
        raise ExternalServiceError(
            f"{service} {operation} failed: {exc}",
            service=service,
            operation=operation,
        ) from exc


class HttpCollaborator:
    """Base for httpx-backed collaborator clients."""

    service: str = "external"

    def __init__(
        self,
        base_url: str,
        timeout: float,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=headers or {},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> Any:  # noqa: ANN401
        """Send a request and return the decoded JSON body."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise TransientServiceError(
                f"{self.service} unreachable during {operation}",
                service=self.service,
                operation=operation,
            ) from exc
        except httpx.TransportError as exc:
            raise OutcomeUnknownError(
                f"{self.service} {operation} did not complete: {type(exc).__name__}",
                service=self.service,
                operation=operation,
            ) from exc

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientServiceError(
                f"{self.service} {operation} returned {status}",
                service=self.service,
                operation=operation,
                upstream_status=status,
            )
        if status >= 400:
            raise PermanentServiceError(
                f"{self.service} {operation} rejected with {status}",
                service=self.service,
                operation=operation,
                upstream_status=status,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise PermanentServiceError(
                f"{self.service} {operation} returned an undecodable body",
                service=self.service,
                operation=operation,
            ) from exc
