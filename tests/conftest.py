"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from edgate.access.profiles import InMemoryProfileDirectory
from edgate.content.models import ContentRecord
from edgate.engine import Engine, build_engine
from edgate.integrations.blob_storage import BlobStorage
from edgate.integrations.ledger import LedgerClient, LedgerReceipt
from edgate.main import create_app

UPLOADED_ADDRESS = "ipfs://bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"

ContentFactory = Callable[..., Awaitable[ContentRecord]]


def content_metadata(**overrides: Any) -> dict[str, Any]:  # noqa: ANN401
    """Valid metadata payload for a beginner lesson."""
    metadata: dict[str, Any] = {
        "title": "What is a hash?",
        "description": "Fingerprints for data, explained with fruit.",
        "kind": "lesson",
        "level": "beginner",
        "target_age_cohorts": ["young", "middle"],
        "keywords": ["hash", "fingerprint"],
        "learning_objectives": ["Explain what a hash function does"],
        "topics": ["cryptography"],
        "estimated_minutes": 10,
    }
    metadata.update(overrides)
    return metadata


@pytest.fixture
def ledger() -> AsyncMock:
    """Ledger collaborator that succeeds unless a test says otherwise."""
    mock = AsyncMock(spec=LedgerClient)
    mock.store_metadata.return_value = LedgerReceipt(
        transaction_ref="tx-0001",
        timestamp=datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
        block_height=1042,
    )
    mock.check_access.return_value = False
    mock.grant_access.return_value = True
    mock.record_completion.return_value = True
    return mock


@pytest.fixture
def blobs() -> AsyncMock:
    """Blob storage collaborator that succeeds unless a test says otherwise."""
    mock = AsyncMock(spec=BlobStorage)
    mock.upload.return_value = UPLOADED_ADDRESS
    mock.pin.return_value = True
    mock.resolve.side_effect = lambda address: f"https://gateway.test/ipfs/{address.removeprefix('ipfs://')}"
    return mock


@pytest.fixture
def profiles() -> InMemoryProfileDirectory:
    return InMemoryProfileDirectory()


@pytest.fixture
def engine(ledger: AsyncMock, blobs: AsyncMock, profiles: InMemoryProfileDirectory) -> Engine:
    """In-memory engine wired to the mocked collaborators."""
    return build_engine(ledger=ledger, blobs=blobs, profiles=profiles)


@pytest.fixture
def make_content(engine: Engine) -> ContentFactory:
    """Create a draft; keyword arguments override the defaults passed to create()."""

    async def _make(**overrides: Any) -> ContentRecord:  # noqa: ANN401
        kwargs: dict[str, Any] = {
            "metadata": content_metadata(),
            "payload_location": "https://cdn.example.org/lessons/hash-basics.html",
            "thumbnail_location": "https://cdn.example.org/thumbs/hash-basics.png",
            "requirements": [],
            "module_id": "module-hashing",
            "order_in_module": 0,
            "creator_id": "author-1",
        }
        kwargs.update(overrides)
        return await engine.verification.create(**kwargs)

    return _make


@pytest.fixture
def make_verified(engine: Engine, make_content: ContentFactory) -> ContentFactory:
    """Create content and take it through one approving review."""

    async def _make(**overrides: Any) -> ContentRecord:  # noqa: ANN401
        record = await make_content(**overrides)
        await engine.verification.submit_for_review(record.id)
        return await engine.verification.record_decision(record.id, "reviewer-1", approved=True)

    return _make


@pytest.fixture
def make_published(engine: Engine, make_verified: ContentFactory) -> ContentFactory:
    """Create content and publish it."""

    async def _make(**overrides: Any) -> ContentRecord:  # noqa: ANN401
        record = await make_verified(**overrides)
        return await engine.verification.publish(record.id, publisher_id="admin-1")

    return _make


@pytest_asyncio.fixture
async def client(engine: Engine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app that uses the in-memory engine."""
    app = create_app(engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def metadata_factory() -> Callable[..., dict[str, Any]]:
    return content_metadata
