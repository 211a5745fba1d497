"""HTTP collaborator client tests against httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from edgate.access.profiles import HttpProfileDirectory
from edgate.content.models import AgeCohort
from edgate.errors import OutcomeUnknownError, PermanentServiceError, TransientServiceError
from edgate.integrations.blob_storage import IpfsBlobStorage
from edgate.integrations.ledger import CONTENT_METADATA_LABEL, HttpLedgerClient

RECEIPT = {"transaction_ref": "tx-abc", "timestamp": "2026-10-01T12:00:00Z", "block_height": 77}


def _ledger(handler) -> HttpLedgerClient:
    return HttpLedgerClient("http://ledger.test", api_key="secret", transport=httpx.MockTransport(handler))


class TestHttpLedgerClient:
    """Request shape and error mapping."""

    @pytest.mark.asyncio
    async def test_store_metadata(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=RECEIPT)

        client = _ledger(handler)
        receipt = await client.store_metadata("content-1", {"name": "Hashes"})
        await client.aclose()

        assert receipt.transaction_ref == "tx-abc"
        assert receipt.block_height == 77
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/metadata"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["content_id"] == "content-1"
        assert body["label"] == CONTENT_METADATA_LABEL
        assert body["metadata"] == {"name": "Hashes"}

    @pytest.mark.asyncio
    async def test_malformed_receipt_is_permanent(self):
        client = _ledger(lambda request: httpx.Response(200, json={"ok": True}))
        with pytest.raises(PermanentServiceError) as exc_info:
            await client.store_metadata("content-1", {})
        assert exc_info.value.operation == "store_metadata"

    @pytest.mark.parametrize("status", [429, 500, 503])
    @pytest.mark.asyncio
    async def test_overload_and_server_errors_are_transient(self, status):
        client = _ledger(lambda request: httpx.Response(status, json={"error": "busy"}))
        with pytest.raises(TransientServiceError) as exc_info:
            await client.grant_access("u1", "c1")
        assert exc_info.value.retryable is True
        assert exc_info.value.details["upstream_status"] == status
        assert exc_info.value.service == "ledger"

    @pytest.mark.parametrize("status", [400, 403, 404, 422])
    @pytest.mark.asyncio
    async def test_client_errors_are_permanent(self, status):
        client = _ledger(lambda request: httpx.Response(status, json={"error": "no"}))
        with pytest.raises(PermanentServiceError) as exc_info:
            await client.grant_access("u1", "c1")
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_connect_error_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientServiceError):
            await _ledger(handler).check_access("u1", "c1")

    @pytest.mark.asyncio
    async def test_read_timeout_is_outcome_unknown(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(OutcomeUnknownError) as exc_info:
            await _ledger(handler).grant_access("u1", "c1")
        assert exc_info.value.retryable is False
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_undecodable_body_is_permanent(self):
        client = _ledger(lambda request: httpx.Response(200, content=b"<html>gateway</html>"))
        with pytest.raises(PermanentServiceError):
            await client.check_access("u1", "c1")

    @pytest.mark.asyncio
    async def test_access_and_completion_calls(self):
        calls: list[tuple[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, request.url.path))
            if request.url.path == "/v1/completions":
                return httpx.Response(200, json={"recorded": True})
            return httpx.Response(200, json={"granted": True})

        client = _ledger(handler)
        assert await client.check_access("u1", "c1") is True
        assert await client.grant_access("u1", "c1") is True
        assert await client.record_completion("u1", "c1") is True
        assert calls == [
            ("GET", "/v1/access/u1/c1"),
            ("POST", "/v1/access"),
            ("POST", "/v1/completions"),
        ]


class TestIpfsBlobStorage:
    @pytest.mark.asyncio
    async def test_upload_returns_content_address(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"Name": "payload.json", "Hash": "bafyabc", "Size": "12"})

        storage = IpfsBlobStorage("http://ipfs.test:5001", transport=httpx.MockTransport(handler))
        address = await storage.upload(b'{"id": "c1"}')

        assert address == "ipfs://bafyabc"
        assert seen[0].url.path == "/api/v0/add"
        assert seen[0].url.params["cid-version"] == "1"
        assert b'{"id": "c1"}' in seen[0].content

    @pytest.mark.asyncio
    async def test_upload_without_hash_is_permanent(self):
        storage = IpfsBlobStorage(
            "http://ipfs.test:5001", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        )
        with pytest.raises(PermanentServiceError):
            await storage.upload(b"{}")

    @pytest.mark.asyncio
    async def test_pin(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["arg"] == "bafyabc"
            return httpx.Response(200, json={"Pins": ["bafyabc"]})

        storage = IpfsBlobStorage("http://ipfs.test:5001", transport=httpx.MockTransport(handler))
        assert await storage.pin("ipfs://bafyabc") is True

    @pytest.mark.asyncio
    async def test_resolve_uses_gateway(self):
        storage = IpfsBlobStorage("http://ipfs.test:5001", gateway_url="https://gw.example.org/ipfs")
        assert await storage.resolve("ipfs://bafyabc") == "https://gw.example.org/ipfs/bafyabc"
        await storage.aclose()


class TestHttpProfileDirectory:
    @pytest.mark.asyncio
    async def test_get_profile(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/users/learner-1/learner-profile"
            return httpx.Response(200, json={"badges": ["hash-hero"], "age_cohort": "older"})

        directory = HttpProfileDirectory("http://profiles.test", transport=httpx.MockTransport(handler))
        profile = await directory.get_profile("learner-1")

        assert profile.badges == frozenset({"hash-hero"})
        assert profile.age_cohort == AgeCohort.OLDER

    @pytest.mark.asyncio
    async def test_malformed_profile_is_permanent(self):
        directory = HttpProfileDirectory(
            "http://profiles.test",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"age_cohort": "toddler"})),
        )
        with pytest.raises(PermanentServiceError):
            await directory.get_profile("learner-1")

    @pytest.mark.asyncio
    async def test_unknown_learner_gets_empty_profile(self):
        directory = HttpProfileDirectory(
            "http://profiles.test",
            transport=httpx.MockTransport(lambda r: httpx.Response(404, json={"detail": "not found"})),
        )
        profile = await directory.get_profile("learner-9")
        assert profile.badges == frozenset()
        assert profile.age_cohort is None
