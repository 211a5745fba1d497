"""HTTP API tests: the full lifecycle through the routers and error rendering."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from edgate.errors import TransientServiceError

AUTHOR = {"X-Actor-Id": "author-1", "X-Actor-Role": "author"}
REVIEWER = {"X-Actor-Id": "reviewer-1", "X-Actor-Role": "reviewer"}
ADMIN = {"X-Actor-Id": "admin-1", "X-Actor-Role": "admin"}
LEARNER = {"X-Actor-Id": "learner-1"}


def _create_body(metadata_factory, **overrides):
    body = {
        "metadata": metadata_factory(),
        "payload_location": "https://cdn.example.org/lessons/hash-basics.html",
        "thumbnail_location": "https://cdn.example.org/thumbs/hash-basics.png",
        "module_id": "module-hashing",
    }
    body.update(overrides)
    return body


async def _create(client: AsyncClient, metadata_factory, **overrides) -> dict:
    response = await client.post("/api/v1/content", json=_create_body(metadata_factory, **overrides), headers=AUTHOR)
    assert response.status_code == 201
    return response.json()


async def _publish(client: AsyncClient, metadata_factory, **overrides) -> dict:
    content = await _create(client, metadata_factory, **overrides)
    await client.post(f"/api/v1/content/{content['id']}/submit", headers=AUTHOR)
    await client.post(f"/api/v1/content/{content['id']}/review", json={"approved": True}, headers=REVIEWER)
    response = await client.post(f"/api/v1/content/{content['id']}/publish", headers=ADMIN)
    assert response.status_code == 200
    return response.json()


class TestContentLifecycle:
    """Authoring, review and publication over HTTP."""

    @pytest.mark.asyncio
    async def test_create_returns_draft(self, client: AsyncClient, metadata_factory):
        data = await _create(client, metadata_factory)
        assert data["status"] == "draft"
        assert data["creator_id"] == "author-1"
        assert data["history"] == []
        assert data["ledger_record"] is None

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, client: AsyncClient, metadata_factory, ledger):
        content = await _create(client, metadata_factory)
        content_id = content["id"]

        submitted = await client.post(f"/api/v1/content/{content_id}/submit", headers=AUTHOR)
        assert submitted.json()["status"] == "pending_review"

        sent_back = await client.post(
            f"/api/v1/content/{content_id}/review",
            json={"approved": False, "comments": "Add a worked example"},
            headers=REVIEWER,
        )
        assert sent_back.json()["status"] == "changes_requested"

        await client.post(f"/api/v1/content/{content_id}/submit", headers=AUTHOR)
        approved = await client.post(
            f"/api/v1/content/{content_id}/review", json={"approved": True}, headers=REVIEWER
        )
        assert approved.json()["status"] == "verified"

        published = await client.post(f"/api/v1/content/{content_id}/publish", headers=ADMIN)
        assert published.status_code == 200
        data = published.json()
        assert data["status"] == "published"
        assert data["ledger_record"]["transaction_ref"] == "tx-0001"
        assert data["payload_location"].startswith("ipfs://")
        assert [h["action"] for h in data["history"]] == [
            "submitted",
            "changes_requested",
            "submitted",
            "approved",
            "published",
        ]
        ledger.store_metadata.assert_awaited_once()

        url = await client.get(f"/api/v1/content/{content_id}/payload-url")
        assert url.json()["url"].startswith("https://gateway.test/ipfs/")

    @pytest.mark.asyncio
    async def test_edit_after_publish_returns_to_review(self, client: AsyncClient, metadata_factory):
        content = await _publish(client, metadata_factory)

        response = await client.patch(
            f"/api/v1/content/{content['id']}",
            json={"metadata": {"title": "What is a hash function?"}},
            headers=AUTHOR,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending_review"
        assert data["metadata"]["title"] == "What is a hash function?"
        assert data["ledger_record"] is None
        assert len(data["previous_ledger_records"]) == 1

    @pytest.mark.asyncio
    async def test_reject_needs_comments(self, client: AsyncClient, metadata_factory):
        content = await _create(client, metadata_factory)
        await client.post(f"/api/v1/content/{content['id']}/submit", headers=AUTHOR)

        missing = await client.post(f"/api/v1/content/{content['id']}/reject", json={}, headers=REVIEWER)
        assert missing.status_code == 422

        rejected = await client.post(
            f"/api/v1/content/{content['id']}/reject",
            json={"comments": "Off topic for this module"},
            headers=REVIEWER,
        )
        assert rejected.json()["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_list_filters(self, client: AsyncClient, metadata_factory):
        await _create(client, metadata_factory)
        await _create(
            client,
            metadata_factory,
            metadata=metadata_factory(kind="quiz", level="advanced", target_age_cohorts=["older"]),
        )

        quizzes = await client.get("/api/v1/content", params={"kind": "quiz"})
        assert quizzes.json()["total"] == 1
        young = await client.get("/api/v1/content", params={"age_cohort": "young"})
        assert young.json()["total"] == 1
        drafts = await client.get("/api/v1/content", params={"status": "draft"})
        assert drafts.json()["total"] == 2


class TestErrorResponses:
    """Engine failures come back as JSON with code and retryable."""

    @pytest.mark.asyncio
    async def test_missing_actor_is_401(self, client: AsyncClient, metadata_factory):
        response = await client.post("/api/v1/content", json=_create_body(metadata_factory))
        assert response.status_code == 401
        assert response.json() == {"detail": "Missing X-Actor-Id header"}

    @pytest.mark.asyncio
    async def test_unknown_content_is_404(self, client: AsyncClient):
        response = await client.get("/api/v1/content/does-not-exist")
        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "not_found"
        assert data["retryable"] is False

    @pytest.mark.asyncio
    async def test_invalid_transition_is_409(self, client: AsyncClient, metadata_factory):
        content = await _create(client, metadata_factory)
        response = await client.post(
            f"/api/v1/content/{content['id']}/review", json={"approved": True}, headers=REVIEWER
        )
        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "invalid_transition"
        assert data["current"] == "draft"
        assert data["target"] == "verified"

    @pytest.mark.asyncio
    async def test_publish_unverified_is_412(self, client: AsyncClient, metadata_factory, ledger):
        content = await _create(client, metadata_factory)
        response = await client.post(f"/api/v1/content/{content['id']}/publish", headers=ADMIN)
        assert response.status_code == 412
        assert response.json()["code"] == "precondition_failed"
        ledger.store_metadata.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_cohorts_is_422(self, client: AsyncClient, metadata_factory):
        body = _create_body(metadata_factory, metadata=metadata_factory(target_age_cohorts=[]))
        response = await client.post("/api/v1/content", json=body, headers=AUTHOR)
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_ledger_outage_is_503_and_retryable(self, client: AsyncClient, metadata_factory, ledger):
        content = await _publish(client, metadata_factory)
        ledger.grant_access.side_effect = TransientServiceError(
            "ledger unavailable", service="ledger", operation="grant_access"
        )

        response = await client.post(f"/api/v1/content/{content['id']}/access", headers=LEARNER)

        assert response.status_code == 503
        data = response.json()
        assert data["retryable"] is True
        assert data["service"] == "ledger"
        assert data["operation"] == "grant_access"


class TestLearnerEndpoints:
    """Access checks, progress, feedback and the learner's own records."""

    @pytest.mark.asyncio
    async def test_grant_then_check(self, client: AsyncClient, metadata_factory):
        content = await _publish(client, metadata_factory)
        url = f"/api/v1/content/{content['id']}/access"

        before = await client.get(url, headers=LEARNER)
        assert before.json() == {"user_id": "learner-1", "content_id": content["id"], "granted": False}

        granted = await client.post(url, headers=LEARNER)
        assert granted.status_code == 200
        assert granted.json()["access_granted"] is True

        after = await client.get(url, headers=LEARNER)
        assert after.json()["granted"] is True

    @pytest.mark.asyncio
    async def test_grant_on_behalf_of_learner(self, client: AsyncClient, metadata_factory):
        content = await _publish(client, metadata_factory)
        response = await client.post(
            f"/api/v1/content/{content['id']}/access", json={"user_id": "learner-9"}, headers=ADMIN
        )
        assert response.json()["user_id"] == "learner-9"

    @pytest.mark.asyncio
    async def test_progress_and_records(self, client: AsyncClient, metadata_factory):
        content = await _publish(client, metadata_factory)
        url = f"/api/v1/content/{content['id']}/progress"

        partial = await client.post(url, json={"progress": 42.6}, headers=LEARNER)
        assert partial.json()["progress"] == 43
        assert partial.json()["completion_status"] == "in_progress"

        done = await client.post(url, json={"progress": 130, "score": 9}, headers=LEARNER)
        data = done.json()
        assert data["progress"] == 100
        assert data["completion_status"] == "completed"
        assert data["completion_recorded"] is True

        mine = await client.get("/api/v1/learners/me/access", headers=LEARNER)
        assert mine.json()["total"] == 1
        single = await client.get(f"/api/v1/learners/me/access/{content['id']}", headers=LEARNER)
        assert single.json()["progress"] == 100

        other = await client.get(f"/api/v1/learners/me/access/{content['id']}", headers={"X-Actor-Id": "learner-2"})
        assert other.status_code == 404

    @pytest.mark.asyncio
    async def test_completion_retry_endpoint(self, client: AsyncClient, metadata_factory, ledger):
        content = await _publish(client, metadata_factory)
        ledger.record_completion.return_value = False
        await client.post(f"/api/v1/content/{content['id']}/progress", json={"progress": 100}, headers=LEARNER)

        ledger.record_completion.return_value = True
        response = await client.post(f"/api/v1/content/{content['id']}/progress/completion", headers=LEARNER)

        assert response.status_code == 200
        assert response.json()["completion_recorded"] is True

    @pytest.mark.asyncio
    async def test_feedback(self, client: AsyncClient, metadata_factory):
        content = await _publish(client, metadata_factory)
        url = f"/api/v1/content/{content['id']}/feedback"

        created = await client.post(url, json={"rating": 7, "comment": "Loved the fruit"}, headers=LEARNER)
        assert created.status_code == 201
        assert created.json()["rating"] == 5

        await client.post(url, json={"rating": 2}, headers={"X-Actor-Id": "learner-2"})
        listed = await client.get(url)
        assert listed.json()["total"] == 2
        assert [f["rating"] for f in listed.json()["items"]] == [5, 2]

    @pytest.mark.asyncio
    async def test_feedback_for_unknown_content(self, client: AsyncClient):
        response = await client.post("/api/v1/content/nope/feedback", json={"rating": 3}, headers=LEARNER)
        assert response.status_code == 404
