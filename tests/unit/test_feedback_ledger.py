"""Feedback ledger tests."""

from __future__ import annotations

import pytest

from edgate.errors import NotFoundError, ValidationError


class TestAddFeedback:
    @pytest.mark.asyncio
    async def test_feedback_is_appended(self, engine, make_content):
        record = await make_content()
        feedback = await engine.feedback.add_feedback("learner-1", record.id, 4, "Loved the fruit example")
        assert feedback.rating == 4
        assert feedback.comment == "Loved the fruit example"
        assert feedback.content_id == record.id

    @pytest.mark.parametrize(("rating", "stored"), [(9, 5), (0, 1), (-3, 1), (3.6, 4)])
    @pytest.mark.asyncio
    async def test_rating_is_clamped(self, engine, make_content, rating, stored):
        record = await make_content()
        feedback = await engine.feedback.add_feedback("learner-1", record.id, rating)
        assert feedback.rating == stored

    @pytest.mark.asyncio
    async def test_non_numeric_rating_rejected(self, engine, make_content):
        record = await make_content()
        with pytest.raises(ValidationError):
            await engine.feedback.add_feedback("learner-1", record.id, "five")

    @pytest.mark.asyncio
    async def test_unknown_content(self, engine):
        with pytest.raises(NotFoundError):
            await engine.feedback.add_feedback("learner-1", "missing", 5)


class TestListFeedback:
    @pytest.mark.asyncio
    async def test_insertion_order(self, engine, make_content):
        record = await make_content()
        other = await make_content(order_in_module=1)
        for user, rating in [("learner-1", 5), ("learner-2", 2), ("learner-3", 4)]:
            await engine.feedback.add_feedback(user, record.id, rating)
        await engine.feedback.add_feedback("learner-1", other.id, 1)

        listed = await engine.feedback.list_feedback(record.id)
        assert [f.user_id for f in listed] == ["learner-1", "learner-2", "learner-3"]
        assert [f.rating for f in listed] == [5, 2, 4]

    @pytest.mark.asyncio
    async def test_no_feedback_yet(self, engine, make_content):
        record = await make_content()
        assert await engine.feedback.list_feedback(record.id) == []
