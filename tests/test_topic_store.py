"""Tests for the topics queue."""

import json

import pytest

from publisher.topic_store import (
    build_topic_row,
    claim_next_topic,
    complete_topic,
    create_topic,
    get_topic_queue_status,
    list_topics,
    reject_topic,
    release_topic,
    update_topic,
)


class TestTopicRows:
    def test_defaults(self):
        """Style preferences fall back to the configured defaults."""
        row = build_topic_row(" Cable management ", keywords="cables, desk")
        assert row["topic_title"] == "Cable management"
        assert json.loads(row["keywords"]) == ["cables", "desk"]
        assert row["style_preferences"] == {"tone": "professional", "length": "medium", "template": "article"}
        assert row["status"] == "pending"
        assert row["priority_score"] == 0

    def test_optional_fields(self):
        row = build_topic_row("x", target_audience="remote workers", industry="furniture", notes="seasonal")
        assert row["style_preferences"]["target_audience"] == "remote workers"
        assert row["style_preferences"]["notes"] == "seasonal"
        assert row["industry"] == "furniture"


class TestTopicCrud:
    @pytest.mark.asyncio
    async def test_create(self, fake_http):
        fake_http.queue(201, [{"id": "t1", "topic_title": "Desk"}])
        result = await create_topic("Desk", tone="casual")
        assert result == {"success": True, "topic": {"id": "t1", "topic_title": "Desk"}}
        assert fake_http.last["json"]["style_preferences"]["tone"] == "casual"

    @pytest.mark.asyncio
    async def test_create_requires_title(self, fake_http):
        assert (await create_topic(""))["success"] is False
        assert fake_http.calls == []

    @pytest.mark.asyncio
    async def test_list_filters(self, fake_http):
        fake_http.queue(200, [])
        await list_topics(status="pending", priority_min=3)
        params = dict(fake_http.last["params"])
        assert params["status"] == "eq.pending"
        assert params["priority_score"] == "gte.3"

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_status(self, fake_http):
        assert await update_topic("t1", {"status": "done"}) is False
        assert fake_http.calls == []


class TestQueue:
    @pytest.mark.asyncio
    async def test_claim_next(self, fake_http):
        """The top pending topic is patched to in_progress only if still pending."""
        fake_http.queue(200, [{"id": "t1", "status": "pending"}])
        fake_http.queue(200, [{"id": "t1", "status": "in_progress"}])

        topic = await claim_next_topic()

        assert topic == {"id": "t1", "status": "in_progress"}
        assert "order=priority_score.desc,created_at.asc" in fake_http.calls[0]["url"]
        assert "status=eq.pending" in fake_http.last["url"]
        assert fake_http.last["json"] == {"status": "in_progress"}

    @pytest.mark.asyncio
    async def test_claim_lost_race(self, fake_http):
        """An empty PATCH result means another run claimed it first."""
        fake_http.queue(200, [{"id": "t1", "status": "pending"}])
        fake_http.queue(200, [])
        assert await claim_next_topic() is None

    @pytest.mark.asyncio
    async def test_claim_empty_queue(self, fake_http):
        fake_http.queue(200, [])
        assert await claim_next_topic() is None

    @pytest.mark.asyncio
    async def test_complete(self, fake_http):
        fake_http.queue(204)
        assert await complete_topic("t1") is True
        assert fake_http.last["json"]["status"] == "completed"
        assert "used_at" in fake_http.last["json"]

    @pytest.mark.asyncio
    async def test_reject_keeps_reason(self, fake_http):
        fake_http.queue(200, [{"id": "t1", "style_preferences": {"tone": "casual"}}])
        fake_http.queue(204)

        assert await reject_topic("t1", "off brand") is True
        assert fake_http.last["json"] == {
            "status": "rejected",
            "style_preferences": {"tone": "casual", "notes": "off brand"},
        }

    @pytest.mark.asyncio
    async def test_release(self, fake_http):
        fake_http.queue(204)
        assert await release_topic("t1") is True
        assert fake_http.last["json"] == {"status": "pending"}

    @pytest.mark.asyncio
    async def test_queue_status(self, fake_http):
        fake_http.queue(200, [{"status": "pending"}, {"status": "pending"}, {"status": "completed"}])
        status = await get_topic_queue_status()
        assert status["pending"] == 2
        assert status["completed"] == 1
        assert status["in_progress"] == 0
        assert status["total"] == 3
