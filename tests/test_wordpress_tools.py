"""Tests for WordPress REST publishing."""

import base64

import pytest

from publisher import wordpress_tools
from publisher.wordpress_tools import (
    execute_wordpress_request,
    find_or_create_tag,
    get_wordpress_auth_header,
    get_wordpress_status,
    publish_to_wordpress,
)


@pytest.fixture
def wordpress_configured(monkeypatch):
    monkeypatch.setattr(wordpress_tools, "WORDPRESS_URL", "https://blog.example.com/")
    monkeypatch.setattr(wordpress_tools, "WORDPRESS_USERNAME", "editor")
    monkeypatch.setattr(wordpress_tools, "WORDPRESS_APP_PASSWORD", "abcd efgh ijkl")
    monkeypatch.setattr(wordpress_tools, "WORDPRESS_DEFAULT_AUTHOR_ID", "")


class TestAuthAndStatus:
    def test_auth_header_strips_spaces(self, wordpress_configured):
        """Application passwords are displayed with spaces that must be removed."""
        header = get_wordpress_auth_header()
        assert header.startswith("Basic ")
        assert base64.b64decode(header[6:]).decode() == "editor:abcdefghijkl"

    def test_no_credentials(self, monkeypatch):
        monkeypatch.setattr(wordpress_tools, "WORDPRESS_USERNAME", "")
        assert get_wordpress_auth_header() is None

    def test_status_mapping(self):
        assert get_wordpress_status("published") == "publish"
        assert get_wordpress_status("scheduled") == "future"
        assert get_wordpress_status("archived") == "private"
        assert get_wordpress_status("pending") == "pending"
        assert get_wordpress_status("ready_for_editorial") == "draft"


class TestRequests:
    @pytest.mark.asyncio
    async def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(wordpress_tools, "WORDPRESS_URL", "")
        assert await execute_wordpress_request("posts") == {"error": "WordPress credentials not configured"}

    @pytest.mark.asyncio
    async def test_url_and_error_format(self, fake_http, wordpress_configured):
        fake_http.queue(403, {"code": "rest_forbidden", "message": "Sorry, you are not allowed"})

        result = await execute_wordpress_request("posts", method="POST", data={"title": "x"})

        assert result == {"error": "rest_forbidden: Sorry, you are not allowed"}
        assert fake_http.last["url"] == "https://blog.example.com/wp-json/wp/v2/posts"
        assert fake_http.last["json"] == {"title": "x"}

    @pytest.mark.asyncio
    async def test_invalid_json(self, fake_http, wordpress_configured):
        fake_http.queue(200, ValueError("not json"), text="<html>maintenance</html>")
        result = await execute_wordpress_request("posts")
        assert result["error"].startswith("Invalid JSON response: <html>")

    @pytest.mark.asyncio
    async def test_tag_created_when_missing(self, fake_http, wordpress_configured):
        fake_http.queue(200, [])
        fake_http.queue(201, {"id": 12, "name": "Standing Desk"})

        assert await find_or_create_tag("Standing Desk") == 12
        assert fake_http.calls[0]["params"]["slug"] == "standing-desk"
        # Cached for the rest of the run
        assert await find_or_create_tag("Standing Desk") == 12
        assert len(fake_http.calls) == 2


class TestPublish:
    @pytest.mark.asyncio
    async def test_creates_post(self, fake_http, wordpress_configured):
        """New slugs create a post with rendered HTML and resolved tags."""
        fake_http.queue(200, [{"id": 5}])  # tag lookup
        fake_http.queue(200, [])  # post lookup by slug
        fake_http.queue(201, {"id": 99, "link": "https://blog.example.com/desk-tips/"})

        result = await publish_to_wordpress({
            "title": "Desk Tips",
            "slug": "desk-tips",
            "content": "## Tips\n\nStand up.",
            "meta_description": "Quick tips",
            "tags": ["desk"],
        })

        assert result == {"success": True, "wordpress_post_id": 99, "url": "https://blog.example.com/desk-tips/"}
        post = fake_http.last
        assert post["url"].endswith("/wp-json/wp/v2/posts")
        assert post["json"]["status"] == "publish"
        assert post["json"]["tags"] == [5]
        assert "<h2" in post["json"]["content"]

    @pytest.mark.asyncio
    async def test_updates_existing_slug(self, fake_http, wordpress_configured):
        fake_http.queue(200, [{"id": 42}])
        fake_http.queue(200, {"id": 42, "link": "https://blog.example.com/desk-tips/"})

        result = await publish_to_wordpress({"title": "Desk Tips", "slug": "desk-tips", "content": "x"})

        assert result["wordpress_post_id"] == 42
        assert fake_http.last["url"].endswith("/wp-json/wp/v2/posts/42")

    @pytest.mark.asyncio
    async def test_scheduled_sets_date(self, fake_http, wordpress_configured):
        fake_http.queue(200, [])
        fake_http.queue(201, {"id": 1})

        await publish_to_wordpress(
            {"title": "Later", "slug": "later", "content": "x", "scheduled_date": "2026-07-01T10:00:00"},
            status="scheduled",
        )

        assert fake_http.last["json"]["status"] == "future"
        assert fake_http.last["json"]["date_gmt"] == "2026-07-01T10:00:00"
