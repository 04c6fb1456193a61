"""Tests for multi-platform publishing."""

from unittest.mock import AsyncMock, patch

import jwt
import pytest

from publisher import blog_integration as integration
from publisher.blog_integration import (
    BlogIntegrationService,
    create_ghost_token,
    get_platform,
    get_platforms,
)


GHOST_KEY_ID = "6489a1b2c3d4e5f6a7b8c9d0"
GHOST_SECRET = "a1b2c3d4e5f60718293a4b5c6d7e8f90a1b2c3d4e5f60718293a4b5c6d7e8f90"

CONTENT = {
    "title": "Desk Tips",
    "slug": "desk-tips",
    "meta_description": "Quick tips",
    "tags": ["desk", "office", "ergonomics", "posture", "home", "standing"],
    "content": "## Tips\n\nStand up more.",
}


@pytest.fixture
def service():
    return BlogIntegrationService()


class TestPlatforms:
    def test_package_keeps_module_attribute(self):
        """The package re-exports the service class, not the shared instance."""
        import publisher
        assert publisher.blog_integration is integration
        assert hasattr(integration, "GHOST_URL")

    def test_registry(self):
        ids = [p["id"] for p in get_platforms()]
        assert sorted(ids) == ["ghost", "medium", "shopify", "webflow", "wordpress"]
        assert get_platform("ghost")["api_endpoint"] == "/ghost/api/admin/posts/"
        assert get_platform("blogger") is None

    @pytest.mark.asyncio
    async def test_unsupported_platform(self, service):
        result = await service.publish("blogger", CONTENT)
        assert result == {"success": False, "platform_id": "blogger", "error": "Unsupported platform: blogger"}


class TestGhost:
    def test_token_claims(self):
        """Tokens are HS256, carry the key id and target the admin API."""
        token = create_ghost_token(f"{GHOST_KEY_ID}:{GHOST_SECRET}")

        assert jwt.get_unverified_header(token)["kid"] == GHOST_KEY_ID
        claims = jwt.decode(token, bytes.fromhex(GHOST_SECRET), algorithms=["HS256"], audience="/admin/")
        assert claims["exp"] - claims["iat"] == 300

    def test_bad_key_format(self):
        with pytest.raises(ValueError):
            create_ghost_token("no-separator")

    @pytest.mark.asyncio
    async def test_publish(self, fake_http, service, monkeypatch):
        monkeypatch.setattr(integration, "GHOST_URL", "https://ghost.example.com/")
        monkeypatch.setattr(integration, "GHOST_ADMIN_API_KEY", f"{GHOST_KEY_ID}:{GHOST_SECRET}")
        fake_http.queue(201, {"posts": [{"url": "https://ghost.example.com/desk-tips/"}]})

        result = await service.publish("ghost", CONTENT)

        assert result == {"success": True, "platform_id": "ghost", "url": "https://ghost.example.com/desk-tips/"}
        call = fake_http.last
        assert call["url"] == "https://ghost.example.com/ghost/api/admin/posts/?source=html"
        assert call["headers"]["Authorization"].startswith("Ghost ")
        post = call["json"]["posts"][0]
        assert post["status"] == "published"
        assert post["tags"][0] == {"name": "desk"}
        assert "<h2" in post["html"]

    @pytest.mark.asyncio
    async def test_not_configured(self, service, monkeypatch):
        monkeypatch.setattr(integration, "GHOST_URL", "")
        result = await service.publish_to_ghost(CONTENT)
        assert result["error"] == "Ghost credentials not configured"


class TestMedium:
    @pytest.mark.asyncio
    async def test_publish(self, fake_http, service, monkeypatch):
        """Medium gets Markdown with the title heading and at most five tags."""
        monkeypatch.setattr(integration, "MEDIUM_TOKEN", "med-token")
        monkeypatch.setattr(integration, "MEDIUM_AUTHOR_ID", "user-1")
        monkeypatch.setattr(integration, "MEDIUM_PUBLISH_STATUS", "public")
        fake_http.queue(201, {"data": {"url": "https://medium.com/@me/desk-tips"}})

        result = await service.publish("medium", CONTENT)

        assert result["success"] is True
        assert result["url"] == "https://medium.com/@me/desk-tips"
        call = fake_http.last
        assert call["url"] == "https://api.medium.com/v1/users/user-1/posts"
        assert call["json"]["content"].startswith("# Desk Tips\n\n")
        assert call["json"]["contentFormat"] == "markdown"
        assert len(call["json"]["tags"]) == 5
        assert call["json"]["publishStatus"] == "public"

    @pytest.mark.asyncio
    async def test_api_error(self, fake_http, service, monkeypatch):
        monkeypatch.setattr(integration, "MEDIUM_TOKEN", "med-token")
        monkeypatch.setattr(integration, "MEDIUM_AUTHOR_ID", "user-1")
        fake_http.queue(401, text='{"errors":[{"message":"Token was invalid."}]}')

        result = await service.publish_to_medium(CONTENT)

        assert result["success"] is False
        assert result["error"].startswith("Medium API error (401)")


class TestWebflow:
    @pytest.mark.asyncio
    async def test_publish(self, fake_http, service, monkeypatch):
        monkeypatch.setattr(integration, "WEBFLOW_API_TOKEN", "wf-token")
        monkeypatch.setattr(integration, "WEBFLOW_COLLECTION_ID", "col-1")
        fake_http.queue(202, {"id": "item-9"})

        result = await service.publish("webflow", CONTENT)

        assert result == {"success": True, "platform_id": "webflow", "webflow_item_id": "item-9"}
        call = fake_http.last
        assert call["url"] == "https://api.webflow.com/v2/collections/col-1/items"
        assert call["json"]["isDraft"] is False
        assert call["json"]["fieldData"]["slug"] == "desk-tips"
        assert "<h2" in call["json"]["fieldData"]["post-body"]


class TestShopifyAndWordPress:
    @pytest.mark.asyncio
    @patch("publisher.blog_integration.get_blog_handle", new_callable=AsyncMock)
    @patch("publisher.blog_integration.sync_article_to_shopify", new_callable=AsyncMock)
    @patch("publisher.blog_integration.is_shopify_configured", return_value=True)
    async def test_shopify_url(self, _configured, mock_sync, mock_handle, service, monkeypatch):
        """The public URL is built from the blog and article handles."""
        monkeypatch.setattr(integration, "SHOPIFY_STORE", "desk-co")
        mock_sync.return_value = {"success": True, "shopify_article_id": "gid://shopify/Article/1", "handle": "desk-tips"}
        mock_handle.return_value = "news"

        result = await service.publish_to_shopify(CONTENT, blog_id="gid://shopify/Blog/5")

        assert result["url"] == "https://desk-co.myshopify.com/blogs/news/desk-tips"
        assert result["shopify_article_id"] == "gid://shopify/Article/1"
        article = mock_sync.await_args.args[0]
        assert article["status"] == "published"
        assert article["target_keywords"] == CONTENT["tags"]

    @pytest.mark.asyncio
    @patch("publisher.blog_integration.is_shopify_configured", return_value=False)
    async def test_shopify_not_configured(self, _configured, service):
        result = await service.publish("shopify", CONTENT)
        assert result["error"] == "Shopify credentials not configured"

    @pytest.mark.asyncio
    @patch("publisher.wordpress_tools.publish_to_wordpress", new_callable=AsyncMock)
    async def test_wordpress_scheduled(self, mock_publish, service):
        mock_publish.return_value = {"success": True, "wordpress_post_id": 7, "url": "https://wp/x"}

        result = await service.publish("wordpress", {**CONTENT, "scheduled_date": "2026-08-01T00:00:00"})

        assert result["wordpress_post_id"] == 7
        assert mock_publish.await_args.kwargs["status"] == "future"


class TestPublishToAll:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, service, monkeypatch):
        monkeypatch.setattr(integration, "GHOST_URL", "")
        monkeypatch.setattr(integration, "MEDIUM_TOKEN", "")

        results = await service.publish_to_all(CONTENT, ["ghost", "medium", "blogger"])

        assert [r["platform_id"] for r in results] == ["ghost", "medium", "blogger"]
        assert not any(r["success"] for r in results)

    @pytest.mark.asyncio
    @patch("publisher.blog_integration.save_article_draft", new_callable=AsyncMock)
    async def test_save_as_draft(self, mock_save, service):
        mock_save.return_value = {"success": True, "article": {"id": "d"}, "created": True}
        assert (await service.save_as_draft(CONTENT))["success"] is True
        mock_save.assert_awaited_once_with(CONTENT)

    def test_export(self, service):
        files = service.export_as_files(CONTENT)
        assert files["markdown"].startswith("---\n")
