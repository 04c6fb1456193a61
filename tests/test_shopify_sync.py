"""Tests for Shopify sync and import orchestration."""

from unittest.mock import AsyncMock, patch

import pytest

from publisher import shopify_sync
from publisher.shopify_sync import (
    _get_sync_status,
    _import_article_node,
    _needs_sync,
    _sync_single_article,
    import_articles_from_shopify,
    import_single_article_from_shopify,
    resolve_blog_gid,
    sync_pending_articles,
)


BLOG_GID = "gid://shopify/Blog/100"

NODE = {
    "id": "gid://shopify/Article/77",
    "title": "From Shopify",
    "handle": "from-shopify",
    "body": "<p>" + "Imported article body text. " * 5 + "</p>",
    "summary": "Summary",
    "publishedAt": "2026-02-01T00:00:00Z",
    "tags": ["desk"],
    "blog": {"id": BLOG_GID},
}


class TestNeedsSync:
    def test_never_synced(self, sample_article):
        assert _needs_sync(sample_article) is True

    def test_up_to_date(self, sample_article):
        sample_article.update(shopify_article_id=9, shopify_synced_at="2026-01-11T00:00:00+00:00")
        assert _needs_sync(sample_article) is False

    def test_edited_after_sync(self, sample_article):
        sample_article.update(shopify_article_id=9, shopify_synced_at="2026-01-09T00:00:00+00:00")
        assert _needs_sync(sample_article) is True

    def test_same_timestamp_is_current(self, sample_article):
        """Imports stamp updated_at and synced_at together."""
        sample_article.update(shopify_article_id=9, shopify_synced_at=sample_article["updated_at"])
        assert _needs_sync(sample_article) is False

    def test_failed_resync_is_retried(self, sample_article):
        sample_article.update(
            shopify_article_id=123,
            shopify_synced_at=sample_article["updated_at"],
            shopify_sync_error="Title must be at most 255 characters",
        )
        assert _needs_sync(sample_article) is True
        assert _get_sync_status(sample_article) == "ERROR"


class TestResolveBlog:
    @pytest.mark.asyncio
    async def test_numeric_article_blog(self):
        assert await resolve_blog_gid({"shopify_blog_id": 42}) == "gid://shopify/Blog/42"

    @pytest.mark.asyncio
    async def test_default_blog(self, monkeypatch):
        monkeypatch.setattr(shopify_sync, "SHOPIFY_DEFAULT_BLOG_ID", BLOG_GID)
        assert await resolve_blog_gid({}) == BLOG_GID

    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.fetch_all_shopify_blogs", new_callable=AsyncMock)
    async def test_first_store_blog(self, mock_blogs, monkeypatch):
        """Without any configured blog the store's first blog is used."""
        monkeypatch.setattr(shopify_sync, "SHOPIFY_DEFAULT_BLOG_ID", "")
        mock_blogs.return_value = [{"id": "gid://shopify/Blog/1"}, {"id": "gid://shopify/Blog/2"}]
        assert await resolve_blog_gid() == "gid://shopify/Blog/1"


class TestSyncSingleArticle:
    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.update_article_shopify_fields", new_callable=AsyncMock)
    @patch("publisher.shopify_sync.sync_article_to_shopify", new_callable=AsyncMock)
    async def test_success_stores_numeric_ids(self, mock_sync, mock_fields, sample_article, monkeypatch):
        """Successful syncs store numeric article and blog IDs."""
        monkeypatch.setattr(shopify_sync, "SHOPIFY_DEFAULT_BLOG_ID", BLOG_GID)
        mock_sync.return_value = {"success": True, "shopify_article_id": "gid://shopify/Article/9", "handle": "h"}

        assert await _sync_single_article(sample_article) == "synced"

        assert mock_sync.call_args.kwargs["shopify_blog_gid"] == BLOG_GID
        mock_fields.assert_awaited_once_with("art-1", shopify_article_id=9, shopify_blog_id=100)

    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.update_article_shopify_fields", new_callable=AsyncMock)
    @patch("publisher.shopify_sync.sync_article_to_shopify", new_callable=AsyncMock)
    async def test_failure_records_error(self, mock_sync, mock_fields, sample_article, monkeypatch):
        monkeypatch.setattr(shopify_sync, "SHOPIFY_DEFAULT_BLOG_ID", BLOG_GID)
        mock_sync.return_value = {"success": False, "error": "Handle taken"}

        assert await _sync_single_article(sample_article) == "failed"
        mock_fields.assert_awaited_once_with("art-1", error="Handle taken")

    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.sync_article_to_shopify", new_callable=AsyncMock)
    async def test_generating_is_skipped(self, mock_sync, sample_article):
        sample_article["status"] = "generating"
        assert await _sync_single_article(sample_article, force=True) == "skipped"
        mock_sync.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.update_article_shopify_fields", new_callable=AsyncMock)
    @patch("publisher.shopify_sync.sync_article_to_shopify", new_callable=AsyncMock)
    async def test_up_to_date_unless_forced(self, mock_sync, mock_fields, sample_article, monkeypatch):
        """Up-to-date articles are skipped; force re-syncs them."""
        monkeypatch.setattr(shopify_sync, "SHOPIFY_DEFAULT_BLOG_ID", BLOG_GID)
        sample_article.update(shopify_article_id=9, shopify_synced_at="2026-02-01T00:00:00+00:00")
        mock_sync.return_value = {"success": True, "shopify_article_id": "gid://shopify/Article/9"}

        assert await _sync_single_article(sample_article) == "skipped"
        assert await _sync_single_article(sample_article, force=True) == "synced"
        assert mock_sync.call_args.kwargs["existing_shopify_id"] == 9


class TestBatchSync:
    @pytest.mark.asyncio
    @patch("publisher.shopify_sync._sync_single_article", new_callable=AsyncMock)
    @patch("publisher.shopify_sync.list_articles", new_callable=AsyncMock)
    async def test_pending_only(self, mock_list, mock_single, sample_article):
        """Only never-synced or stale articles that are ready get synced."""
        current = {**sample_article, "id": "b", "shopify_article_id": 1,
                   "shopify_synced_at": "2026-02-01T00:00:00+00:00"}
        generating = {**sample_article, "id": "c", "status": "generating"}
        mock_list.return_value = [sample_article, current, generating]
        mock_single.return_value = "synced"

        result = await sync_pending_articles()

        assert result == {"synced": 1, "failed": 0, "skipped": 0}
        assert mock_single.await_args.args[0]["id"] == "art-1"


class TestImport:
    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.create_article", new_callable=AsyncMock)
    @patch("publisher.shopify_sync.get_article_by_slug", new_callable=AsyncMock)
    async def test_new_article_imported(self, mock_get, mock_create):
        mock_get.return_value = None
        mock_create.return_value = {"success": True, "article": {"id": "new"}}

        assert await _import_article_node(NODE, force_pull=False) == "imported"

        data = mock_create.await_args.args[0]
        assert data["shopify_article_id"] == 77
        assert data["shopify_synced_at"] == data["updated_at"]

    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.update_article", new_callable=AsyncMock)
    @patch("publisher.shopify_sync.get_article_by_slug", new_callable=AsyncMock)
    async def test_existing_skipped_without_force_pull(self, mock_get, mock_update):
        mock_get.return_value = {"id": "existing"}
        assert await _import_article_node(NODE, force_pull=False) == "skipped"
        mock_update.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.update_article", new_callable=AsyncMock)
    @patch("publisher.shopify_sync.get_article_by_slug", new_callable=AsyncMock)
    async def test_force_pull_keeps_local_keywords(self, mock_get, mock_update):
        """Empty Shopify tags do not wipe local keywords."""
        mock_get.return_value = {"id": "existing"}
        mock_update.return_value = {"id": "existing"}

        assert await _import_article_node({**NODE, "tags": []}, force_pull=True) == "updated"
        assert "target_keywords" not in mock_update.await_args.args[1]

    @pytest.mark.asyncio
    async def test_minimal_content_skipped(self):
        assert await _import_article_node({**NODE, "body": "<p>hi</p>"}, force_pull=True) == "skipped"

    @pytest.mark.asyncio
    @patch("publisher.shopify_sync._import_article_node", new_callable=AsyncMock)
    @patch("publisher.shopify_sync.fetch_all_shopify_articles", new_callable=AsyncMock)
    async def test_import_counts(self, mock_fetch, mock_node):
        mock_fetch.return_value = [NODE, NODE, NODE]
        mock_node.side_effect = ["imported", "skipped", "error: Failed to import x: boom"]

        result = await import_articles_from_shopify()

        assert result == {"imported": 1, "updated": 0, "skipped": 1, "errors": ["Failed to import x: boom"]}

    @pytest.mark.asyncio
    @patch("publisher.shopify_sync.fetch_all_shopify_articles", new_callable=AsyncMock)
    async def test_single_import_not_found(self, mock_fetch):
        mock_fetch.return_value = [NODE]
        assert await import_single_article_from_shopify("missing-handle") is False
