"""Tests for the cms command line entry point."""

import json
import sys
from unittest.mock import AsyncMock, patch

import pytest

import cms
from publisher import blog_integration as integration


HEALTHY = {"success": True, "errors": []}


def run_main(monkeypatch, *argv) -> int:
    monkeypatch.setattr(sys, "argv", ["cms.py", *argv])
    with pytest.raises(SystemExit) as exc_info:
        cms.main()
    return exc_info.value.code


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_supabase_ok(self, fake_http, monkeypatch):
        monkeypatch.setattr(cms, "ENABLE_SHOPIFY_SYNC", False)
        fake_http.queue(200, [])

        assert await cms.health_check() == HEALTHY
        assert "/rest/v1/articles?select=id&limit=1" in fake_http.last["url"]

    @pytest.mark.asyncio
    async def test_supabase_error(self, fake_http, monkeypatch):
        monkeypatch.setattr(cms, "ENABLE_SHOPIFY_SYNC", False)
        fake_http.queue(500)

        result = await cms.health_check()

        assert result == {"success": False, "errors": ["Supabase error: HTTP 500"]}


class TestMain:
    def test_configuration_error(self, monkeypatch, capsys):
        with patch("cms.validate_config", side_effect=ValueError("Missing required environment variables: SUPABASE_URL")):
            assert run_main(monkeypatch, "--list-articles") == 1
        assert "Configuration Error" in capsys.readouterr().out

    @patch("cms.health_check", new_callable=AsyncMock, return_value={"success": False, "errors": ["Supabase unreachable: timeout"]})
    def test_failed_health_check_exits(self, _health, monkeypatch, capsys):
        assert run_main(monkeypatch, "--list-articles") == 1
        assert "Supabase unreachable" in capsys.readouterr().out

    @patch("cms.health_check", new_callable=AsyncMock, return_value=HEALTHY)
    def test_invalid_status(self, _health, monkeypatch, capsys):
        assert run_main(monkeypatch, "--set-status", "art-1", "live") == 1
        assert "Invalid status 'live'" in capsys.readouterr().out

    @patch("cms.update_article_status", new_callable=AsyncMock, return_value={"id": "art-1"})
    @patch("cms.health_check", new_callable=AsyncMock, return_value=HEALTHY)
    def test_set_status(self, _health, mock_update, monkeypatch):
        assert run_main(monkeypatch, "--set-status", "art-1", "approved") == 0
        mock_update.assert_awaited_once_with("art-1", "approved")

    @patch("cms.health_check", new_callable=AsyncMock, return_value=HEALTHY)
    def test_publish_needs_platform(self, _health, monkeypatch, capsys):
        assert run_main(monkeypatch, "--publish", "desk-tips") == 1
        assert "--platform" in capsys.readouterr().out

    @patch("publisher.generation.generate_from_queue", new_callable=AsyncMock,
           return_value={"generated": 2, "failed": 0})
    @patch("cms.health_check", new_callable=AsyncMock, return_value=HEALTHY)
    def test_from_queue(self, _health, mock_queue, monkeypatch):
        with patch("cms.validate_config"):
            assert run_main(monkeypatch, "--from-queue", "2", "--skip-review") == 0
        assert mock_queue.await_args.args == (2,)
        assert mock_queue.await_args.kwargs["skip_editorial_review"] is True

    @patch("publisher.generation.generate_from_queue", new_callable=AsyncMock,
           return_value={"generated": 0, "failed": 1})
    @patch("cms.health_check", new_callable=AsyncMock, return_value=HEALTHY)
    def test_from_queue_defaults_to_one(self, _health, mock_queue, monkeypatch):
        with patch("cms.validate_config"):
            assert run_main(monkeypatch, "--from-queue") == 1
        assert mock_queue.await_args.args == (1,)

    def test_no_command_prints_help(self, monkeypatch, capsys):
        """Status-only flags aside, no command means usage and exit 1."""
        with patch("cms.health_check", new_callable=AsyncMock, return_value=HEALTHY):
            assert run_main(monkeypatch) == 1
        assert "usage:" in capsys.readouterr().out


class TestPublishAndExport:
    @pytest.mark.asyncio
    @patch("cms.get_article_by_slug", new_callable=AsyncMock)
    async def test_publish_article(self, mock_get, sample_article, monkeypatch):
        mock_get.return_value = sample_article
        mock_publish = AsyncMock(return_value={"success": True, "platform_id": "ghost", "url": "https://g/x"})
        monkeypatch.setattr(integration.blog_integration, "publish", mock_publish)

        assert await cms.publish_article(sample_article["slug"], "ghost") is True

        platform_id, content = mock_publish.await_args.args
        assert platform_id == "ghost"
        assert content["tags"] == ["standing desk", "ergonomics"]

    @pytest.mark.asyncio
    @patch("cms.get_article_by_slug", new_callable=AsyncMock)
    async def test_publish_several_platforms(self, mock_get, sample_article, monkeypatch):
        """Platforms are published in order and any failure fails the run."""
        mock_get.return_value = sample_article
        mock_publish = AsyncMock(side_effect=[
            {"success": True, "platform_id": "ghost", "url": "https://g/x"},
            {"success": False, "platform_id": "medium", "error": "Medium integration token not configured"},
        ])
        monkeypatch.setattr(integration.blog_integration, "publish", mock_publish)

        assert await cms.publish_article(sample_article["slug"], ["ghost", "medium"]) is False
        assert [c.args[0] for c in mock_publish.await_args_list] == ["ghost", "medium"]

    @pytest.mark.asyncio
    @patch("cms.get_article_by_slug", new_callable=AsyncMock, return_value=None)
    async def test_publish_missing_article(self, _get):
        assert await cms.publish_article("nope", "ghost") is False

    @pytest.mark.asyncio
    @patch("cms.get_article_by_slug", new_callable=AsyncMock)
    async def test_export_writes_three_files(self, mock_get, sample_article, tmp_path):
        mock_get.return_value = sample_article
        slug = sample_article["slug"]

        assert await cms.export_article(slug, str(tmp_path / "out")) is True

        out = tmp_path / "out"
        assert (out / f"{slug}.md").read_text(encoding="utf-8").startswith("---\n")
        assert "<h2" in (out / f"{slug}.html").read_text(encoding="utf-8")
        assert json.loads((out / f"{slug}.json").read_text(encoding="utf-8"))["slug"] == slug
