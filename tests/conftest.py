"""Pytest configuration and fixtures."""

import os

# Must be set before config is imported
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

import aiohttp
import pytest

from publisher import shopify_tools, wordpress_tools
from publisher.generation import _generation_limiter


class FakeResponse:
    """Canned aiohttp response usable as an async context manager."""

    def __init__(self, status: int = 200, json_data=None, text: str = ""):
        self.status = status
        self._json = json_data
        self._text = text

    async def json(self, content_type=None):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeHTTP:
    """
    Records outgoing requests and replays queued responses in order.

    An exhausted queue answers 200 with an empty JSON object.
    """

    def __init__(self):
        self.calls = []
        self._responses = []

    def queue(self, status: int = 200, json=None, text: str = ""):
        self._responses.append(FakeResponse(status, json, text))
        return self

    def queue_error(self, exc: Exception):
        self._responses.append(exc)
        return self

    def _next(self, method: str, url: str, **kwargs):
        self.calls.append({
            "method": method.upper(),
            "url": url,
            "params": kwargs.get("params"),
            "json": kwargs.get("json"),
            "data": kwargs.get("data"),
            "headers": kwargs.get("headers") or {},
        })
        if not self._responses:
            return FakeResponse(200, {})
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def last(self) -> dict:
        return self.calls[-1]


class FakeSession:
    def __init__(self, http: FakeHTTP):
        self._http = http

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def request(self, method, url, **kwargs):
        return self._http._next(method, url, **kwargs)

    def get(self, url, **kwargs):
        return self._http._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._http._next("POST", url, **kwargs)

    def patch(self, url, **kwargs):
        return self._http._next("PATCH", url, **kwargs)

    def put(self, url, **kwargs):
        return self._http._next("PUT", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._http._next("DELETE", url, **kwargs)


@pytest.fixture
def fake_http(monkeypatch):
    """Replace aiohttp.ClientSession everywhere with a recording fake."""
    http = FakeHTTP()
    monkeypatch.setattr(aiohttp, "ClientSession", lambda *args, **kwargs: FakeSession(http))
    return http


@pytest.fixture(autouse=True)
def reset_module_state():
    """Clear lookup caches and limiters shared across tests."""
    shopify_tools.clear_sync_cache()
    wordpress_tools.clear_sync_cache()
    _generation_limiter.reset()
    yield
    shopify_tools.clear_sync_cache()
    wordpress_tools.clear_sync_cache()
    _generation_limiter.reset()


@pytest.fixture
def shopify_configured(monkeypatch):
    """Static-token Shopify configuration."""
    monkeypatch.setattr(shopify_tools, "SHOPIFY_STORE", "test-store")
    monkeypatch.setattr(shopify_tools, "SHOPIFY_ACCESS_TOKEN", "shpat_test")
    monkeypatch.setattr(shopify_tools, "SHOPIFY_RETRY_DELAY_MS", 0)


@pytest.fixture
def sample_article():
    """Article row as stored in Supabase."""
    return {
        "id": "art-1",
        "title": "How to Choose a Standing Desk",
        "slug": "how-to-choose-a-standing-desk",
        "content": "## Why it matters\n\nA good desk changes your day.",
        "meta_description": "Pick the right standing desk.",
        "status": "published",
        "target_keywords": '["standing desk", "ergonomics"]',
        "seo_score": 82,
        "word_count": 9,
        "reading_time": 1,
        "shopify_article_id": None,
        "shopify_blog_id": None,
        "shopify_synced_at": None,
        "shopify_sync_error": None,
        "updated_at": "2026-01-10T12:00:00+00:00",
    }
