"""Tests for product import, price reconciliation and product lookups."""

import math
from unittest.mock import AsyncMock, patch

import pytest

from publisher.product_tools import (
    _price_differs,
    fix_product_prices,
    fetch_storefront_products,
    get_price_range,
    get_products_by_keywords,
    get_relevant_products,
    import_products_from_storefront,
    map_storefront_product,
)


STORE = "https://shop.example.com"

FEED_PRODUCT = {
    "id": 111,
    "title": "Oak Standing Desk",
    "handle": "oak-standing-desk",
    "body_html": "<p>Solid <b>oak</b> top.</p>",
    "product_type": "Desk",
    "tags": "desk, oak",
    "variants": [
        {"price": "499.00", "inventory_quantity": 3},
        {"price": "649.50", "inventory_quantity": 2},
    ],
    "images": [{"src": "https://cdn.example.com/oak.jpg"}],
}


def product_row(handle: str, title: str = "Product") -> dict:
    return {"handle": handle, "title": title, "tags": [], "collections": [], "price_min": 1, "price_max": 2}


class TestPriceHelpers:
    def test_price_range(self):
        assert get_price_range(FEED_PRODUCT["variants"]) == (499.0, 649.5)

    def test_no_variants(self):
        """Products without variants price at zero."""
        assert get_price_range([]) == (0.0, 0.0)
        assert get_price_range(None) == (0.0, 0.0)

    def test_unparsable_prices_count_as_zero(self):
        assert get_price_range([{"price": "abc"}, {"price": "10"}]) == (0.0, 10.0)

    def test_price_differs(self):
        assert _price_differs(None, 10.0)
        assert _price_differs(math.nan, 10.0)
        assert _price_differs("9.5", 10.0)
        assert not _price_differs("10.0004", 10.0)


class TestStorefrontFeed:
    def test_map_product(self):
        row = map_storefront_product(FEED_PRODUCT, STORE + "/")
        assert row["shopify_id"] == 111
        assert row["description"] == "Solid oak top."
        assert row["tags"] == ["desk", "oak"]
        assert row["inventory_quantity"] == 5
        assert (row["price_min"], row["price_max"]) == (499.0, 649.5)
        assert row["shopify_url"] == "https://shop.example.com/products/oak-standing-desk"
        assert row["status"] == "active"

    @pytest.mark.asyncio
    async def test_fetch_falls_back_to_collection_feed(self, fake_http):
        """A failing /products.json falls back to /collections/all/products.json."""
        fake_http.queue(404)
        fake_http.queue(200, {"products": [FEED_PRODUCT]})

        products = await fetch_storefront_products(STORE)

        assert products == [FEED_PRODUCT]
        assert fake_http.calls[0]["url"] == f"{STORE}/products.json"
        assert fake_http.calls[1]["url"] == f"{STORE}/collections/all/products.json"
        assert fake_http.calls[1]["params"] == {"limit": "250", "page": "1"}

    @pytest.mark.asyncio
    async def test_fetch_pages_until_short_page(self, fake_http):
        full_page = [{**FEED_PRODUCT, "id": i} for i in range(250)]
        fake_http.queue(200, {"products": full_page})
        fake_http.queue(200, {"products": [FEED_PRODUCT]})

        products = await fetch_storefront_products(STORE)

        assert len(products) == 251
        assert fake_http.last["params"]["page"] == "2"

    @pytest.mark.asyncio
    async def test_import_upserts(self, fake_http):
        """Rows are upserted on shopify_id; bad rows are reported."""
        fake_http.queue(200, {"products": [FEED_PRODUCT, {"title": "No id"}]})
        fake_http.queue(201, [{}])

        result = await import_products_from_storefront(STORE)

        assert result["imported"] == 1
        assert result["failed"] == 1
        upsert = fake_http.last
        assert upsert["url"].endswith("/rest/v1/shopify_products?on_conflict=shopify_id")
        assert upsert["headers"]["Prefer"] == "resolution=merge-duplicates,return=representation"


class TestPriceReconciliation:
    @pytest.mark.asyncio
    async def test_fix_prices(self, fake_http):
        """Wrong and missing prices are fixed; matching and unknown rows are counted."""
        fake_http.queue(200, [
            {"id": "p1", "shopify_id": 111, "title": "Oak", "price_min": 499.0, "price_max": 649.5},
            {"id": "p2", "shopify_id": 222, "title": "Pine", "price_min": None, "price_max": None},
            {"id": "p3", "shopify_id": 333, "title": "Gone", "price_min": 1, "price_max": 1},
        ])
        fake_http.queue(200, {"products": [
            FEED_PRODUCT,
            {"id": "222", "title": "Pine", "variants": [{"price": "199"}]},
        ]})
        fake_http.queue(204)

        result = await fix_product_prices(STORE, delay_ms=0)

        assert result == {"updated": 1, "failed": 0, "correct": 1, "missing": 1}
        assert fake_http.last["method"] == "PATCH"
        assert fake_http.last["url"].endswith("?id=eq.p2")
        assert fake_http.last["json"]["price_min"] == 199.0

    @pytest.mark.asyncio
    @patch("publisher.product_tools.asyncio.sleep", new_callable=AsyncMock)
    async def test_pauses_after_correct_products(self, mock_sleep, fake_http):
        """Every product found in the feed is followed by the pause."""
        fake_http.queue(200, [
            {"id": "p1", "shopify_id": 111, "title": "Oak", "price_min": 499.0, "price_max": 649.5},
            {"id": "p3", "shopify_id": 333, "title": "Gone", "price_min": 1, "price_max": 1},
        ])
        fake_http.queue(200, {"products": [FEED_PRODUCT]})

        result = await fix_product_prices(STORE, delay_ms=100)

        assert result["correct"] == 1
        mock_sleep.assert_awaited_once_with(0.1)

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, fake_http):
        fake_http.queue(200, [{"id": "p1", "shopify_id": 111, "title": "Oak", "price_min": 1, "price_max": 1}])
        fake_http.queue(200, {"products": [FEED_PRODUCT]})

        result = await fix_product_prices(STORE, dry_run=True, delay_ms=0)

        assert result["updated"] == 1
        assert all(call["method"] == "GET" for call in fake_http.calls)

    @pytest.mark.asyncio
    async def test_nothing_to_reconcile(self, fake_http):
        fake_http.queue(200, [])
        fake_http.queue(200, {"products": []})
        fake_http.queue(200, {"products": []})
        assert await fix_product_prices(STORE, delay_ms=0) == {"updated": 0, "failed": 0, "correct": 0, "missing": 0}


class TestProductLookups:
    @pytest.mark.asyncio
    async def test_keyword_query(self, fake_http):
        fake_http.queue(200, [product_row("oak-desk")])

        products = await get_products_by_keywords(["Oak", ""])

        assert products[0]["handle"] == "oak-desk"
        params = dict(fake_http.last["params"])
        assert params["status"] == "eq.active"
        assert params["limit"] == "20"
        assert "title.ilike.*oak*" in params["or"]
        assert 'tags.cs.["oak"]' in params["or"]

    @pytest.mark.asyncio
    async def test_no_keywords_no_query(self, fake_http):
        assert await get_products_by_keywords(["", " "]) == []
        assert fake_http.calls == []

    @pytest.mark.asyncio
    async def test_relevant_products_dedupe(self, fake_http):
        """Collection matches lead and duplicates by handle are dropped."""
        fake_http.queue(200, [product_row("a"), product_row("b")])
        fake_http.queue(200, [product_row("b"), product_row("c")])

        products = await get_relevant_products("Standing desks", ["oak"])

        assert [p["handle"] for p in products] == ["b", "c", "a"]
        collection_params = dict(fake_http.last["params"])
        assert collection_params["collections"] == 'cs.["standing-desks"]'
