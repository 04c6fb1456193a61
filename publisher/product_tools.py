"""
Product Tools - Shopify product catalog in Supabase

This module provides:
1. Storefront feed import (products.json -> shopify_products)
2. Price range reconciliation between the feed and the database
3. Product lookups used to weave relevant products into generated articles
"""

import asyncio
import json
import math
from typing import Optional
import aiohttp

from config import SUPABASE_URL, get_supabase_headers, PRICE_SYNC_DELAY_MS
from publisher.utils import generate_handle_from_title, strip_html, utc_now_iso


FEED_PAGE_SIZE = 250
MAX_FEED_PAGES = 100
KEYWORD_SEARCH_LIMIT = 20
RELEVANT_PRODUCTS_LIMIT = 10


def _products_url(query: str = "") -> str:
    return f"{SUPABASE_URL}/rest/v1/shopify_products{query}"


# =============================================================================
# PRICE HELPERS
# =============================================================================

def _parse_price(value) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(price) else price


def get_price_range(variants: Optional[list]) -> tuple[float, float]:
    """
    Get (min, max) price across product variants.

    Products without variants price at (0.0, 0.0); unparsable prices count as 0.
    """
    prices = [_parse_price(v.get("price")) for v in (variants or []) if isinstance(v, dict)]
    if not prices:
        prices = [0.0]
    return min(prices), max(prices)


def _price_differs(stored, expected: float) -> bool:
    """True when the stored value is missing, NaN, or not equal to expected."""
    if stored is None:
        return True
    try:
        stored = float(stored)
    except (TypeError, ValueError):
        return True
    if math.isnan(stored):
        return True
    return abs(stored - expected) > 0.001


# =============================================================================
# STOREFRONT FEED
# =============================================================================

def map_storefront_product(product: dict, store_url: str) -> dict:
    """
    Map a storefront products.json item to a shopify_products row.
    """
    price_min, price_max = get_price_range(product.get("variants"))

    tags = product.get("tags") or []
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",") if t.strip()]

    inventory = 0
    for variant in product.get("variants") or []:
        try:
            inventory += int(variant.get("inventory_quantity") or 0)
        except (TypeError, ValueError):
            continue

    handle = product.get("handle") or generate_handle_from_title(product.get("title", ""))
    description = strip_html(product.get("body_html") or "")[:1000] or None
    status = product.get("status", "active")

    return {
        "shopify_id": int(product["id"]),
        "title": product.get("title", ""),
        "handle": handle,
        "description": description,
        "product_type": product.get("product_type") or None,
        "tags": tags,
        "images": [img.get("src") for img in product.get("images") or [] if img.get("src")],
        "price_min": price_min,
        "price_max": price_max,
        "inventory_quantity": inventory,
        "status": status if status in ("active", "draft", "archived") else "active",
        "shopify_url": f"{store_url.rstrip('/')}/products/{handle}",
        "last_synced": utc_now_iso(),
    }


async def fetch_storefront_products(store_url: str) -> list:
    """
    Fetch every product from the public storefront feed.

    Tries /products.json and falls back to /collections/all/products.json,
    paging until an empty page is returned.

    Returns:
        List of storefront product dicts, or empty list on error
    """
    base = store_url.rstrip("/")
    endpoints = [f"{base}/products.json", f"{base}/collections/all/products.json"]

    try:
        async with aiohttp.ClientSession() as session:
            for endpoint in endpoints:
                products = []
                page = 1
                while page <= MAX_FEED_PAGES:
                    async with session.get(
                        endpoint,
                        params={"limit": str(FEED_PAGE_SIZE), "page": str(page)},
                        timeout=aiohttp.ClientTimeout(total=30)
                    ) as resp:
                        if resp.status != 200:
                            break
                        data = await resp.json()

                    batch = data.get("products", []) if isinstance(data, dict) else []
                    if not batch:
                        break
                    products.extend(batch)
                    if len(batch) < FEED_PAGE_SIZE:
                        break
                    page += 1

                if products:
                    return products

    except aiohttp.ClientError as e:
        print(f"Network error fetching storefront feed: {e}")
    except Exception as e:
        print(f"Unexpected error fetching storefront feed: {e}")

    return []


async def upsert_product(row: dict) -> tuple[bool, str]:
    """Insert or update a product keyed on shopify_id."""
    headers = get_supabase_headers()
    headers["Prefer"] = "resolution=merge-duplicates,return=representation"
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                _products_url("?on_conflict=shopify_id"),
                headers=headers,
                json=row
            ) as resp:
                if resp.status in [200, 201, 204]:
                    return True, ""
                return False, await resp.text()
    except Exception as e:
        return False, str(e)


async def import_products_from_storefront(store_url: str) -> dict:
    """
    Import the storefront feed into shopify_products.

    Returns:
        dict with keys: imported, failed, errors
    """
    print(f"Fetching products from {store_url}...")
    products = await fetch_storefront_products(store_url)

    if not products:
        print("No products found in storefront feed (or fetch failed).")
        return {"imported": 0, "failed": 0, "errors": []}

    print(f"Found {len(products)} products\n")

    imported = 0
    errors = []

    for product in products:
        title = product.get("title", "")
        try:
            row = map_storefront_product(product, store_url)
        except (KeyError, TypeError, ValueError) as e:
            errors.append(f"{title}: invalid product data ({e})")
            print(f"  [FAIL] {title[:50]} - invalid product data")
            continue

        success, error = await upsert_product(row)
        if success:
            imported += 1
            print(f"  [IMPORT] {title[:50]}")
        else:
            errors.append(f"{title}: {error}")
            print(f"  [FAIL] {title[:50]} - {error[:80]}")

    return {"imported": imported, "failed": len(errors), "errors": errors}


# =============================================================================
# PRICE RECONCILIATION
# =============================================================================

async def get_products_for_price_check() -> list:
    """Fetch id, shopify_id, title and price columns for every product."""
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(
                _products_url("?select=id,shopify_id,title,price_min,price_max&order=title"),
                headers=headers
            ) as resp:
                if resp.status == 200:
                    return await resp.json()
                return []
    except Exception as e:
        print(f"Error fetching products: {e}")
        return []


async def update_product_prices(product_id: str, price_min: float, price_max: float) -> bool:
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.patch(
                _products_url(f"?id=eq.{product_id}"),
                headers=headers,
                json={
                    "price_min": price_min,
                    "price_max": price_max,
                    "last_synced": utc_now_iso(),
                }
            ) as resp:
                return resp.status in [200, 204]
    except Exception:
        return False


async def fix_product_prices(
    store_url: str,
    dry_run: bool = False,
    delay_ms: int = PRICE_SYNC_DELAY_MS,
) -> dict:
    """
    Reconcile price_min/price_max in shopify_products with the storefront feed.

    Products are matched by int(feed id) == shopify_id. A row is updated when
    its stored price is missing, NaN, or different from the feed.

    Args:
        store_url: Public storefront URL
        dry_run: Report differences without writing
        delay_ms: Pause between products

    Returns:
        dict with keys: updated, failed, correct, missing
    """
    print("=" * 50)
    print("Product price reconciliation")
    print("=" * 50)

    rows = await get_products_for_price_check()
    feed = await fetch_storefront_products(store_url)

    if not rows or not feed:
        print("Nothing to reconcile (no database products or empty feed).")
        return {"updated": 0, "failed": 0, "correct": 0, "missing": 0}

    feed_by_id = {}
    for product in feed:
        try:
            feed_by_id[int(product["id"])] = product
        except (KeyError, TypeError, ValueError):
            continue

    updated = 0
    failed = 0
    correct = 0
    missing = 0

    for row in rows:
        title = (row.get("title") or "")[:50]
        try:
            feed_product = feed_by_id.get(int(row.get("shopify_id")))
        except (TypeError, ValueError):
            feed_product = None

        if not feed_product:
            print(f"  [SKIP] {title} - not in storefront feed")
            missing += 1
            continue

        price_min, price_max = get_price_range(feed_product.get("variants"))

        if not _price_differs(row.get("price_min"), price_min) and not _price_differs(row.get("price_max"), price_max):
            correct += 1
        elif dry_run:
            print(f"  [DRY RUN] {title}: {row.get('price_min')}-{row.get('price_max')} -> {price_min}-{price_max}")
            updated += 1
        elif await update_product_prices(row["id"], price_min, price_max):
            print(f"  [FIXED] {title}: {price_min}-{price_max}")
            updated += 1
        else:
            print(f"  [FAIL] {title}")
            failed += 1

        if delay_ms:
            await asyncio.sleep(delay_ms / 1000)

    print()
    print(f"Updated: {updated} | Failed: {failed} | Already correct: {correct} | Not in feed: {missing}")

    return {"updated": updated, "failed": failed, "correct": correct, "missing": missing}


# =============================================================================
# PRODUCT LOOKUPS FOR CONTENT GENERATION
# =============================================================================

def transform_for_content_generation(product: dict) -> dict:
    """Reduce a product row to the fields used in prompts, plus relevance keywords."""
    tags = product.get("tags") if isinstance(product.get("tags"), list) else []
    collections = product.get("collections") if isinstance(product.get("collections"), list) else []
    product_type = product.get("product_type") or ""
    title = product.get("title") or ""

    relevance = [*tags, *collections, product_type, *title.lower().split(" ")]

    return {
        "handle": product.get("handle"),
        "title": title,
        "description": product.get("description") or "",
        "product_type": product_type,
        "collections": collections,
        "tags": tags,
        "price_min": product.get("price_min"),
        "price_max": product.get("price_max"),
        "shopify_url": product.get("shopify_url"),
        "relevance_keywords": [k for k in relevance if k],
    }


async def _query_products(params: list) -> list:
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(_products_url(), headers=headers, params=params) as resp:
                if resp.status == 200:
                    rows = await resp.json()
                    return [transform_for_content_generation(r) for r in rows]
                return []
    except Exception:
        return []


async def get_products_by_collection(collection_name: str) -> list:
    """Active products in a collection."""
    return await _query_products([
        ("select", "*"),
        ("status", "eq.active"),
        ("collections", f"cs.{json.dumps([collection_name])}"),
        ("order", "title"),
    ])


async def get_products_by_keywords(keywords: list) -> list:
    """
    Active products whose title/description mention any keyword, or whose
    tags/collections contain one.
    """
    conditions = []
    for keyword in keywords:
        term = str(keyword).lower().replace(",", " ").strip()
        if not term:
            continue
        conditions.extend([
            f"title.ilike.*{term}*",
            f"description.ilike.*{term}*",
            f"tags.cs.{json.dumps([term])}",
            f"collections.cs.{json.dumps([term])}",
        ])
    if not conditions:
        return []

    return await _query_products([
        ("select", "*"),
        ("status", "eq.active"),
        ("or", f"({','.join(conditions)})"),
        ("order", "title"),
        ("limit", str(KEYWORD_SEARCH_LIMIT)),
    ])


async def get_all_active_products() -> list:
    return await _query_products([("select", "*"), ("status", "eq.active"), ("order", "title")])


async def get_relevant_products(topic: str, keywords: Optional[list] = None) -> list:
    """
    Find products to mention in an article about topic.

    Collection matches on the slugified topic come first, then keyword
    matches; results are deduplicated by handle and capped at 10.
    """
    keywords = keywords or []
    search_terms = [topic, *keywords, *[w for w in topic.lower().split(" ") if len(w) > 3]]

    by_keywords = await get_products_by_keywords(search_terms)
    by_collection = await get_products_by_collection(generate_handle_from_title(topic))

    unique = []
    seen = set()
    for product in [*by_collection, *by_keywords]:
        if product["handle"] in seen:
            continue
        seen.add(product["handle"])
        unique.append(product)

    return unique[:RELEVANT_PRODUCTS_LIMIT]
