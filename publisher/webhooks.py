"""
Shopify Webhooks - Keep CMS articles in step with changes made in Shopify

Run with `python cms.py --serve-webhooks`. Register the endpoint
POST /webhooks/shopify in Shopify for the articles/* and blogs/* topics.
"""

import base64
import hashlib
import hmac
import json
from typing import Optional

from aiohttp import web

from config import SHOPIFY_WEBHOOK_SECRET, WEBHOOK_HOST, WEBHOOK_PORT
from publisher.article_store import (
    create_article,
    get_article_by_shopify_id,
    get_article_by_slug,
    update_article,
)
from publisher.utils import (
    count_words,
    calculate_reading_time,
    parse_article_keywords,
    strip_html,
    utc_now_iso,
)


ARTICLE_TOPICS = ("articles/create", "articles/update", "articles/delete")
BLOG_TOPICS = ("blogs/create", "blogs/update", "blogs/delete")


# =============================================================================
# SIGNATURE VERIFICATION
# =============================================================================

def verify_webhook_hmac(raw_body: bytes, hmac_header: Optional[str], secret: Optional[str]) -> bool:
    """
    Check the X-Shopify-Hmac-SHA256 header against the raw request body.

    Returns:
        False when the secret or header is missing or the digest doesn't match
    """
    if not secret or not hmac_header:
        return False

    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, hmac_header.strip())


# =============================================================================
# EVENT HANDLERS
# =============================================================================

def map_webhook_article(payload: dict) -> dict:
    """Map a REST article webhook payload to article columns."""
    body = payload.get("body_html") or payload.get("content") or ""
    words = count_words(strip_html(body))
    tags = parse_article_keywords(payload.get("tags"))
    summary = strip_html(payload.get("summary_html") or payload.get("summary") or payload.get("excerpt") or "")
    now = utc_now_iso()

    return {
        "title": payload.get("title", ""),
        "slug": payload.get("handle", ""),
        "content": body,
        "meta_description": summary[:500] or None,
        "status": "published" if payload.get("published_at") else "draft",
        "target_keywords": tags,
        "shopify_article_id": payload.get("id"),
        "shopify_blog_id": payload.get("blog_id"),
        "published_at": payload.get("published_at"),
        "word_count": words,
        "reading_time": calculate_reading_time(words),
        "shopify_synced_at": now,
        "shopify_sync_error": None,
        "updated_at": now,
    }


async def _handle_article_upsert(payload: dict) -> dict:
    shopify_id = payload.get("id")
    if not shopify_id:
        return {"success": False, "error": "Article payload has no id"}

    existing = await get_article_by_shopify_id(shopify_id)
    if not existing and payload.get("handle"):
        existing = await get_article_by_slug(payload["handle"])

    data = map_webhook_article(payload)

    if existing:
        updated = await update_article(existing["id"], data)
        if not updated:
            return {"success": False, "error": f"Failed to update article {existing['id']}"}
        print(f"  [UPDATE] {data['title'][:50]} (shopify {shopify_id})")
        return {"success": True, "action": "updated", "article_id": existing["id"]}

    result = await create_article(data)
    if not result.get("success"):
        return {"success": False, "error": result.get("error")}
    print(f"  [IMPORT] {data['title'][:50]} (shopify {shopify_id})")
    return {"success": True, "action": "created", "article_id": result["article"].get("id")}


async def _handle_article_delete(payload: dict) -> dict:
    shopify_id = payload.get("id")
    existing = await get_article_by_shopify_id(shopify_id) if shopify_id else None
    if not existing:
        return {"success": True, "action": "none", "message": "Article not linked"}

    updated = await update_article(existing["id"], {
        "shopify_article_id": None,
        "shopify_blog_id": None,
        "shopify_synced_at": None,
        "shopify_sync_error": None,
    })
    if not updated:
        return {"success": False, "error": f"Failed to unlink article {existing['id']}"}
    print(f"  [UNLINK] {existing.get('title', '')[:50]} (shopify {shopify_id} deleted)")
    return {"success": True, "action": "unlinked", "article_id": existing["id"]}


async def handle_webhook_event(topic: str, payload: dict) -> dict:
    """
    Dispatch a Shopify webhook by topic.

    Returns:
        Result dict; unknown topics return {"success": True, "ignored": True}
    """
    try:
        if topic in ("articles/create", "articles/update"):
            return await _handle_article_upsert(payload)
        if topic == "articles/delete":
            return await _handle_article_delete(payload)
        if topic in BLOG_TOPICS:
            print(f"  [BLOG] {topic}: {payload.get('title') or payload.get('id')}")
            return {"success": True, "action": "acknowledged"}
    except Exception as e:
        print(f"Error handling webhook {topic}: {e}")
        return {"success": False, "error": f"Unexpected error: {str(e)}"}

    return {"success": True, "ignored": True}


# =============================================================================
# HTTP SERVER
# =============================================================================

async def shopify_webhook(request: web.Request) -> web.Response:
    raw_body = await request.read()
    secret = request.app["webhook_secret"]

    if not verify_webhook_hmac(raw_body, request.headers.get("X-Shopify-Hmac-SHA256"), secret):
        return web.json_response({"success": False, "error": "Invalid webhook signature"}, status=401)

    try:
        payload = json.loads(raw_body or b"{}")
    except (UnicodeDecodeError, ValueError):
        return web.json_response({"success": False, "error": "Invalid JSON payload"}, status=400)

    topic = request.headers.get("X-Shopify-Topic", "")
    print(f"Webhook received: {topic} from {request.headers.get('X-Shopify-Shop-Domain', 'unknown')}")

    result = await handle_webhook_event(topic, payload)
    return web.json_response(result, status=200)


async def health(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "healthy",
        "service": "shopify-webhooks",
        "timestamp": utc_now_iso(),
    })


def create_webhook_app(secret: Optional[str] = None) -> web.Application:
    """aiohttp app with POST /webhooks/shopify and GET /health."""
    app = web.Application()
    app["webhook_secret"] = secret if secret is not None else SHOPIFY_WEBHOOK_SECRET
    app.router.add_post("/webhooks/shopify", shopify_webhook)
    app.router.add_get("/health", health)
    return app


def run_webhook_server(host: str = WEBHOOK_HOST, port: int = WEBHOOK_PORT) -> None:
    if not SHOPIFY_WEBHOOK_SECRET:
        print("Warning: SHOPIFY_WEBHOOK_SECRET is not set; every webhook will be rejected")
    print(f"Listening for Shopify webhooks on http://{host}:{port}/webhooks/shopify")
    web.run_app(create_webhook_app(), host=host, port=port, print=None)
