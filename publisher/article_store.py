"""
Article Store - CRUD for CMS articles in Supabase

Articles live in the `articles` table and move through an editorial workflow
(draft -> review -> approved -> published) plus the generation states used by
the generate-and-publish pipeline.
"""

import json
from typing import Optional
import aiohttp

from config import SUPABASE_URL, get_supabase_headers
from publisher.utils import (
    generate_handle_from_title,
    count_words,
    calculate_reading_time,
    parse_article_keywords,
    utc_now_iso,
)


ARTICLE_STATUSES = (
    "draft",
    "review",
    "approved",
    "published",
    "rejected",
    "generating",
    "ready_for_editorial",
    "generation_failed",
    "published_hidden",
)

SORTABLE_COLUMNS = ("updated_at", "created_at", "title", "published_at", "seo_score", "word_count")


def _articles_url(query: str = "") -> str:
    return f"{SUPABASE_URL}/rest/v1/articles{query}"


def _prepare_article_payload(data: dict) -> dict:
    """Derive slug, word count, reading time and keyword JSON from form data."""
    payload = dict(data)

    if "content" in payload and payload["content"] is not None:
        words = count_words(payload["content"])
        payload["word_count"] = words
        payload["reading_time"] = calculate_reading_time(words)

    if "target_keywords" in payload:
        keywords = parse_article_keywords(payload["target_keywords"])
        payload["target_keywords"] = json.dumps(keywords) if keywords else None

    return payload


# =============================================================================
# CREATE / READ
# =============================================================================

async def create_article(data: dict) -> dict:
    """
    Insert a new article.

    Args:
        data: Article fields. `title` is required; `slug` defaults to a handle
              generated from the title, `status` to draft.

    Returns:
        dict with keys: success, article, error
    """
    title = (data.get("title") or "").strip()
    if not title:
        return {"success": False, "error": "Title is required"}

    payload = _prepare_article_payload(data)
    payload["title"] = title
    payload.setdefault("content", "")
    payload.setdefault("status", "draft")
    if not payload.get("slug"):
        payload["slug"] = generate_handle_from_title(title)

    if payload["status"] not in ARTICLE_STATUSES:
        return {"success": False, "error": f"Invalid status: {payload['status']}"}

    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.post(_articles_url(), headers=headers, json=payload) as resp:
                if resp.status in [200, 201]:
                    rows = await resp.json()
                    return {"success": True, "article": rows[0] if rows else payload}
                error = await resp.text()
                return {"success": False, "error": error}
    except aiohttp.ClientError as e:
        return {"success": False, "error": f"Network error: {str(e)}"}
    except Exception as e:
        return {"success": False, "error": f"Unexpected error: {str(e)}"}


async def get_article_by_id(article_id: str) -> Optional[dict]:
    """Fetch a single article by ID."""
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(
                _articles_url(f"?id=eq.{article_id}&select=*&limit=1"),
                headers=headers
            ) as resp:
                if resp.status == 200:
                    rows = await resp.json()
                    return rows[0] if rows else None
                return None
    except Exception:
        return None


async def get_article_by_slug(slug: str) -> Optional[dict]:
    """Fetch a single article by slug."""
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(
                _articles_url(f"?slug=eq.{slug}&select=*&limit=1"),
                headers=headers
            ) as resp:
                if resp.status == 200:
                    rows = await resp.json()
                    return rows[0] if rows else None
                return None
    except Exception:
        return None


async def get_article_by_shopify_id(shopify_article_id: str) -> Optional[dict]:
    """Fetch the article linked to a Shopify article GID."""
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(
                _articles_url("?select=*&limit=1"),
                headers=headers,
                params={"shopify_article_id": f"eq.{shopify_article_id}"},
            ) as resp:
                if resp.status == 200:
                    rows = await resp.json()
                    return rows[0] if rows else None
                return None
    except Exception:
        return None


async def list_articles(
    status: Optional[str] = None,
    search: Optional[str] = None,
    order_by: str = "updated_at",
    ascending: bool = False,
    limit: Optional[int] = None,
) -> list:
    """
    List articles with optional status filter and title/content search.

    Args:
        status: Only return articles in this status
        search: Case-insensitive match against title or content
        order_by: Column to sort by (default updated_at)
        ascending: Sort direction
        limit: Maximum rows

    Returns:
        List of article dicts, or empty list on error
    """
    if order_by not in SORTABLE_COLUMNS:
        order_by = "updated_at"

    params = {
        "select": "*",
        "order": f"{order_by}.{'asc' if ascending else 'desc'}",
    }
    if status:
        params["status"] = f"eq.{status}"
    if search:
        term = search.replace(",", " ").strip()
        params["or"] = f"(title.ilike.*{term}*,content.ilike.*{term}*)"
    if limit:
        params["limit"] = str(limit)

    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(_articles_url(), headers=headers, params=params) as resp:
                if resp.status == 200:
                    return await resp.json()
                return []
    except Exception as e:
        print(f"Error fetching articles: {e}")
        return []


# =============================================================================
# UPDATE / DELETE
# =============================================================================

async def update_article(article_id: str, data: dict) -> Optional[dict]:
    """
    Update an article. Word count and reading time are recomputed when the
    content changes, and updated_at is stamped.

    Returns:
        The updated article, or None on failure
    """
    payload = _prepare_article_payload(data)
    payload.setdefault("updated_at", utc_now_iso())

    if "status" in payload and payload["status"] not in ARTICLE_STATUSES:
        print(f"Warning: refusing invalid status '{payload['status']}'")
        return None

    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.patch(
                _articles_url(f"?id=eq.{article_id}"),
                headers=headers,
                json=payload
            ) as resp:
                if resp.status in [200, 204]:
                    if resp.status == 204:
                        return {"id": article_id, **payload}
                    rows = await resp.json()
                    return rows[0] if rows else None
                return None
    except Exception as e:
        print(f"Error updating article {article_id}: {e}")
        return None


async def update_article_status(article_id: str, status: str) -> Optional[dict]:
    """Move an article to a new workflow status."""
    if status not in ARTICLE_STATUSES:
        return None
    data = {"status": status}
    if status == "published":
        data["published_at"] = utc_now_iso()
    return await update_article(article_id, data)


async def delete_article(article_id: str) -> bool:
    """Delete an article by ID."""
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.delete(
                _articles_url(f"?id=eq.{article_id}"),
                headers=headers
            ) as resp:
                return resp.status in [200, 204]
    except Exception:
        return False


async def duplicate_article(article_id: str) -> dict:
    """Copy an article as a new draft titled '<title> (Copy)'."""
    original = await get_article_by_id(article_id)
    if not original:
        return {"success": False, "error": "Article not found"}

    copy_title = f"{original['title']} (Copy)"
    return await create_article({
        "title": copy_title,
        "content": original.get("content", ""),
        "meta_description": original.get("meta_description"),
        "status": "draft",
        "target_keywords": original.get("target_keywords"),
        "seo_score": original.get("seo_score"),
    })


async def update_article_shopify_fields(
    article_id: str,
    shopify_article_id: Optional[str] = None,
    shopify_blog_id: Optional[str] = None,
    error: Optional[str] = None,
) -> bool:
    """Record the outcome of a Shopify sync on the article."""
    if error:
        data = {"shopify_sync_error": error}
    else:
        data = {
            "shopify_article_id": shopify_article_id,
            "shopify_synced_at": utc_now_iso(),
            "shopify_sync_error": None,
        }
        if shopify_blog_id:
            data["shopify_blog_id"] = shopify_blog_id

    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.patch(
                _articles_url(f"?id=eq.{article_id}"),
                headers=headers,
                json=data
            ) as resp:
                return resp.status in [200, 204]
    except Exception:
        return False


# =============================================================================
# DRAFTS AND STATS
# =============================================================================

async def save_article_draft(content: dict) -> dict:
    """
    Save edited content as a draft article, updating the existing row with
    the same slug when there is one.

    Args:
        content: Published-content dict (title, slug, meta_description, tags, content)

    Returns:
        dict with keys: success, article, created, error
    """
    title = content.get("title", "")
    slug = content.get("slug") or generate_handle_from_title(title)

    data = {
        "title": title,
        "slug": slug,
        "content": content.get("content", ""),
        "meta_description": content.get("meta_description"),
        "target_keywords": content.get("tags") or [],
        "status": "draft",
    }
    if content.get("scheduled_date"):
        data["scheduled_publish_date"] = content["scheduled_date"]

    existing = await get_article_by_slug(slug) if slug else None
    if existing:
        updated = await update_article(existing["id"], data)
        if updated:
            return {"success": True, "article": updated, "created": False}
        return {"success": False, "error": "Failed to update draft"}

    result = await create_article(data)
    if result.get("success"):
        return {"success": True, "article": result["article"], "created": True}
    return {"success": False, "error": result.get("error", "Failed to save draft")}


async def get_article_stats() -> Optional[dict]:
    """Totals for the article dashboard."""
    articles = await list_articles()
    if articles is None:
        return None

    by_status: dict[str, int] = {}
    for article in articles:
        status = article.get("status") or "draft"
        by_status[status] = by_status.get(status, 0) + 1

    return {
        "total_articles": len(articles),
        "draft_articles": by_status.get("draft", 0),
        "published_articles": by_status.get("published", 0),
        "total_words": sum(a.get("word_count") or 0 for a in articles),
        "by_status": by_status,
    }
