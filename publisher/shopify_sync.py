"""
Shopify Sync - CLI handlers for syncing CMS articles with Shopify

This module provides functions for:
1. Pushing articles to Shopify (single, pending, recent, all)
2. Displaying sync status
3. Importing Shopify articles back into the articles table
"""

from typing import Optional

from config import SHOPIFY_DEFAULT_BLOG_ID, SHOPIFY_DEFAULT_AUTHOR
from publisher.article_store import (
    list_articles,
    get_article_by_id,
    get_article_by_slug,
    create_article,
    update_article,
    update_article_shopify_fields,
)
from publisher.shopify_tools import (
    sync_article_to_shopify,
    get_shopify_visibility_label,
    clear_sync_cache,
    fetch_all_shopify_blogs,
    fetch_all_shopify_articles,
    map_shopify_to_article,
)
from publisher.utils import create_gid, extract_numeric_id, format_datetime, utc_now_iso


MIN_IMPORT_CONTENT_LENGTH = 50


# =============================================================================
# BLOG RESOLUTION
# =============================================================================

async def resolve_blog_gid(article: Optional[dict] = None) -> Optional[str]:
    """
    Pick the Shopify blog for an article: the article's own blog, then
    SHOPIFY_DEFAULT_BLOG_ID, then the first blog in the store.
    """
    blog_id = (article or {}).get("shopify_blog_id") or SHOPIFY_DEFAULT_BLOG_ID
    if blog_id:
        blog_id = str(blog_id)
        return blog_id if blog_id.startswith("gid://") else create_gid("Blog", blog_id)

    blogs = await fetch_all_shopify_blogs()
    if blogs:
        return blogs[0].get("id")
    return None


# =============================================================================
# ARTICLE SYNC FUNCTIONS
# =============================================================================

def _needs_sync(article: dict) -> bool:
    """Check if an article needs syncing."""
    shopify_article_id = article.get('shopify_article_id')
    updated_at = article.get('updated_at') or ''
    synced_at = article.get('shopify_synced_at') or ''

    # Never synced
    if not shopify_article_id:
        return True

    # Last attempt failed
    if article.get('shopify_sync_error'):
        return True

    # Updated since last sync
    if updated_at and (not synced_at or updated_at > synced_at):
        return True

    return False


async def _sync_single_article(article: dict, force: bool = False) -> str:
    """
    Internal function to sync a single article.

    Returns:
        "synced" if successfully synced
        "skipped" if article is up-to-date and not forced
        "failed" if sync failed
    """
    article_id = article['id']
    title = article.get('title', '')
    status = article.get('status', 'draft')

    if status in ('generating', 'generation_failed'):
        print(f"  [SKIP] {title[:50]} - not ready ({status})")
        return "skipped"

    if not force and not _needs_sync(article):
        visibility = get_shopify_visibility_label(status)
        print(f"  [SKIP] {title[:50]} - up-to-date ({visibility})")
        return "skipped"

    blog_gid = await resolve_blog_gid(article)
    if not blog_gid:
        print(f"  [FAIL] {title[:50]} - no Shopify blog available")
        return "failed"

    visibility = get_shopify_visibility_label(status)
    print(f"  Syncing: {title[:50]}... ({visibility})", end=" ")

    result = await sync_article_to_shopify(
        article,
        shopify_blog_gid=blog_gid,
        existing_shopify_id=article.get('shopify_article_id'),
        author_name=SHOPIFY_DEFAULT_AUTHOR or None,
    )

    if result.get("success"):
        await update_article_shopify_fields(
            article_id,
            shopify_article_id=extract_numeric_id(result["shopify_article_id"]),
            shopify_blog_id=extract_numeric_id(blog_gid),
        )
        print("OK")
        return "synced"

    error = result.get('error', 'Unknown error')
    await update_article_shopify_fields(article_id, error=error)
    print(f"FAILED: {error}")
    return "failed"


async def _sync_articles(articles: list, force: bool = False) -> dict:
    synced = 0
    failed = 0
    skipped = 0

    for article in articles:
        result = await _sync_single_article(article, force=force)
        if result == "synced":
            synced += 1
        elif result == "skipped":
            skipped += 1
        else:
            failed += 1

    return {"synced": synced, "failed": failed, "skipped": skipped}


async def sync_article_by_slug(slug: str, force: bool = False) -> bool:
    """Sync a single article by slug."""
    clear_sync_cache()
    article = await get_article_by_slug(slug)
    if not article:
        print(f"Article not found: {slug}")
        return False
    return await _sync_single_article(article, force=force) != "failed"


async def sync_article_by_id(article_id: str, force: bool = False) -> bool:
    """Sync a single article by ID."""
    clear_sync_cache()
    article = await get_article_by_id(article_id)
    if not article:
        print(f"Article not found: {article_id}")
        return False
    return await _sync_single_article(article, force=force) != "failed"


async def sync_all_articles(force: bool = False) -> dict:
    """
    Sync all articles to Shopify.

    Args:
        force: Force re-sync even if an article appears up-to-date

    Returns:
        dict with keys: synced, failed, skipped
    """
    clear_sync_cache()
    articles = await list_articles()

    if not articles:
        print("No articles found in database.")
        return {"synced": 0, "failed": 0, "skipped": 0}

    print(f"Found {len(articles)} article(s) to sync...\n")
    return await _sync_articles(articles, force=force)


async def get_articles_needing_sync() -> list:
    """Articles that were never synced or changed since their last sync."""
    articles = await list_articles()
    return [
        a for a in articles
        if _needs_sync(a) and a.get("status") not in ("generating", "generation_failed")
    ]


async def sync_pending_articles() -> dict:
    """
    Sync only articles that need syncing (smart sync).

    Returns:
        dict with keys: synced, failed, skipped
    """
    clear_sync_cache()
    articles = await get_articles_needing_sync()

    if not articles:
        print("No articles need syncing. Use --force with --shopify-sync-all to re-sync all.")
        return {"synced": 0, "failed": 0, "skipped": 0}

    print(f"Found {len(articles)} article(s) needing sync...\n")
    return await _sync_articles(articles)


async def sync_recent(n: int, force: bool = False) -> dict:
    """
    Sync the N most recently updated articles.

    Returns:
        dict with keys: synced, failed, skipped
    """
    clear_sync_cache()
    articles = await list_articles(limit=n)

    if not articles:
        print("No articles found.")
        return {"synced": 0, "failed": 0, "skipped": 0}

    print(f"Syncing {len(articles)} most recent article(s)...\n")
    return await _sync_articles(articles, force=force)


# =============================================================================
# STATUS DISPLAY FUNCTIONS
# =============================================================================

def _get_sync_status(article: dict) -> str:
    if article.get('shopify_sync_error'):
        return "ERROR"
    if not article.get('shopify_article_id'):
        return "NOT SYNCED"
    if _needs_sync(article):
        return "STALE"
    return "SYNCED"


async def show_sync_status() -> None:
    """Print table of article sync status."""
    articles = await list_articles()

    if not articles:
        print("No articles found.")
        return

    print()
    print(f"{'TITLE':<42} {'STATUS':<20} {'SHOPIFY':<10} {'SYNC STATUS':<14} {'LAST EDIT':<18} {'LAST SYNC':<18}")
    print("-" * 122)

    for article in articles:
        title = (article.get('title') or '')[:40]
        status = article.get('status', 'draft')
        shopify_vis = get_shopify_visibility_label(status)
        sync_status = _get_sync_status(article)
        updated_at = format_datetime(article.get('updated_at') or '')
        synced_at = format_datetime(article.get('shopify_synced_at') or '')

        print(f"{title:<42} {status:<20} {shopify_vis:<10} {sync_status:<14} {updated_at:<18} {synced_at:<18}")

    print()

    statuses = [_get_sync_status(a) for a in articles]
    print(
        f"Total: {len(articles)} | Synced: {statuses.count('SYNCED')} | Stale: {statuses.count('STALE')} | "
        f"Not Synced: {statuses.count('NOT SYNCED')} | Errors: {statuses.count('ERROR')}"
    )


# =============================================================================
# IMPORT FUNCTIONS (Shopify -> Supabase)
# =============================================================================

async def _import_article_node(node: dict, force_pull: bool) -> str:
    """
    Import one Shopify article node.

    Returns:
        "imported", "updated", "skipped" or an error message prefixed with "error:"
    """
    data = map_shopify_to_article(node)
    slug = data.get("slug")
    title = data.get("title", "")

    if not slug:
        return f"error: Article {node.get('id')} has no handle"

    content_length = len((data.get("content") or "").strip())
    if content_length < MIN_IMPORT_CONTENT_LENGTH:
        print(f"  [SKIP] {title[:50]}... ({slug}) - empty/minimal content ({content_length} chars)")
        return "skipped"

    data["shopify_synced_at"] = data["updated_at"] = utc_now_iso()
    data["shopify_sync_error"] = None

    existing = await get_article_by_slug(slug)
    if existing:
        if not force_pull:
            print(f"  [SKIP] {title[:50]}... ({slug}) - already exists")
            return "skipped"

        # Keep local keywords when Shopify has no tags
        if data.get("target_keywords") == "[]":
            data.pop("target_keywords")

        updated = await update_article(existing["id"], data)
        if updated:
            print(f"  [UPDATE] {title[:50]}... ({slug})")
            return "updated"
        return f"error: Failed to update {slug}"

    result = await create_article(data)
    if result.get("success"):
        print(f"  [IMPORT] {title[:50]}... ({slug})")
        return "imported"

    print(f"  [FAIL] {title[:50]}... ({slug}) - {result.get('error')}")
    return f"error: Failed to import {slug}: {result.get('error')}"


async def import_articles_from_shopify(force_pull: bool = False) -> dict:
    """
    Import articles from Shopify into the articles table.

    Args:
        force_pull: Overwrite existing articles with Shopify data. By default
                    articles that already exist (by slug) are skipped.

    Returns:
        dict with keys: imported, updated, skipped, errors
    """
    print("Fetching articles from Shopify...")
    clear_sync_cache()

    nodes = await fetch_all_shopify_articles()
    if not nodes:
        print("No articles found in Shopify (or fetch failed).")
        return {"imported": 0, "updated": 0, "skipped": 0, "errors": []}

    print(f"Found {len(nodes)} articles in Shopify\n")

    counts = {"imported": 0, "updated": 0, "skipped": 0}
    errors = []

    for node in nodes:
        outcome = await _import_article_node(node, force_pull)
        if outcome in counts:
            counts[outcome] += 1
        else:
            errors.append(outcome.replace("error: ", "", 1))

    print()
    print(f"Import complete: {counts['imported']} imported, {counts['updated']} updated, {counts['skipped']} skipped")
    if errors:
        print(f"Errors: {len(errors)}")
        for err in errors[:5]:
            print(f"  - {err}")

    return {**counts, "errors": errors}


async def import_single_article_from_shopify(handle: str) -> bool:
    """
    Import one Shopify article by handle, always overwriting local data.
    """
    clear_sync_cache()
    nodes = await fetch_all_shopify_articles()
    matches = [n for n in nodes if n.get("handle") == handle]

    if not matches:
        print(f"Article '{handle}' not found in Shopify.")
        return False

    outcome = await _import_article_node(matches[0], force_pull=True)
    if outcome.startswith("error:"):
        print(outcome)
        return False
    return outcome != "skipped"
