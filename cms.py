#!/usr/bin/env python3
"""
Storefront CMS Publisher

Command line entry point for the article CMS. It can:
1. Generate articles from a topic with the multi-provider AI service
2. Manage articles and the topics queue in Supabase
3. Sync articles to and from Shopify
4. Import store products and reconcile their prices
5. Publish articles to WordPress, Ghost, Medium or Webflow
6. Receive Shopify webhooks

Usage:
    python cms.py "topic to write about"              # Generate an article
    python cms.py --from-queue 3                      # Generate from the topic queue
    python cms.py --suggest-titles "topic"            # Headline ideas
    python cms.py --list-articles                     # List articles
    python cms.py --shopify-sync-all                  # Push articles to Shopify
    python cms.py --publish my-article --platform ghost
    python cms.py --serve-webhooks                    # Run the webhook receiver
"""

import asyncio
import argparse
import sys
from pathlib import Path

from config import (
    validate_config,
    ENABLE_SHOPIFY_SYNC,
    SHOPIFY_STOREFRONT_URL,
    DEFAULT_TONE,
    DEFAULT_LENGTH,
    DEFAULT_TEMPLATE,
)
from publisher.article_store import (
    ARTICLE_STATUSES,
    duplicate_article,
    get_article_by_slug,
    get_article_stats,
    list_articles,
    update_article_status,
)
from publisher.topic_store import create_topic, list_topics, get_topic_queue_status
from publisher.utils import format_datetime


async def health_check(verbose: bool = False) -> dict:
    """
    Verify required services are reachable before starting.
    Returns dict with status and any errors.
    """
    import aiohttp
    from config import SUPABASE_URL, get_supabase_headers

    errors = []

    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(
                f"{SUPABASE_URL}/rest/v1/articles?select=id&limit=1",
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=10)
            ) as resp:
                if resp.status != 200:
                    errors.append(f"Supabase error: HTTP {resp.status}")
                elif verbose:
                    print("✓ Supabase connected")
    except Exception as e:
        errors.append(f"Supabase unreachable: {str(e)}")

    if ENABLE_SHOPIFY_SYNC:
        from publisher.shopify_tools import is_shopify_configured
        if not is_shopify_configured():
            errors.append("Shopify credentials incomplete but ENABLE_SHOPIFY_SYNC=true")
        elif verbose:
            print("✓ Shopify credentials configured")

    if errors:
        return {"success": False, "errors": errors}

    if verbose:
        print("✓ Health check passed\n")

    return {"success": True, "errors": []}


# =============================================================================
# ARTICLES AND TOPICS
# =============================================================================

async def print_articles(status: str = None, search: str = None) -> None:
    articles = await list_articles(status=status, search=search)
    if not articles:
        print("No articles found.")
        return

    print()
    print(f"{'TITLE':<50} {'STATUS':<22} {'SEO':<5} {'WORDS':<7} {'UPDATED':<18}")
    print("-" * 104)
    for article in articles:
        title = (article.get("title") or "")[:48]
        print(
            f"{title:<50} {article.get('status', 'draft'):<22} {article.get('seo_score') or 0:<5} "
            f"{article.get('word_count') or 0:<7} {format_datetime(article.get('updated_at') or ''):<18}"
        )
    print(f"\nTotal: {len(articles)}")


async def print_article_stats() -> None:
    stats = await get_article_stats()
    if not stats:
        print("Could not load article stats.")
        return
    print(f"Total articles: {stats['total_articles']}")
    print(f"Drafts: {stats['draft_articles']} | Published: {stats['published_articles']}")
    print(f"Total words: {stats['total_words']}")
    for status, count in sorted(stats["by_status"].items()):
        print(f"  {status:<22} {count}")


async def print_topics(status: str = None) -> None:
    topics = await list_topics(status=status)
    if not topics:
        print("No topics found.")
        return
    for topic in topics:
        print(f"  [{topic.get('status', 'pending'):<11}] {topic.get('topic_title', '')[:60]} ({topic.get('id')})")
    print(f"\nTotal: {len(topics)}")


async def print_topic_status() -> None:
    status = await get_topic_queue_status()
    print("Topic Queue Status:")
    print(f"  Pending:     {status.get('pending', 0)}")
    print(f"  In Progress: {status.get('in_progress', 0)}")
    print(f"  Completed:   {status.get('completed', 0)}")
    print(f"  Rejected:    {status.get('rejected', 0)}")
    print(f"  Total:       {status.get('total', 0)}")


# =============================================================================
# GENERATION
# =============================================================================

async def print_ai_status() -> None:
    from publisher.ai import get_ai_service

    service = get_ai_service()
    providers = service.get_available_providers()
    if not providers:
        print("No AI providers configured.")
        return

    valid = await service.validate_all_providers()
    health = await service.get_providers_health()
    for name in providers:
        h = health.get(name)
        state = "OK" if valid.get(name) else "FAIL"
        print(f"  {name:<10} [{state}] {h.response_time_ms if h else 0}ms")


async def print_title_suggestions(topic: str, tone: str, keywords: str) -> bool:
    from publisher.generation import suggest_titles

    result = await suggest_titles(topic, tone=tone, keywords=keywords)
    if result.get("error"):
        print(f"Warning: {result['error']}")
    if result.get("fallback"):
        print("(template titles; AI suggestions unavailable)")
    for i, title in enumerate(result.get("titles", []), 1):
        print(f"  {i}. {title}")
    return bool(result.get("titles"))


# =============================================================================
# PRODUCTS
# =============================================================================

async def print_products_for(topic: str) -> None:
    from publisher.product_tools import get_relevant_products

    products = await get_relevant_products(topic)
    if not products:
        print("No relevant products found.")
        return
    for product in products:
        price = f"${product.get('price_min') or 0:.2f}-${product.get('price_max') or 0:.2f}"
        print(f"  {product['title'][:50]:<52} {price:<18} {product.get('shopify_url') or ''}")


# =============================================================================
# PUBLISHING
# =============================================================================

async def publish_article(slug: str, platform_ids) -> bool:
    """Publish an article to one or more platforms in a single run."""
    from publisher.blog_integration import blog_integration
    from publisher.markdown_render import article_to_published_content

    if isinstance(platform_ids, str):
        platform_ids = [platform_ids]

    article = await get_article_by_slug(slug)
    if not article:
        print(f"Article not found: {slug}")
        return False

    title = article.get("title", slug)[:50]
    results = await blog_integration.publish_to_all(article_to_published_content(article), platform_ids)
    for result in results:
        platform_id = result.get("platform_id")
        if result["success"]:
            print(f"[OK] Published '{title}' to {platform_id}")
            if result.get("url"):
                print(f"URL: {result['url']}")
        else:
            print(f"[FAIL] {platform_id}: {result.get('error')}")

    return all(r["success"] for r in results)


async def export_article(slug: str, out_dir: str) -> bool:
    from publisher.markdown_render import article_to_published_content, export_as_files

    article = await get_article_by_slug(slug)
    if not article:
        print(f"Article not found: {slug}")
        return False

    files = export_as_files(article_to_published_content(article))
    target = Path(out_dir)
    target.mkdir(parents=True, exist_ok=True)

    for ext, key in (("md", "markdown"), ("html", "html"), ("json", "json")):
        path = target / f"{slug}.{ext}"
        path.write_text(files[key], encoding="utf-8")
        print(f"  Wrote {path}")
    return True


def require_shopify() -> None:
    if not ENABLE_SHOPIFY_SYNC:
        print("Shopify sync is not enabled. Set ENABLE_SHOPIFY_SYNC=true in .env")
        sys.exit(1)


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Manage, generate and publish storefront blog articles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Modes:
  GENERATE:   python cms.py "How to choose a standing desk"
  QUEUE:      python cms.py --from-queue 3
  TITLES:     python cms.py --suggest-titles "standing desks"
  ARTICLES:   python cms.py --list-articles [--status draft]
  TOPICS:     python cms.py --topics | --add-topic "Title" | --topic-status
  SHOPIFY:    python cms.py --shopify-sync-all | --shopify-import
  PRODUCTS:   python cms.py --import-products | --fix-prices [--dry-run]
  PUBLISH:    python cms.py --publish <slug> --platform wordpress
  EXPORT:     python cms.py --export <slug> --out ./exports
  WEBHOOKS:   python cms.py --serve-webhooks

Examples:
  # Generate, skip editorial review and push to Shopify
  python cms.py "Best desk setups for small spaces" --keywords "desk, small office" \\
      --skip-review --auto-publish --with-products -v

  # Queue a topic for later
  python cms.py --add-topic "Cable management basics" --keywords "cables, desk"

  # Push every article that changed since its last sync
  python cms.py --shopify-sync-all

  # Re-sync everything, including up-to-date articles
  python cms.py --shopify-sync-all --force

  # Overwrite local articles with Shopify content
  python cms.py --shopify-import --force-pull

  # Show which stored product prices would change
  python cms.py --fix-prices --dry-run
        """
    )

    parser.add_argument(
        "topic",
        nargs="?",
        help="Topic title to generate an article for"
    )
    parser.add_argument(
        "--health",
        action="store_true",
        help="Run the health check and exit"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print detailed progress"
    )

    articles_group = parser.add_argument_group('Articles')
    articles_group.add_argument(
        "--list-articles",
        action="store_true",
        help="List articles (filter with --status and --search)"
    )
    articles_group.add_argument(
        "--status",
        choices=ARTICLE_STATUSES,
        help="Status filter for --list-articles"
    )
    articles_group.add_argument(
        "--search",
        metavar="TEXT",
        help="Title/content search for --list-articles"
    )
    articles_group.add_argument(
        "--article-stats",
        action="store_true",
        help="Show article counts and word totals"
    )
    articles_group.add_argument(
        "--duplicate-article",
        metavar="UUID",
        help="Copy an article as a new draft"
    )
    articles_group.add_argument(
        "--set-status",
        nargs=2,
        metavar=("UUID", "STATUS"),
        help="Change an article's status"
    )

    topics_group = parser.add_argument_group('Topics')
    topics_group.add_argument(
        "--add-topic",
        metavar="TITLE",
        help="Add a topic to the queue without generating"
    )
    topics_group.add_argument(
        "--topics",
        action="store_true",
        help="List topics (filter with --topic-filter)"
    )
    topics_group.add_argument(
        "--topic-filter",
        choices=("pending", "in_progress", "completed", "rejected"),
        help="Status filter for --topics"
    )
    topics_group.add_argument(
        "--topic-status",
        action="store_true",
        help="Show topic queue counts"
    )

    generation_group = parser.add_argument_group('Generation')
    generation_group.add_argument(
        "--generate",
        metavar="TITLE",
        help="Generate an article (same as the positional topic)"
    )
    generation_group.add_argument(
        "--from-queue",
        type=int,
        nargs="?",
        const=1,
        metavar="N",
        help="Generate articles for the next N queued topics (default: 1)"
    )
    generation_group.add_argument(
        "--keywords", "-k",
        default="",
        help="Comma-separated target keywords"
    )
    generation_group.add_argument(
        "--tone",
        default=DEFAULT_TONE,
        help=f"Writing tone (default: {DEFAULT_TONE})"
    )
    generation_group.add_argument(
        "--length",
        default=DEFAULT_LENGTH,
        choices=("short", "medium", "long", "comprehensive"),
        help=f"Article length (default: {DEFAULT_LENGTH})"
    )
    generation_group.add_argument(
        "--template",
        default=DEFAULT_TEMPLATE,
        help=f"Content template (default: {DEFAULT_TEMPLATE})"
    )
    generation_group.add_argument(
        "--provider",
        choices=("anthropic", "openai", "google"),
        help="Preferred AI provider"
    )
    generation_group.add_argument(
        "--skip-review",
        action="store_true",
        help="Publish directly instead of ready_for_editorial"
    )
    generation_group.add_argument(
        "--auto-publish",
        action="store_true",
        help="Sync the generated article to Shopify"
    )
    generation_group.add_argument(
        "--with-products",
        action="store_true",
        help="Mention relevant store products in the article"
    )
    generation_group.add_argument(
        "--suggest-titles",
        metavar="TOPIC",
        help="Suggest headlines for a topic"
    )
    generation_group.add_argument(
        "--ai-status",
        action="store_true",
        help="Validate configured AI providers"
    )

    shopify_group = parser.add_argument_group('Shopify Sync')
    shopify_group.add_argument(
        "--shopify-sync",
        type=str,
        metavar="SLUG",
        help="Sync a specific article to Shopify by slug"
    )
    shopify_group.add_argument(
        "--shopify-sync-id",
        type=str,
        metavar="UUID",
        help="Sync a specific article to Shopify by ID"
    )
    shopify_group.add_argument(
        "--shopify-sync-all",
        action="store_true",
        help="Sync all articles that need syncing"
    )
    shopify_group.add_argument(
        "--shopify-sync-pending",
        action="store_true",
        help="Sync articles that were never synced or changed since"
    )
    shopify_group.add_argument(
        "--shopify-sync-recent",
        type=int,
        metavar="N",
        help="Sync the N most recently updated articles"
    )
    shopify_group.add_argument(
        "--shopify-status",
        action="store_true",
        help="Show Shopify sync status of all articles"
    )
    shopify_group.add_argument(
        "--shopify-import",
        action="store_true",
        help="Import articles from Shopify"
    )
    shopify_group.add_argument(
        "--shopify-import-article",
        metavar="HANDLE",
        help="Import one Shopify article by handle (overwrites local)"
    )
    shopify_group.add_argument(
        "--shopify-test",
        action="store_true",
        help="Check Shopify credentials"
    )
    shopify_group.add_argument(
        "--force",
        action="store_true",
        help="Sync even if the article is already up to date"
    )
    shopify_group.add_argument(
        "--force-pull",
        action="store_true",
        help="Overwrite existing local articles during import"
    )

    products_group = parser.add_argument_group('Products')
    products_group.add_argument(
        "--import-products",
        action="store_true",
        help="Import products from the storefront products.json feed"
    )
    products_group.add_argument(
        "--fix-prices",
        action="store_true",
        help="Reconcile stored product prices with the storefront"
    )
    products_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Report price changes without writing"
    )
    products_group.add_argument(
        "--store-url",
        default=SHOPIFY_STOREFRONT_URL,
        help="Storefront URL (default: SHOPIFY_STOREFRONT_URL)"
    )
    products_group.add_argument(
        "--products-for",
        metavar="TOPIC",
        help="Show products relevant to a topic"
    )

    publishing_group = parser.add_argument_group('Publishing')
    publishing_group.add_argument(
        "--publish",
        metavar="SLUG",
        help="Publish an article to --platform"
    )
    publishing_group.add_argument(
        "--platform",
        choices=("shopify", "wordpress", "ghost", "medium", "webflow"),
        action="append",
        help="Target platform (repeatable)"
    )
    publishing_group.add_argument(
        "--export",
        metavar="SLUG",
        help="Write an article as .md, .html and .json"
    )
    publishing_group.add_argument(
        "--out",
        default="exports",
        metavar="DIR",
        help="Output directory for --export (default: exports)"
    )

    webhook_group = parser.add_argument_group('Webhooks')
    webhook_group.add_argument(
        "--serve-webhooks",
        action="store_true",
        help="Run the Shopify webhook receiver"
    )

    args = parser.parse_args()

    generate_title = args.generate or args.topic

    # Validate configuration
    try:
        validate_config(require_ai=bool(generate_title or args.from_queue or args.suggest_titles or args.ai_status))
    except ValueError as e:
        print(f"Configuration Error: {e}")
        sys.exit(1)

    # Health check (skip for status-only commands)
    skip_health_check = args.topic_status or args.shopify_status or args.article_stats or args.serve_webhooks
    if args.health or not skip_health_check:
        health = asyncio.run(health_check(verbose=args.verbose or args.health))
        if not health["success"]:
            print("Health check failed:")
            for error in health["errors"]:
                print(f"  ✗ {error}")
            sys.exit(1)

    if args.health:
        sys.exit(0)

    # Articles
    elif args.list_articles:
        asyncio.run(print_articles(status=args.status, search=args.search))

    elif args.article_stats:
        asyncio.run(print_article_stats())

    elif args.duplicate_article:
        result = asyncio.run(duplicate_article(args.duplicate_article))
        if not result.get("success"):
            print(f"Error: {result.get('error')}")
            sys.exit(1)
        print(f"Created copy: {result['article'].get('slug')} ({result['article'].get('id')})")

    elif args.set_status:
        article_id, status = args.set_status
        if status not in ARTICLE_STATUSES:
            print(f"Invalid status '{status}'. Choose from: {', '.join(ARTICLE_STATUSES)}")
            sys.exit(1)
        updated = asyncio.run(update_article_status(article_id, status))
        print(f"Status set to {status}" if updated else f"Failed to update article {article_id}")
        sys.exit(0 if updated else 1)

    # Topics
    elif args.add_topic:
        result = asyncio.run(create_topic(args.add_topic, keywords=args.keywords, tone=args.tone,
                                          length=args.length, template=args.template))
        if not result.get("success"):
            print(f"Error: {result.get('error')}")
            sys.exit(1)
        print(f"Topic queued: {result['topic'].get('id')}")

    elif args.topics:
        asyncio.run(print_topics(status=args.topic_filter))

    elif args.topic_status:
        asyncio.run(print_topic_status())

    # Generation
    elif args.suggest_titles:
        found = asyncio.run(print_title_suggestions(args.suggest_titles, args.tone, args.keywords))
        sys.exit(0 if found else 1)

    elif args.ai_status:
        asyncio.run(print_ai_status())

    # Shopify sync commands
    elif args.shopify_test:
        from publisher.shopify_tools import test_shopify_connection
        result = asyncio.run(test_shopify_connection())
        if not result["success"]:
            print(f"Shopify connection failed: {result['error']}")
            sys.exit(1)
        shop = result.get("shop", {})
        print(f"Connected to {shop.get('name')} ({shop.get('myshopifyDomain')})")

    elif args.shopify_sync:
        require_shopify()
        from publisher.shopify_sync import sync_article_by_slug
        success = asyncio.run(sync_article_by_slug(args.shopify_sync, force=args.force))
        sys.exit(0 if success else 1)

    elif args.shopify_sync_id:
        require_shopify()
        from publisher.shopify_sync import sync_article_by_id
        success = asyncio.run(sync_article_by_id(args.shopify_sync_id, force=args.force))
        sys.exit(0 if success else 1)

    elif args.shopify_sync_all:
        require_shopify()
        from publisher.shopify_sync import sync_all_articles
        result = asyncio.run(sync_all_articles(force=args.force))
        print(f"\nSynced: {result['synced']} | Failed: {result['failed']} | Skipped: {result['skipped']}")

    elif args.shopify_sync_pending:
        require_shopify()
        from publisher.shopify_sync import sync_pending_articles
        result = asyncio.run(sync_pending_articles())
        print(f"\nSynced: {result['synced']} | Failed: {result['failed']} | Skipped: {result['skipped']}")

    elif args.shopify_sync_recent:
        require_shopify()
        from publisher.shopify_sync import sync_recent
        result = asyncio.run(sync_recent(args.shopify_sync_recent, force=args.force))
        print(f"\nSynced: {result['synced']} | Failed: {result['failed']} | Skipped: {result['skipped']}")

    elif args.shopify_status:
        from publisher.shopify_sync import show_sync_status
        asyncio.run(show_sync_status())

    elif args.shopify_import:
        require_shopify()
        from publisher.shopify_sync import import_articles_from_shopify
        result = asyncio.run(import_articles_from_shopify(force_pull=args.force_pull))
        sys.exit(1 if result["errors"] else 0)

    elif args.shopify_import_article:
        require_shopify()
        from publisher.shopify_sync import import_single_article_from_shopify
        success = asyncio.run(import_single_article_from_shopify(args.shopify_import_article))
        sys.exit(0 if success else 1)

    # Products
    elif args.import_products or args.fix_prices:
        if not args.store_url:
            print("No storefront URL. Pass --store-url or set SHOPIFY_STOREFRONT_URL in .env")
            sys.exit(1)
        from publisher.product_tools import import_products_from_storefront, fix_product_prices
        if args.import_products:
            result = asyncio.run(import_products_from_storefront(args.store_url))
            print(f"\nImported: {result['imported']} | Failed: {result['failed']}")
        else:
            result = asyncio.run(fix_product_prices(args.store_url, dry_run=args.dry_run))
        sys.exit(1 if result["failed"] else 0)

    elif args.products_for:
        asyncio.run(print_products_for(args.products_for))

    # Publishing
    elif args.publish:
        if not args.platform:
            print("Choose at least one --platform")
            sys.exit(1)
        success = asyncio.run(publish_article(args.publish, args.platform))
        sys.exit(0 if success else 1)

    elif args.export:
        success = asyncio.run(export_article(args.export, args.out))
        sys.exit(0 if success else 1)

    # Webhooks
    elif args.serve_webhooks:
        from publisher.webhooks import run_webhook_server
        run_webhook_server()

    elif args.from_queue:
        from publisher.generation import generate_from_queue
        print(f"Generating from queue (up to {args.from_queue} topic(s))")
        print("="*50)
        result = asyncio.run(generate_from_queue(
            args.from_queue,
            ai_provider=args.provider,
            skip_editorial_review=args.skip_review,
            auto_publish_to_shopify=args.auto_publish,
            include_products=args.with_products,
            verbose=args.verbose,
        ))
        print("="*50)
        print(f"Generated: {result['generated']} | Failed: {result['failed']}")
        sys.exit(1 if result["failed"] else 0)

    elif generate_title:
        from publisher.generation import generate_and_publish
        print(f"Generating: {generate_title}")
        print("="*50)
        result = asyncio.run(generate_and_publish(
            generate_title,
            keywords=args.keywords,
            tone=args.tone,
            length=args.length,
            template=args.template,
            ai_provider=args.provider,
            skip_editorial_review=args.skip_review,
            auto_publish_to_shopify=args.auto_publish,
            include_products=args.with_products,
            verbose=args.verbose,
        ))
        print("="*50)

        if result["success"]:
            print(f"\n{result.get('message')}")
            print(f"Article ID: {result.get('article_id')}")
            print(f"Status: {result.get('status')}")
            meta = result.get("generation_metadata", {})
            print(f"Provider: {meta.get('ai_model')} | Tokens: {meta.get('tokens', 0)} | Cost: ${meta.get('cost', 0):.4f}")
            if "shopify_synced" in result:
                print(f"Shopify: {'synced' if result['shopify_synced'] else 'not synced'}")
        else:
            print(f"\nFailed to generate article: {result.get('error', 'unknown error')}")
            sys.exit(1)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
