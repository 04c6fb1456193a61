"""
Storefront CMS Publisher

Article and topic storage in Supabase, AI generation, quality analysis,
Shopify sync and publishing to external blog platforms.
"""

from .article_store import (
    create_article,
    get_article_by_id,
    get_article_by_slug,
    list_articles,
    update_article,
    update_article_status,
    delete_article,
    duplicate_article,
    save_article_draft,
    get_article_stats,
)

from .topic_store import (
    create_topic,
    list_topics,
    claim_next_topic,
    complete_topic,
    reject_topic,
    release_topic,
    get_topic_queue_status,
)

from .quality import analyze_content

from .generation import (
    generate_and_publish,
    generate_next_topic,
    generate_from_queue,
    suggest_titles,
)

from .shopify_sync import (
    sync_article_by_slug,
    sync_article_by_id,
    sync_all_articles,
    sync_pending_articles,
    import_articles_from_shopify,
)

from .blog_integration import (
    BlogIntegrationService,
    get_platforms,
)

__all__ = [
    # Articles
    "create_article",
    "get_article_by_id",
    "get_article_by_slug",
    "list_articles",
    "update_article",
    "update_article_status",
    "delete_article",
    "duplicate_article",
    "save_article_draft",
    "get_article_stats",
    # Topics
    "create_topic",
    "list_topics",
    "claim_next_topic",
    "complete_topic",
    "reject_topic",
    "release_topic",
    "get_topic_queue_status",
    # Generation and quality
    "analyze_content",
    "generate_and_publish",
    "generate_next_topic",
    "generate_from_queue",
    "suggest_titles",
    # Shopify
    "sync_article_by_slug",
    "sync_article_by_id",
    "sync_all_articles",
    "sync_pending_articles",
    "import_articles_from_shopify",
    # Publishing
    "BlogIntegrationService",
    "get_platforms",
]
