"""
Blog Integration - Publish CMS content to external blogging platforms

Supported platforms: Shopify, WordPress, Ghost, Medium, Webflow.
Every publish call takes a published-content dict (see markdown_render) and
returns a result dict with keys: success, url, error, platform_id.
"""

import time
from typing import Optional
import aiohttp
import jwt

from config import (
    SHOPIFY_STORE,
    SHOPIFY_DEFAULT_AUTHOR,
    GHOST_URL,
    GHOST_ADMIN_API_KEY,
    MEDIUM_TOKEN,
    MEDIUM_AUTHOR_ID,
    MEDIUM_PUBLISH_STATUS,
    WEBFLOW_API_TOKEN,
    WEBFLOW_COLLECTION_ID,
)
from publisher.article_store import save_article_draft
from publisher.markdown_render import export_as_files, render_content_html
from publisher.shopify_sync import resolve_blog_gid
from publisher.shopify_tools import is_shopify_configured, sync_article_to_shopify, get_blog_handle
from publisher import wordpress_tools


MEDIUM_API_URL = "https://api.medium.com/v1"
WEBFLOW_API_URL = "https://api.webflow.com/v2"
MEDIUM_MAX_TAGS = 5
GHOST_TOKEN_TTL_SECONDS = 5 * 60


PLATFORMS = {
    "shopify": {
        "id": "shopify",
        "name": "Shopify Blog",
        "api_endpoint": "/admin/api/{version}/graphql.json",
        "requires_auth": True,
        "supported_formats": ["html", "markdown"],
    },
    "wordpress": {
        "id": "wordpress",
        "name": "WordPress",
        "api_endpoint": "/wp-json/wp/v2/posts",
        "requires_auth": True,
        "supported_formats": ["html", "markdown"],
    },
    "webflow": {
        "id": "webflow",
        "name": "Webflow CMS",
        "api_endpoint": "/v2/collections/{collection_id}/items",
        "requires_auth": True,
        "supported_formats": ["html"],
    },
    "ghost": {
        "id": "ghost",
        "name": "Ghost",
        "api_endpoint": "/ghost/api/admin/posts/",
        "requires_auth": True,
        "supported_formats": ["html", "markdown"],
    },
    "medium": {
        "id": "medium",
        "name": "Medium",
        "api_endpoint": "/v1/users/{user_id}/posts",
        "requires_auth": True,
        "supported_formats": ["markdown", "html"],
    },
}


def get_platforms() -> list:
    return list(PLATFORMS.values())


def get_platform(platform_id: str) -> Optional[dict]:
    return PLATFORMS.get(platform_id)


def _result(platform_id: str, success: bool, url: Optional[str] = None, error: Optional[str] = None) -> dict:
    result = {"success": success, "platform_id": platform_id}
    if url:
        result["url"] = url
    if error:
        result["error"] = error
    return result


def create_ghost_token(admin_api_key: str) -> str:
    """
    Build a short-lived Ghost Admin API JWT.

    Args:
        admin_api_key: "<key id>:<hex secret>" from a Ghost custom integration

    Returns:
        Encoded JWT string

    Raises:
        ValueError: If the key is not in id:secret format
    """
    key_id, sep, secret = admin_api_key.partition(":")
    if not sep or not key_id or not secret:
        raise ValueError("GHOST_ADMIN_API_KEY must be in '<id>:<secret>' format")

    iat = int(time.time())
    payload = {"iat": iat, "exp": iat + GHOST_TOKEN_TTL_SECONDS, "aud": "/admin/"}
    return jwt.encode(payload, bytes.fromhex(secret), algorithm="HS256", headers={"kid": key_id})


class BlogIntegrationService:
    """Flat dispatch over the per-platform publish calls."""

    def __init__(self):
        self._publishers = {
            "shopify": self.publish_to_shopify,
            "wordpress": self.publish_to_wordpress,
            "ghost": self.publish_to_ghost,
            "medium": self.publish_to_medium,
            "webflow": self.publish_to_webflow,
        }

    # =========================================================================
    # SHOPIFY
    # =========================================================================

    async def publish_to_shopify(self, content: dict, blog_id: Optional[str] = None) -> dict:
        """
        Publish content as a visible Shopify article (create or update by handle).

        Args:
            content: Published-content dict
            blog_id: Blog GID; defaults to SHOPIFY_DEFAULT_BLOG_ID or the first blog
        """
        if not is_shopify_configured():
            return _result("shopify", False, error="Shopify credentials not configured")

        blog_gid = blog_id or await resolve_blog_gid()
        if not blog_gid:
            return _result("shopify", False, error="No Shopify blog available")

        article = {
            "title": content.get("title", ""),
            "slug": content.get("slug", ""),
            "content": content.get("content", ""),
            "meta_description": content.get("meta_description") or "",
            "target_keywords": content.get("tags") or [],
            "status": "scheduled" if content.get("scheduled_date") else "published",
            "scheduled_publish_date": content.get("scheduled_date"),
            "featured_image": content.get("featured_image"),
        }

        sync = await sync_article_to_shopify(article, blog_gid, author_name=SHOPIFY_DEFAULT_AUTHOR or "Editor")
        if not sync.get("success"):
            return _result("shopify", False, error=sync.get("error"))

        url = None
        blog_handle = await get_blog_handle(blog_gid)
        if blog_handle and sync.get("handle"):
            url = f"https://{SHOPIFY_STORE}.myshopify.com/blogs/{blog_handle}/{sync['handle']}"

        result = _result("shopify", True, url=url)
        result["shopify_article_id"] = sync.get("shopify_article_id")
        return result

    # =========================================================================
    # WORDPRESS
    # =========================================================================

    async def publish_to_wordpress(self, content: dict) -> dict:
        status = "future" if content.get("scheduled_date") else "publish"
        published = await wordpress_tools.publish_to_wordpress(content, status=status)
        if not published.get("success"):
            return _result("wordpress", False, error=published.get("error"))
        result = _result("wordpress", True, url=published.get("url"))
        result["wordpress_post_id"] = published.get("wordpress_post_id")
        return result

    # =========================================================================
    # GHOST
    # =========================================================================

    async def publish_to_ghost(self, content: dict) -> dict:
        """Create a Ghost post through the Admin API (HTML source)."""
        if not GHOST_URL or not GHOST_ADMIN_API_KEY:
            return _result("ghost", False, error="Ghost credentials not configured")

        try:
            token = create_ghost_token(GHOST_ADMIN_API_KEY)
        except ValueError as e:
            return _result("ghost", False, error=str(e))

        post = {
            "title": content.get("title", ""),
            "html": render_content_html(content.get("content", "")),
            "slug": content.get("slug", ""),
            "meta_description": content.get("meta_description") or None,
            "tags": [{"name": tag} for tag in content.get("tags") or []],
            "status": "scheduled" if content.get("scheduled_date") else "published",
        }
        if content.get("scheduled_date"):
            post["published_at"] = content["scheduled_date"]
        if content.get("featured_image"):
            post["feature_image"] = content["featured_image"]

        url = f"{GHOST_URL.rstrip('/')}/ghost/api/admin/posts/?source=html"
        headers = {"Authorization": f"Ghost {token}", "Content-Type": "application/json"}

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(url, headers=headers, json={"posts": [post]}) as resp:
                    if resp.status in [200, 201]:
                        data = await resp.json()
                        posts = data.get("posts") or [{}]
                        return _result("ghost", True, url=posts[0].get("url"))
                    error = await resp.text()
                    return _result("ghost", False, error=f"Ghost API error ({resp.status}): {error[:200]}")
        except aiohttp.ClientError as e:
            return _result("ghost", False, error=f"Network error: {str(e)}")
        except Exception as e:
            return _result("ghost", False, error=f"Unexpected error: {str(e)}")

    # =========================================================================
    # MEDIUM
    # =========================================================================

    async def publish_to_medium(self, content: dict) -> dict:
        """Create a Medium story from the Markdown body."""
        if not MEDIUM_TOKEN or not MEDIUM_AUTHOR_ID:
            return _result("medium", False, error="Medium credentials not configured")

        title = content.get("title", "")
        payload = {
            "title": title,
            "contentFormat": "markdown",
            "content": f"# {title}\n\n{content.get('content', '')}",
            "tags": (content.get("tags") or [])[:MEDIUM_MAX_TAGS],
            "publishStatus": MEDIUM_PUBLISH_STATUS if MEDIUM_PUBLISH_STATUS in ("public", "draft", "unlisted") else "draft",
        }
        headers = {
            "Authorization": f"Bearer {MEDIUM_TOKEN}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{MEDIUM_API_URL}/users/{MEDIUM_AUTHOR_ID}/posts",
                    headers=headers,
                    json=payload
                ) as resp:
                    if resp.status in [200, 201]:
                        data = await resp.json()
                        return _result("medium", True, url=(data.get("data") or {}).get("url"))
                    error = await resp.text()
                    return _result("medium", False, error=f"Medium API error ({resp.status}): {error[:200]}")
        except aiohttp.ClientError as e:
            return _result("medium", False, error=f"Network error: {str(e)}")
        except Exception as e:
            return _result("medium", False, error=f"Unexpected error: {str(e)}")

    # =========================================================================
    # WEBFLOW
    # =========================================================================

    async def publish_to_webflow(self, content: dict) -> dict:
        """Create a live item in the configured Webflow CMS collection."""
        if not WEBFLOW_API_TOKEN or not WEBFLOW_COLLECTION_ID:
            return _result("webflow", False, error="Webflow credentials not configured")

        payload = {
            "isArchived": False,
            "isDraft": False,
            "fieldData": {
                "name": content.get("title", ""),
                "slug": content.get("slug", ""),
                "post-body": render_content_html(content.get("content", "")),
                "post-summary": content.get("meta_description") or "",
            },
        }
        headers = {
            "Authorization": f"Bearer {WEBFLOW_API_TOKEN}",
            "Content-Type": "application/json",
            "accept": "application/json",
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{WEBFLOW_API_URL}/collections/{WEBFLOW_COLLECTION_ID}/items",
                    headers=headers,
                    json=payload
                ) as resp:
                    if resp.status in [200, 201, 202]:
                        data = await resp.json()
                        result = _result("webflow", True)
                        result["webflow_item_id"] = data.get("id")
                        return result
                    error = await resp.text()
                    return _result("webflow", False, error=f"Webflow API error ({resp.status}): {error[:200]}")
        except aiohttp.ClientError as e:
            return _result("webflow", False, error=f"Network error: {str(e)}")
        except Exception as e:
            return _result("webflow", False, error=f"Unexpected error: {str(e)}")

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def publish(self, platform_id: str, content: dict) -> dict:
        publisher = self._publishers.get(platform_id)
        if not publisher:
            return _result(platform_id, False, error=f"Unsupported platform: {platform_id}")
        return await publisher(content)

    async def publish_to_all(self, content: dict, platform_ids: list) -> list:
        """Publish to each platform in turn; one failure doesn't stop the rest."""
        results = []
        for platform_id in platform_ids:
            results.append(await self.publish(platform_id, content))
        return results

    async def save_as_draft(self, content: dict) -> dict:
        """Persist content as a draft row in the articles table."""
        return await save_article_draft(content)

    def export_as_files(self, content: dict) -> dict:
        return export_as_files(content)


blog_integration = BlogIntegrationService()
