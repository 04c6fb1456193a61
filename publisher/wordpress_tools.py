"""
WordPress Tools - Publishing CMS content through the WordPress REST API

Posts are matched by slug so re-publishing updates in place. Tags are
resolved by slug and created on demand. Auth uses an Application Password.
"""

import base64
import re
from typing import Optional
import aiohttp

from config import (
    WORDPRESS_URL,
    WORDPRESS_USERNAME,
    WORDPRESS_APP_PASSWORD,
    WORDPRESS_DEFAULT_AUTHOR_ID,
)
from publisher.markdown_render import render_content_html


WORDPRESS_POST_STATUSES = ("publish", "future", "draft", "pending", "private")


# =============================================================================
# AUTHENTICATION
# =============================================================================

def is_wordpress_configured() -> bool:
    return bool(WORDPRESS_URL and WORDPRESS_USERNAME and WORDPRESS_APP_PASSWORD)


def get_wordpress_auth_header() -> Optional[str]:
    """Basic auth value for the configured Application Password, or None."""
    if not WORDPRESS_USERNAME or not WORDPRESS_APP_PASSWORD:
        return None

    # Application passwords are displayed with spaces
    password = WORDPRESS_APP_PASSWORD.replace(" ", "")
    credentials = f"{WORDPRESS_USERNAME}:{password}"
    encoded = base64.b64encode(credentials.encode()).decode()
    return f"Basic {encoded}"


def get_wordpress_headers() -> Optional[dict]:
    auth_header = get_wordpress_auth_header()
    if not auth_header:
        return None

    return {
        "Authorization": auth_header,
        "Content-Type": "application/json",
    }


# =============================================================================
# STATUS MAPPING
# =============================================================================

def get_wordpress_status(cms_status: str) -> str:
    """
    Map a CMS status to a WordPress post status.

    WordPress statuses are passed through unchanged; unknown values become draft.
    """
    mapping = {
        'draft': 'draft',
        'published': 'publish',
        'scheduled': 'future',
        'archived': 'private',
    }
    if cms_status in mapping:
        return mapping[cms_status]
    if cms_status in WORDPRESS_POST_STATUSES:
        return cms_status
    return 'draft'


# =============================================================================
# REST API HELPERS
# =============================================================================

def get_wordpress_api_url(endpoint: str) -> str:
    base = WORDPRESS_URL.rstrip('/')
    return f"{base}/wp-json/wp/v2/{endpoint.lstrip('/')}"


async def execute_wordpress_request(
    endpoint: str,
    method: str = "GET",
    data: Optional[dict] = None,
    params: Optional[dict] = None,
):
    """
    Call a wp/v2 endpoint such as "posts" or "tags/12".

    JSON bodies are only sent for POST, PUT and PATCH.

    Returns:
        Response data (dict or list) or {"error": ...}
    """
    if not is_wordpress_configured():
        return {"error": "WordPress credentials not configured"}

    headers = get_wordpress_headers()
    url = get_wordpress_api_url(endpoint)

    try:
        async with aiohttp.ClientSession() as session:
            kwargs = {
                "headers": headers,
                "timeout": aiohttp.ClientTimeout(total=60),
            }
            if data and method in ("POST", "PUT", "PATCH"):
                kwargs["json"] = data
            if params:
                kwargs["params"] = params

            async with session.request(method, url, **kwargs) as resp:
                if resp.status == 204:
                    return {"success": True}

                try:
                    result = await resp.json()
                except (aiohttp.ContentTypeError, ValueError):
                    text = await resp.text()
                    return {"error": f"Invalid JSON response: {text[:200]}"}

                if resp.status >= 400:
                    if isinstance(result, dict):
                        return {"error": f"{result.get('code', 'unknown')}: {result.get('message', str(result))}"}
                    return {"error": f"HTTP {resp.status}"}

                return result

    except aiohttp.ClientError as e:
        return {"error": f"Network error: {str(e)}"}
    except Exception as e:
        return {"error": f"Unexpected error: {str(e)}"}


# =============================================================================
# LOOKUP FUNCTIONS
# =============================================================================

# Per-run caches: slug -> post id, tag name -> tag id
_post_cache: dict[str, int] = {}
_tag_cache: dict[str, int] = {}


def clear_sync_cache():
    """Clear the in-memory lookup caches."""
    global _post_cache, _tag_cache
    _post_cache = {}
    _tag_cache = {}


async def find_post_by_slug(slug: str) -> Optional[int]:
    """Post id for slug across every status, or None."""
    if slug in _post_cache:
        return _post_cache[slug]

    result = await execute_wordpress_request(
        "posts",
        params={"slug": slug, "per_page": 1, "status": "any"}
    )

    if isinstance(result, list) and result:
        post_id = result[0].get("id")
        _post_cache[slug] = post_id
        return post_id

    return None


async def find_tag_by_name(name: str) -> Optional[int]:
    if name in _tag_cache:
        return _tag_cache[name]

    slug = re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')
    result = await execute_wordpress_request(
        "tags",
        params={"slug": slug, "per_page": 1}
    )

    if isinstance(result, list) and result:
        tag_id = result[0].get("id")
        _tag_cache[name] = tag_id
        return tag_id

    return None


async def find_or_create_tag(name: str) -> Optional[int]:
    """
    Tag id for name, creating the tag when WordPress has none.

    Returns:
        Tag id, or None when creation fails
    """
    existing_id = await find_tag_by_name(name)
    if existing_id:
        return existing_id

    result = await execute_wordpress_request(
        "tags",
        method="POST",
        data={"name": name}
    )

    if "error" in result:
        # Created concurrently by another request
        if "term_exists" in str(result.get("error", "")):
            return await find_tag_by_name(name)
        print(f"Warning: Failed to create tag '{name}': {result['error']}")
        return None

    tag_id = result.get("id")
    if tag_id:
        _tag_cache[name] = tag_id
    return tag_id


async def resolve_tags(tag_names: list) -> list[int]:
    """Resolve tag names to WordPress tag IDs, creating missing tags."""
    tag_ids = []
    for name in tag_names:
        tag_id = await find_or_create_tag(name)
        if tag_id:
            tag_ids.append(tag_id)
    return tag_ids


# =============================================================================
# PUBLISHING
# =============================================================================

async def publish_to_wordpress(content: dict, status: str = "publish") -> dict:
    """
    Create or update a WordPress post from published content.

    The post is matched by slug; an existing post is updated in place.

    Args:
        content: Published-content dict (title, slug, content, meta_description, tags, ...)
        status: CMS or WordPress status

    Returns:
        dict with keys: success, wordpress_post_id, url, error
    """
    if not is_wordpress_configured():
        return {"success": False, "error": "WordPress credentials not configured"}

    slug = content.get("slug", "")
    wp_status = get_wordpress_status(status)

    post_data = {
        "title": content.get("title", ""),
        "slug": slug,
        "content": render_content_html(content.get("content", "")),
        "excerpt": content.get("meta_description") or "",
        "status": wp_status,
    }

    if WORDPRESS_DEFAULT_AUTHOR_ID:
        try:
            post_data["author"] = int(WORDPRESS_DEFAULT_AUTHOR_ID)
        except ValueError:
            print(f"Warning: Invalid WORDPRESS_DEFAULT_AUTHOR_ID '{WORDPRESS_DEFAULT_AUTHOR_ID}'")

    if wp_status == "future" and content.get("scheduled_date"):
        post_data["date_gmt"] = content["scheduled_date"]

    if content.get("tags"):
        tag_ids = await resolve_tags(content["tags"])
        if tag_ids:
            post_data["tags"] = tag_ids

    existing_id = await find_post_by_slug(slug) if slug else None
    endpoint = f"posts/{existing_id}" if existing_id else "posts"

    result = await execute_wordpress_request(endpoint, method="POST", data=post_data)

    if "error" in result:
        return {"success": False, "error": result["error"]}

    post_id = result.get("id")
    if not post_id:
        return {"success": False, "error": "WordPress returned no post ID"}

    _post_cache[slug] = post_id
    return {
        "success": True,
        "wordpress_post_id": post_id,
        "url": result.get("link"),
    }
