"""
Shopify Tools - Admin GraphQL integration for CMS articles

This module provides:
1. Access token handling (static Admin token or client credentials grant)
2. GraphQL execution with throttle-aware retries
3. Field mapping between CMS articles and Shopify articles
4. Blog/article lookups and the create-or-update article sync
"""

import asyncio
import json
from typing import Optional
from datetime import datetime, timedelta, timezone
import aiohttp

from config import (
    SHOPIFY_STORE,
    SHOPIFY_ACCESS_TOKEN,
    SHOPIFY_CLIENT_ID,
    SHOPIFY_CLIENT_SECRET,
    SHOPIFY_API_VERSION,
    SHOPIFY_DEFAULT_AUTHOR,
    SHOPIFY_MAX_RETRIES,
    SHOPIFY_RETRY_DELAY_MS,
)
from publisher.markdown_render import render_content_html
from publisher.utils import (
    generate_handle_from_title,
    parse_article_keywords,
    extract_numeric_id,
    count_words,
    calculate_reading_time,
    strip_html,
)


MAX_TITLE_LENGTH = 255
MAX_HANDLE_LENGTH = 255
MAX_SUMMARY_LENGTH = 500


# =============================================================================
# OAUTH TOKEN MANAGEMENT
# =============================================================================

class ShopifyTokenManager:
    """
    Manages access tokens for the Shopify Admin API.

    A static Admin API token (SHOPIFY_ACCESS_TOKEN) is used as-is. Otherwise
    tokens are obtained via client credentials grant and cached until expiry.
    """

    def __init__(self):
        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    def is_token_valid(self) -> bool:
        """Check if current token is valid and not expired."""
        if not self._access_token or not self._expires_at:
            return False
        # Refresh 5 minutes before expiry
        return datetime.now(timezone.utc) < (self._expires_at - timedelta(minutes=5))

    async def get_access_token(self) -> Optional[str]:
        """
        Get a valid access token, refreshing if necessary.

        Returns:
            Access token string, or None if unable to obtain token
        """
        if SHOPIFY_ACCESS_TOKEN:
            return SHOPIFY_ACCESS_TOKEN

        if self.is_token_valid():
            return self._access_token

        return await self._fetch_new_token()

    async def _fetch_new_token(self) -> Optional[str]:
        """Fetch a new access token using client credentials grant."""
        if not SHOPIFY_STORE or not SHOPIFY_CLIENT_ID or not SHOPIFY_CLIENT_SECRET:
            print("Error: Shopify credentials not configured")
            return None

        token_url = f"https://{SHOPIFY_STORE}.myshopify.com/admin/oauth/access_token"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    token_url,
                    data={
                        "grant_type": "client_credentials",
                        "client_id": SHOPIFY_CLIENT_ID,
                        "client_secret": SHOPIFY_CLIENT_SECRET,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    timeout=aiohttp.ClientTimeout(total=30)
                ) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        print(f"Error fetching Shopify token: {resp.status} - {error_text}")
                        return None

                    result = await resp.json()

                    self._access_token = result.get("access_token")
                    expires_in = result.get("expires_in", 86400)
                    self._expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

                    return self._access_token

        except aiohttp.ClientError as e:
            print(f"Network error fetching Shopify token: {e}")
            return None
        except Exception as e:
            print(f"Unexpected error fetching Shopify token: {e}")
            return None


_token_manager = ShopifyTokenManager()


def is_shopify_configured() -> bool:
    return bool(SHOPIFY_STORE and (SHOPIFY_ACCESS_TOKEN or (SHOPIFY_CLIENT_ID and SHOPIFY_CLIENT_SECRET)))


# =============================================================================
# STATUS HELPER FUNCTIONS
# =============================================================================

def get_shopify_publish_settings(status: str, scheduled_at: Optional[str] = None) -> dict:
    """
    Convert CMS article status to Shopify publish settings.

    Args:
        status: Article status
        scheduled_at: ISO 8601 datetime for a future publish date

    Returns:
        Dict with 'isPublished' and optionally 'publishDate'

    Mapping:
        - published -> Visible (isPublished: true)
        - published with a scheduled date -> Scheduled (future publishDate)
        - everything else (draft, review, published_hidden, ...) -> Hidden
    """
    if status == 'published':
        settings = {'isPublished': True}
        if scheduled_at:
            settings['publishDate'] = scheduled_at
        return settings

    if status == 'scheduled':
        if scheduled_at:
            return {'isPublished': True, 'publishDate': scheduled_at}
        print("Warning: 'scheduled' status without scheduled_at, treating as published")
        return {'isPublished': True}

    return {'isPublished': False}


def get_shopify_visibility_label(status: str) -> str:
    """Get human-readable Shopify visibility for a given status."""
    mapping = {
        'published': 'Visible',
        'scheduled': 'Scheduled',
    }
    return mapping.get(status, 'Hidden')


# =============================================================================
# SEO METAFIELDS BUILDER
# =============================================================================

def build_seo_metafields(seo_data: dict) -> list:
    """
    Build Shopify metafields array from SEO data.

    Args:
        seo_data: Dict with keys like 'title', 'description', 'keywords'

    Returns:
        List of metafield objects for Shopify GraphQL API
    """
    if not seo_data:
        return []

    metafields = []
    for key in ('title', 'description', 'keywords'):
        value = seo_data.get(key)
        if not value:
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        metafields.append({
            "namespace": "seo",
            "key": key,
            "value": str(value),
            "type": "single_line_text_field"
        })

    return metafields


# =============================================================================
# FIELD MAPPING
# =============================================================================

def map_article_to_shopify_input(
    article: dict,
    blog_id: Optional[str] = None,
    author_name: Optional[str] = None,
) -> dict:
    """
    Map a CMS article row to an ArticleCreateInput / ArticleUpdateInput.

    Args:
        article: Row from the articles table
        blog_id: Blog GID, included only when creating
        author_name: Display name (falls back to SHOPIFY_DEFAULT_AUTHOR)

    Returns:
        Shopify article input dict
    """
    title = article.get("title", "")
    handle = article.get("slug") or generate_handle_from_title(title)
    keywords = parse_article_keywords(article.get("target_keywords"))
    summary = article.get("meta_description") or ""

    article_input = {
        "title": title,
        "handle": handle,
        "body": render_content_html(article.get("content", "")),
        "summary": summary,
    }
    article_input.update(get_shopify_publish_settings(
        article.get("status", "draft"),
        article.get("scheduled_publish_date"),
    ))

    if keywords:
        article_input["tags"] = keywords

    author = author_name or SHOPIFY_DEFAULT_AUTHOR
    if author:
        article_input["author"] = {"name": author}

    if article.get("featured_image"):
        article_input["image"] = {
            "url": article["featured_image"],
            "altText": article.get("featured_image_alt") or f"Featured image for {title}",
        }

    metafields = build_seo_metafields({
        "title": title,
        "description": summary,
        "keywords": keywords,
    })
    if metafields:
        article_input["metafields"] = metafields

    if blog_id:
        article_input["blogId"] = blog_id

    return article_input


def map_shopify_to_article(node: dict) -> dict:
    """
    Map a Shopify article node to CMS article columns.

    Status is published when Shopify reports a publishedAt, draft otherwise.
    """
    body = node.get("body") or node.get("contentHtml") or ""
    words = count_words(strip_html(body))
    blog = node.get("blog") or {}
    tags = node.get("tags") or []
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",") if t.strip()]

    return {
        "title": node.get("title", ""),
        "slug": node.get("handle", ""),
        "content": body,
        "meta_description": node.get("summary") or node.get("excerpt") or "",
        "status": "published" if node.get("publishedAt") else "draft",
        "target_keywords": json.dumps(tags),
        "shopify_article_id": extract_numeric_id(node.get("id")),
        "shopify_blog_id": extract_numeric_id(blog.get("id")),
        "published_at": node.get("publishedAt"),
        "word_count": words,
        "reading_time": calculate_reading_time(words),
    }


def validate_shopify_article_input(article_input: dict) -> list[str]:
    """
    Validate an article input before sending it to Shopify.

    Returns:
        List of error messages (empty when valid)
    """
    errors = []
    title = article_input.get("title") or ""
    body = article_input.get("body") or ""

    if not title.strip():
        errors.append("Title is required")
    elif len(title) > MAX_TITLE_LENGTH:
        errors.append(f"Title must be {MAX_TITLE_LENGTH} characters or less")

    if not body.strip():
        errors.append("Content is required")

    if len(article_input.get("handle") or "") > MAX_HANDLE_LENGTH:
        errors.append(f"Handle must be {MAX_HANDLE_LENGTH} characters or less")

    if len(article_input.get("summary") or "") > MAX_SUMMARY_LENGTH:
        errors.append(f"Summary must be {MAX_SUMMARY_LENGTH} characters or less")

    return errors


# =============================================================================
# SHOPIFY GRAPHQL API HELPERS
# =============================================================================

def get_shopify_graphql_url() -> str:
    """Get the Shopify GraphQL Admin API URL."""
    return f"https://{SHOPIFY_STORE}.myshopify.com/admin/api/{SHOPIFY_API_VERSION}/graphql.json"


async def get_shopify_headers() -> Optional[dict]:
    """
    Get headers for Shopify API calls with a valid access token.

    Returns:
        Headers dict with access token, or None if token unavailable
    """
    access_token = await _token_manager.get_access_token()
    if not access_token:
        return None

    return {
        "Content-Type": "application/json",
        "X-Shopify-Access-Token": access_token,
    }


def _is_throttled(errors: list) -> bool:
    for error in errors:
        code = (error.get("extensions") or {}).get("code", "")
        message = str(error.get("message", "")).lower()
        if code == "THROTTLED" or "throttled" in message or "rate limit" in message:
            return True
    return False


async def _retry_delay(attempt: int) -> None:
    await asyncio.sleep(SHOPIFY_RETRY_DELAY_MS * (2 ** attempt) / 1000)


async def execute_shopify_graphql(query: str, variables: dict = None) -> dict:
    """
    Execute a GraphQL query against Shopify Admin API.

    Throttled responses (THROTTLED errors or HTTP 429) and network errors are
    retried up to SHOPIFY_MAX_RETRIES times with exponential backoff.

    Args:
        query: GraphQL query string
        variables: Query variables dict

    Returns:
        Response data or error dict
    """
    if not is_shopify_configured():
        return {"error": "Shopify credentials not configured"}

    headers = await get_shopify_headers()
    if not headers:
        return {"error": "Failed to obtain Shopify access token"}

    payload = {"query": query}
    if variables:
        payload["variables"] = variables

    last_error = "Unknown error"

    for attempt in range(SHOPIFY_MAX_RETRIES + 1):
        retry = False
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    get_shopify_graphql_url(),
                    headers=headers,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=30)
                ) as resp:
                    if resp.status == 429:
                        last_error = "Rate limit exceeded (HTTP 429)"
                        retry = True
                    else:
                        result = await resp.json()

                        if "errors" in result:
                            errors = result["errors"]
                            if isinstance(errors, str):
                                errors = [{"message": errors}]
                            error_messages = [e.get("message", str(e)) for e in errors]
                            last_error = "; ".join(error_messages)
                            if not _is_throttled(errors):
                                return {"error": last_error}
                            retry = True
                        else:
                            return result.get("data", {})

        except aiohttp.ClientError as e:
            last_error = f"Network error: {str(e)}"
            retry = True
        except Exception as e:
            return {"error": f"Unexpected error: {str(e)}"}

        if retry and attempt < SHOPIFY_MAX_RETRIES:
            await _retry_delay(attempt)

    return {"error": last_error}


async def test_shopify_connection() -> dict:
    """
    Check credentials by fetching the shop's name and domain.

    Returns:
        dict with keys: success, shop, error
    """
    result = await execute_shopify_graphql("""
    query ShopInfo {
        shop {
            name
            myshopifyDomain
            primaryDomain { url }
        }
    }
    """)
    if "error" in result:
        return {"success": False, "error": result["error"]}
    return {"success": True, "shop": result.get("shop", {})}


# =============================================================================
# SHOPIFY LOOKUP FUNCTIONS (Duplicate Prevention)
# =============================================================================

# In-memory cache to prevent duplicates during a single sync session
_blog_cache: dict[str, str] = {}  # handle -> gid
_article_cache: dict[str, str] = {}  # "blog_gid:handle" -> article_gid


async def fetch_all_shopify_blogs() -> list:
    """
    Fetch all blogs from Shopify using cursor-based pagination.

    Returns:
        List of blog dicts (id, title, handle), or empty list on error
    """
    all_blogs = []
    cursor = None
    page_size = 100

    while True:
        after_clause = f', after: "{cursor}"' if cursor else ""

        query = f"""
        query FetchBlogs {{
            blogs(first: {page_size}{after_clause}) {{
                pageInfo {{
                    hasNextPage
                    endCursor
                }}
                nodes {{
                    id
                    title
                    handle
                }}
            }}
        }}
        """

        result = await execute_shopify_graphql(query)

        if "error" in result:
            if not all_blogs:
                print(f"Error fetching blogs: {result['error']}")
            break

        blogs_data = result.get("blogs", {})
        nodes = blogs_data.get("nodes", [])
        if not nodes:
            break

        all_blogs.extend(nodes)
        for blog in nodes:
            if blog.get("handle"):
                _blog_cache[blog["handle"]] = blog.get("id")

        page_info = blogs_data.get("pageInfo", {})
        if not page_info.get("hasNextPage"):
            break

        cursor = page_info.get("endCursor")
        if not cursor:
            break

    return all_blogs


async def fetch_all_shopify_articles(blog_gid: Optional[str] = None) -> list:
    """
    Fetch articles from one blog, or from every blog when blog_gid is None.

    Returns:
        List of article nodes with body, summary, tags, publishedAt, blog,
        image and author
    """
    if blog_gid:
        blogs = [{"id": blog_gid}]
    else:
        blogs = await fetch_all_shopify_blogs()
    if not blogs:
        return []

    all_articles = []

    for blog in blogs:
        cursor = None
        page_size = 50

        while True:
            after_clause = f', after: "{cursor}"' if cursor else ""

            query = f"""
            query FetchArticles {{
                blog(id: "{blog.get('id')}") {{
                    articles(first: {page_size}{after_clause}) {{
                        pageInfo {{
                            hasNextPage
                            endCursor
                        }}
                        nodes {{
                            id
                            title
                            handle
                            body
                            summary
                            publishedAt
                            tags
                            blog {{
                                id
                                handle
                                title
                            }}
                            image {{
                                url
                                altText
                            }}
                            author {{
                                name
                            }}
                        }}
                    }}
                }}
            }}
            """

            result = await execute_shopify_graphql(query)
            if "error" in result:
                break

            blog_data = result.get("blog")
            if not blog_data:
                break

            articles_data = blog_data.get("articles", {})
            nodes = articles_data.get("nodes", [])
            if not nodes:
                break

            all_articles.extend(nodes)

            page_info = articles_data.get("pageInfo", {})
            if not page_info.get("hasNextPage"):
                break

            cursor = page_info.get("endCursor")
            if not cursor:
                break

    return all_articles


async def find_blog_by_handle(handle: str) -> Optional[str]:
    """
    Find an existing Shopify blog by handle.

    Returns:
        Shopify blog GID if found, None otherwise
    """
    if handle in _blog_cache:
        return _blog_cache[handle]

    query = """
    query FindBlogByHandle($query: String!) {
        blogs(first: 1, query: $query) {
            nodes {
                id
                handle
                title
            }
        }
    }
    """
    result = await execute_shopify_graphql(query, {"query": f"handle:{handle}"})
    if "error" in result:
        return None

    blogs = result.get("blogs", {}).get("nodes", [])
    if blogs:
        gid = blogs[0].get("id")
        _blog_cache[handle] = gid
        return gid

    return None


async def get_blog_handle(blog_gid: str) -> Optional[str]:
    """Reverse lookup of a blog's handle, used to build public article URLs."""
    for handle, gid in _blog_cache.items():
        if gid == blog_gid:
            return handle

    result = await execute_shopify_graphql(
        "query BlogHandle($id: ID!) { blog(id: $id) { id handle } }",
        {"id": blog_gid},
    )
    blog = result.get("blog") if "error" not in result else None
    if blog and blog.get("handle"):
        _blog_cache[blog["handle"]] = blog_gid
        return blog["handle"]
    return None


async def find_article_by_handle(blog_gid: str, handle: str) -> Optional[str]:
    """
    Find an existing Shopify article by handle within a blog.

    Returns:
        Shopify article GID if found, None otherwise
    """
    cache_key = f"{blog_gid}:{handle}"
    if cache_key in _article_cache:
        return _article_cache[cache_key]

    query = """
    query FindArticle($blogId: ID!, $first: Int!, $query: String) {
        blog(id: $blogId) {
            articles(first: $first, query: $query) {
                nodes {
                    id
                    handle
                }
            }
        }
    }
    """
    result = await execute_shopify_graphql(query, {
        "blogId": blog_gid,
        "first": 1,
        "query": f"handle:{handle}"
    })
    if "error" in result:
        return None

    blog = result.get("blog")
    if blog:
        articles = blog.get("articles", {}).get("nodes", [])
        if articles:
            gid = articles[0].get("id")
            _article_cache[cache_key] = gid
            return gid

    return None


def clear_sync_cache():
    """Clear the in-memory sync cache. Call at start of sync operations."""
    global _blog_cache, _article_cache
    _blog_cache = {}
    _article_cache = {}


# =============================================================================
# ARTICLE SYNC
# =============================================================================

ARTICLE_UPDATE_MUTATION = """
mutation UpdateArticle($id: ID!, $article: ArticleUpdateInput!) {
    articleUpdate(id: $id, article: $article) {
        article { id title handle }
        userErrors { code field message }
    }
}
"""

ARTICLE_CREATE_MUTATION = """
mutation CreateArticle($article: ArticleCreateInput!) {
    articleCreate(article: $article) {
        article { id title handle }
        userErrors { code field message }
    }
}
"""


def _join_user_errors(user_errors: list) -> str:
    return "; ".join([e.get("message", str(e)) for e in user_errors])


async def create_shopify_article(article_input: dict) -> dict:
    """
    Run articleCreate. article_input must include blogId.

    Returns:
        dict with keys: success, shopify_article_id, handle, error
    """
    result = await execute_shopify_graphql(ARTICLE_CREATE_MUTATION, {"article": article_input})
    if "error" in result:
        return {"success": False, "error": result["error"]}

    create_result = result.get("articleCreate") or {}
    user_errors = create_result.get("userErrors", [])
    if user_errors:
        return {"success": False, "error": _join_user_errors(user_errors)}

    article = create_result.get("article") or {}
    if not article.get("id"):
        return {"success": False, "error": "Shopify returned no article"}

    _article_cache[f"{article_input.get('blogId')}:{article.get('handle')}"] = article["id"]
    return {
        "success": True,
        "shopify_article_id": article["id"],
        "handle": article.get("handle"),
    }


async def sync_article_to_shopify(
    article: dict,
    shopify_blog_gid: str,
    existing_shopify_id: Optional[str] = None,
    author_name: Optional[str] = None,
) -> dict:
    """
    Create or update a CMS article as a Shopify article.

    An existing Shopify ID is tried first. If Shopify reports it as missing,
    the article is looked up by handle and otherwise recreated, so a deleted
    Shopify article never blocks a sync.

    Args:
        article: Row from the articles table
        shopify_blog_gid: Blog GID the article belongs to
        existing_shopify_id: Known Shopify article GID or numeric ID
        author_name: Author display name

    Returns:
        dict with keys: success, shopify_article_id, handle, error
    """
    article_input = map_article_to_shopify_input(article, author_name=author_name)

    errors = validate_shopify_article_input(article_input)
    if errors:
        return {"success": False, "error": "; ".join(errors)}

    handle = article_input["handle"]

    if existing_shopify_id and not str(existing_shopify_id).startswith("gid://"):
        existing_shopify_id = f"gid://shopify/Article/{existing_shopify_id}"

    if not existing_shopify_id:
        existing_shopify_id = await find_article_by_handle(shopify_blog_gid, handle)

    if existing_shopify_id:
        variables = {"id": existing_shopify_id, "article": article_input}
        result = await execute_shopify_graphql(ARTICLE_UPDATE_MUTATION, variables)

        if "error" in result:
            error_lower = result["error"].lower()
            if "not found" in error_lower or "does not exist" in error_lower:
                existing_shopify_id = await find_article_by_handle(shopify_blog_gid, handle)
                if existing_shopify_id:
                    variables["id"] = existing_shopify_id
                    result = await execute_shopify_graphql(ARTICLE_UPDATE_MUTATION, variables)
                    if "error" in result:
                        return {"success": False, "error": result["error"]}
            else:
                return {"success": False, "error": result["error"]}

        if existing_shopify_id:
            update_result = result.get("articleUpdate") or {}
            user_errors = update_result.get("userErrors", [])

            if user_errors:
                error_codes = [e.get("code", "") for e in user_errors]
                if any(code in ("INVALID", "NOT_FOUND") for code in error_codes):
                    # Stale ID: drop the cached entry and create below
                    _article_cache.pop(f"{shopify_blog_gid}:{handle}", None)
                    existing_shopify_id = None
                else:
                    return {"success": False, "error": _join_user_errors(user_errors)}
            else:
                updated = update_result.get("article") or {}
                if updated:
                    _article_cache[f"{shopify_blog_gid}:{handle}"] = updated.get("id")
                    return {
                        "success": True,
                        "shopify_article_id": updated.get("id"),
                        "handle": updated.get("handle"),
                    }
                return {"success": False, "error": "Shopify returned no article"}

    article_input["blogId"] = shopify_blog_gid
    return await create_shopify_article(article_input)


async def delete_shopify_article(article_gid: str) -> dict:
    """Delete a Shopify article by GID."""
    result = await execute_shopify_graphql("""
    mutation DeleteArticle($id: ID!) {
        articleDelete(id: $id) {
            deletedArticleId
            userErrors { code field message }
        }
    }
    """, {"id": article_gid})

    if "error" in result:
        return {"success": False, "error": result["error"]}

    delete_result = result.get("articleDelete") or {}
    user_errors = delete_result.get("userErrors", [])
    if user_errors:
        return {"success": False, "error": _join_user_errors(user_errors)}

    return {"success": True, "deleted_id": delete_result.get("deletedArticleId")}
