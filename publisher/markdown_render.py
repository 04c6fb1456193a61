"""
Markdown Rendering - HTML conversion, front matter and file export

Article content is authored in Markdown. Platforms that need HTML (Shopify,
WordPress, Ghost, Webflow) get it from `markdown_to_html`; exports carry a
YAML-style front matter block with SEO and generation metadata.
"""

import json
from datetime import datetime, timezone

import markdown

from publisher.utils import count_words, calculate_reading_time, parse_article_keywords


MARKDOWN_EXTENSIONS = ["extra", "sane_lists", "toc"]


def markdown_to_html(text: str) -> str:
    """Convert Markdown to HTML (tables, fenced code, footnotes, heading ids)."""
    if not text or not text.strip():
        return ""
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)


def looks_like_html(text: str) -> bool:
    """True when content is already HTML (e.g. imported from Shopify)."""
    stripped = (text or "").lstrip()
    return stripped.startswith("<") and ">" in stripped[:200]


def render_content_html(text: str) -> str:
    """Render article content to HTML, passing through content that is already HTML."""
    if looks_like_html(text):
        return text
    return markdown_to_html(text)


def calculate_seo_score(seo: dict) -> int:
    """Rounded mean of the keyword density, readability and heading structure scores."""
    seo = seo or {}
    values = [
        seo.get("keyword_density", 0) or 0,
        seo.get("readability_score", 0) or 0,
        seo.get("headings_structure", 0) or 0,
    ]
    return round(sum(values) / 3)


def build_front_matter(content: dict) -> str:
    """
    Build the front matter block for a Markdown export.

    Args:
        content: Published-content dict

    Returns:
        Front matter string including the --- delimiters and a trailing blank line
    """
    body = content.get("content", "") or ""
    words = count_words(body)
    metadata = content.get("metadata") or {}
    date = content.get("scheduled_date") or datetime.now(timezone.utc).isoformat()

    lines = [
        "---",
        f"title: {json.dumps(content.get('title', ''))}",
        f"slug: {json.dumps(content.get('slug', ''))}",
        f"description: {json.dumps(content.get('meta_description') or '')}",
        f"tags: [{', '.join(json.dumps(tag) for tag in content.get('tags') or [])}]",
        f"date: {json.dumps(date)}",
    ]
    if content.get("featured_image"):
        lines.append(f"featured_image: {json.dumps(content['featured_image'])}")
    lines.extend([
        f"seo_score: {calculate_seo_score(content.get('seo'))}",
        f"word_count: {words}",
        f"reading_time: {calculate_reading_time(words)}",
        f"ai_provider: {json.dumps(metadata.get('ai_provider') or '')}",
        f"generation_cost: {metadata.get('cost') or 0}",
        "---",
        "",
    ])
    return "\n".join(lines) + "\n"


def format_as_markdown(content: dict) -> str:
    """Front matter followed by the Markdown body."""
    return build_front_matter(content) + (content.get("content", "") or "")


def export_as_files(content: dict) -> dict:
    """
    Render content in every export format.

    Returns:
        dict with keys: markdown, html, json
    """
    return {
        "markdown": format_as_markdown(content),
        "html": render_content_html(content.get("content", "")),
        "json": json.dumps(content, indent=2, default=str),
    }


def article_to_published_content(article: dict) -> dict:
    """Build a published-content dict from an `articles` row."""
    return {
        "title": article.get("title", ""),
        "slug": article.get("slug", ""),
        "meta_description": article.get("meta_description") or "",
        "tags": parse_article_keywords(article.get("target_keywords")),
        "content": article.get("content", "") or "",
        "scheduled_date": article.get("scheduled_publish_date"),
        "featured_image": article.get("featured_image"),
        "seo": {
            "keyword_density": article.get("seo_score") or 0,
            "readability_score": article.get("seo_score") or 0,
            "headings_structure": article.get("seo_score") or 0,
        },
        "metadata": {
            "ai_provider": article.get("ai_model_used") or "",
            "cost": 0,
        },
    }
