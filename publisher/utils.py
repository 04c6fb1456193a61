"""
Shared helpers for slugs, keyword parsing, word counts and Shopify IDs.
"""

import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Optional, Union


WORDS_PER_MINUTE = 200
MAX_HANDLE_LENGTH = 255


# =============================================================================
# JSON / KEYWORD PARSING
# =============================================================================

def safe_json_parse(value: Any, default: Any = None) -> Any:
    """
    Parse a JSON string, passing through values that are already decoded.

    Args:
        value: JSON string, list, dict or None
        default: Value returned when parsing fails

    Returns:
        Decoded value or default
    """
    if value is None:
        return default
    if isinstance(value, (list, dict)):
        return value
    if not isinstance(value, str) or not value.strip():
        return default
    try:
        return json.loads(value)
    except (ValueError, TypeError):
        return default


def parse_article_keywords(value: Any) -> list[str]:
    """
    Normalize target keywords stored in any of the shapes seen in the
    articles table: JSON text, a list, or a plain comma-separated string.
    """
    if not value:
        return []

    parsed = safe_json_parse(value, default=None)
    if parsed is None and isinstance(value, str):
        parsed = value.split(",")

    if isinstance(parsed, str):
        parsed = parsed.split(",")
    if not isinstance(parsed, list):
        return []

    return [str(k).strip() for k in parsed if k is not None and str(k).strip()]


# =============================================================================
# SLUGS AND TEXT METRICS
# =============================================================================

def generate_handle_from_title(title: str) -> str:
    """Convert a title into a URL handle (lowercase, hyphenated, max 255 chars)."""
    if not title:
        return ""
    handle = title.lower()
    handle = re.sub(r'[^a-z0-9\s-]', '', handle)
    handle = re.sub(r'\s+', '-', handle)
    handle = re.sub(r'-+', '-', handle)
    handle = handle.strip('-')
    return handle[:MAX_HANDLE_LENGTH].rstrip('-')


def strip_html(html: str) -> str:
    """Remove tags and collapse whitespace."""
    if not html:
        return ""
    text = re.sub(r'<[^>]*>', ' ', html)
    return re.sub(r'\s+', ' ', text).strip()


def count_words(text: str) -> int:
    if not text:
        return 0
    return len(text.split())


def calculate_reading_time(value: Union[str, int, None]) -> int:
    """Reading time in minutes at 200 words per minute, rounded up."""
    if isinstance(value, int):
        words = value
    else:
        words = count_words(value or "")
    if words <= 0:
        return 0
    return math.ceil(words / WORDS_PER_MINUTE)


# =============================================================================
# SHOPIFY IDS
# =============================================================================

def extract_numeric_id(gid: Optional[str]) -> Optional[int]:
    """Extract the trailing numeric ID from a Shopify GID."""
    if gid is None:
        return None
    match = re.search(r'/(\d+)$', str(gid))
    if match:
        return int(match.group(1))
    if str(gid).isdigit():
        return int(gid)
    return None


def create_gid(resource_type: str, numeric_id: Union[int, str]) -> str:
    """Build a Shopify GID, e.g. create_gid("Article", 123)."""
    return f"gid://shopify/{resource_type}/{numeric_id}"


# =============================================================================
# DATES
# =============================================================================

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_datetime(dt_str: str) -> str:
    """Format datetime string for display."""
    if not dt_str:
        return "—"
    try:
        dt = datetime.fromisoformat(dt_str.replace('Z', '+00:00'))
        return dt.strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return dt_str[:16] if len(dt_str) >= 16 else dt_str
