"""
Topic Store - Queue of article topics in Supabase

Topics are created by operators (or by generate-and-publish) and worked
through in priority order. Claiming a topic moves it to in_progress so two
runs never generate the same article.
"""

import json
from typing import Optional
import aiohttp

from config import SUPABASE_URL, get_supabase_headers, DEFAULT_TONE, DEFAULT_LENGTH, DEFAULT_TEMPLATE
from publisher.utils import parse_article_keywords, utc_now_iso


TOPIC_STATUSES = ("pending", "in_progress", "completed", "rejected")


def _topics_url(query: str = "") -> str:
    return f"{SUPABASE_URL}/rest/v1/topics{query}"


def build_topic_row(
    title: str,
    keywords="",
    tone: Optional[str] = None,
    length: Optional[str] = None,
    template: Optional[str] = None,
    target_audience: Optional[str] = None,
    industry: Optional[str] = None,
    market_segment: Optional[str] = None,
    notes: Optional[str] = None,
    priority_score: int = 0,
) -> dict:
    """Convert topic form values into a `topics` row."""
    style = {
        "tone": tone or DEFAULT_TONE,
        "length": length or DEFAULT_LENGTH,
        "template": template or DEFAULT_TEMPLATE,
    }
    if target_audience:
        style["target_audience"] = target_audience
    if notes:
        style["notes"] = notes

    row = {
        "topic_title": title.strip(),
        "keywords": json.dumps(parse_article_keywords(keywords)),
        "style_preferences": style,
        "priority_score": priority_score,
        "status": "pending",
    }
    if industry:
        row["industry"] = industry
    if market_segment:
        row["market_segment"] = market_segment
    return row


async def create_topic(title: str, **fields) -> dict:
    """
    Create a pending topic.

    Args:
        title: Topic title (required)
        **fields: keywords, tone, length, template, target_audience, industry,
                  market_segment, notes, priority_score

    Returns:
        dict with keys: success, topic, error
    """
    if not title or not title.strip():
        return {"success": False, "error": "Topic title is required"}

    row = build_topic_row(title, **fields)

    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.post(_topics_url(), headers=headers, json=row) as resp:
                if resp.status in [200, 201]:
                    rows = await resp.json()
                    return {"success": True, "topic": rows[0] if rows else row}
                error = await resp.text()
                return {"success": False, "error": error}
    except aiohttp.ClientError as e:
        return {"success": False, "error": f"Network error: {str(e)}"}
    except Exception as e:
        return {"success": False, "error": f"Unexpected error: {str(e)}"}


async def list_topics(
    status: Optional[str] = None,
    search: Optional[str] = None,
    priority_min: Optional[int] = None,
    priority_max: Optional[int] = None,
) -> list:
    """List topics, newest first."""
    params = [("select", "*"), ("order", "created_at.desc")]
    if status:
        params.append(("status", f"eq.{status}"))
    if priority_min is not None:
        params.append(("priority_score", f"gte.{priority_min}"))
    if priority_max is not None:
        params.append(("priority_score", f"lte.{priority_max}"))
    if search:
        term = search.replace(",", " ").strip()
        params.append(("or", f"(topic_title.ilike.*{term}*,keywords.ilike.*{term}*)"))

    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(_topics_url(), headers=headers, params=params) as resp:
                if resp.status == 200:
                    return await resp.json()
                return []
    except Exception as e:
        print(f"Error fetching topics: {e}")
        return []


async def get_topic(topic_id: str) -> Optional[dict]:
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.get(
                _topics_url(f"?id=eq.{topic_id}&select=*&limit=1"),
                headers=headers
            ) as resp:
                if resp.status == 200:
                    rows = await resp.json()
                    return rows[0] if rows else None
                return None
    except Exception:
        return None


async def update_topic(topic_id: str, data: dict) -> bool:
    """Patch a topic row."""
    if "status" in data and data["status"] not in TOPIC_STATUSES:
        return False
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.patch(
                _topics_url(f"?id=eq.{topic_id}"),
                headers=headers,
                json=data
            ) as resp:
                return resp.status in [200, 204]
    except Exception:
        return False


async def delete_topic(topic_id: str) -> bool:
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()
            async with session.delete(_topics_url(f"?id=eq.{topic_id}"), headers=headers) as resp:
                return resp.status in [200, 204]
    except Exception:
        return False


# =============================================================================
# QUEUE OPERATIONS
# =============================================================================

async def claim_next_topic() -> Optional[dict]:
    """
    Get the highest priority pending topic and mark it in_progress.

    Returns:
        The claimed topic, or None if the queue is empty or the claim failed
    """
    try:
        async with aiohttp.ClientSession() as session:
            headers = get_supabase_headers()

            async with session.get(
                _topics_url(
                    "?status=eq.pending"
                    "&select=*"
                    "&order=priority_score.desc,created_at.asc"
                    "&limit=1"
                ),
                headers=headers
            ) as resp:
                if resp.status != 200:
                    return None
                topics = await resp.json()

            if not topics:
                return None

            topic = topics[0]

            # Only claim if still pending so concurrent runs don't share a topic
            async with session.patch(
                _topics_url(f"?id=eq.{topic['id']}&status=eq.pending"),
                headers=headers,
                json={"status": "in_progress"}
            ) as resp:
                if resp.status not in [200, 204]:
                    return None
                if resp.status == 200:
                    claimed = await resp.json()
                    if not claimed:
                        return None

            topic["status"] = "in_progress"
            return topic

    except Exception as e:
        print(f"Error claiming topic: {e}")
        return None


async def complete_topic(topic_id: str) -> bool:
    """Mark a topic as used."""
    return await update_topic(topic_id, {"status": "completed", "used_at": utc_now_iso()})


async def reject_topic(topic_id: str, reason: str = "") -> bool:
    """Reject a topic, keeping the reason in style_preferences.notes."""
    data = {"status": "rejected"}
    if reason:
        topic = await get_topic(topic_id)
        style = dict((topic or {}).get("style_preferences") or {})
        style["notes"] = reason
        data["style_preferences"] = style
    return await update_topic(topic_id, data)


async def release_topic(topic_id: str) -> bool:
    """Put an in_progress topic back in the queue after a failed run."""
    return await update_topic(topic_id, {"status": "pending"})


async def get_topic_queue_status() -> dict:
    """Counts of topics per status."""
    topics = await list_topics()
    counts = {status: 0 for status in TOPIC_STATUSES}
    for topic in topics:
        status = topic.get("status", "pending")
        counts[status] = counts.get(status, 0) + 1
    counts["total"] = len(topics)
    return counts
