"""
Generation - Topic to article workflow

generate_and_publish() creates a topic, generates the article with the AI
service, stores it in the articles table and optionally pushes it to Shopify.
generate_next_topic() does the same for the next topic in the queue.
suggest_titles() proposes headlines for a topic.
"""

import math
import re
from typing import Optional

from config import (
    DEFAULT_TONE,
    DEFAULT_LENGTH,
    DEFAULT_TEMPLATE,
    PROMPT_VERSION,
    GENERATION_RATE_LIMIT,
)
from publisher.ai import get_ai_service
from publisher.ai.types import GenerationRequest
from publisher.article_store import create_article, update_article
from publisher.product_tools import get_relevant_products
from publisher.quality import analyze_content
from publisher.rate_limit import RateLimiter
from publisher.shopify_sync import sync_article_by_id
from publisher.shopify_tools import is_shopify_configured
from publisher.topic_store import create_topic, claim_next_topic, complete_topic, release_topic
from publisher.utils import (
    count_words,
    calculate_reading_time,
    generate_handle_from_title,
    parse_article_keywords,
    utc_now_iso,
)


TARGET_WORD_COUNTS = {
    "short": 500,
    "medium": 1000,
    "long": 1500,
    "comprehensive": 2000,
}
DEFAULT_WORD_COUNT = 1000
MAX_PROMPT_PRODUCTS = 5
MAX_TITLE_SUGGESTIONS = 6

_generation_limiter = RateLimiter(interval_seconds=60, max_tokens=500)


# =============================================================================
# PROMPTS
# =============================================================================

def get_target_word_count(length: Optional[str]) -> int:
    return TARGET_WORD_COUNTS.get((length or "").lower(), DEFAULT_WORD_COUNT)


def get_max_tokens_for_length(length: Optional[str]) -> int:
    """Roughly 1.5 tokens per word."""
    return math.ceil(get_target_word_count(length) * 1.5)


def _format_products(products: list) -> str:
    lines = []
    for product in products[:MAX_PROMPT_PRODUCTS]:
        line = f"- {product.get('title')}"
        if product.get("price_min"):
            line += f" (from ${float(product['price_min']):.2f})"
        if product.get("shopify_url"):
            line += f": {product['shopify_url']}"
        lines.append(line)
    return "\n".join(lines)


def build_generation_prompt(
    topic: str,
    keywords: list,
    tone: str,
    length: str,
    template: str,
    products: Optional[list] = None,
) -> str:
    """Prompt asking for TITLE, META_DESCRIPTION and CONTENT sections."""
    target_words = get_target_word_count(length)
    keyword_line = f"Target Keywords: {', '.join(keywords)}" if keywords else ""
    keyword_requirement = (
        f"Include these keywords naturally: {', '.join(keywords)}"
        if keywords else "Focus on relevant keywords naturally"
    )

    product_section = ""
    if products:
        product_section = (
            "\nRelevant products from our store (mention the ones that genuinely fit, "
            "with a link, no more than once each):\n"
            f"{_format_products(products)}\n"
        )

    return f"""Create a comprehensive {target_words}-word {template} about "{topic}" in a {tone} tone.

{keyword_line}
{product_section}
Please provide your response in this exact format:

TITLE: [A specific, engaging title. Avoid generic patterns like "Complete Guide to..." or "Ultimate Guide to..."]

META_DESCRIPTION: [A compelling 150-160 character meta description focused on value and benefits]

CONTENT:
[The main article in Markdown - exactly {target_words} words]

Requirements:
- Write exactly {target_words} words for the content section
- {keyword_requirement}
- Use {tone} tone throughout
- Use Markdown headings (##, ###) and subheadings
- Include practical, actionable information
- Structure with clear introduction, body sections, and conclusion
- Provide genuine value rather than filler content"""


def parse_ai_response(text: str) -> dict:
    """
    Split an AI response into title, meta description and content.

    Returns:
        dict with keys: title, meta_description, content
    """
    text = text or ""
    title_match = re.search(r'TITLE:\s*(.+?)(?:\n|$)', text, re.IGNORECASE)
    meta_match = re.search(r'META_DESCRIPTION:\s*(.+?)(?:\n|$)', text, re.IGNORECASE)
    content_match = re.search(
        r'CONTENT:\s*([\s\S]+?)(?:\n\n---|\n\n\[|\n\nNote:|$)', text, re.IGNORECASE
    )

    title = title_match.group(1).strip() if title_match else ""
    meta = meta_match.group(1).strip() if meta_match else ""
    content = content_match.group(1).strip() if content_match else ""

    return {
        "title": title or "Generated Article",
        "meta_description": meta,
        "content": content or text,
    }


# =============================================================================
# GENERATE AND PUBLISH
# =============================================================================

def _final_status(skip_editorial_review: bool, auto_publish_to_shopify: bool) -> str:
    if not skip_editorial_review:
        return "ready_for_editorial"
    return "published_hidden" if auto_publish_to_shopify else "published"


async def generate_and_publish(
    title: str,
    keywords="",
    tone: Optional[str] = None,
    length: Optional[str] = None,
    template: Optional[str] = None,
    generate_immediately: bool = True,
    ai_provider: Optional[str] = None,
    prompt_version: Optional[str] = None,
    skip_editorial_review: bool = False,
    auto_publish_to_shopify: bool = False,
    include_products: bool = False,
    verbose: bool = False,
) -> dict:
    """
    Create a topic and (optionally) generate its article.

    Args:
        title: Topic title (required)
        keywords: Keywords as a comma string or list
        tone, length, template: Style options (config defaults when omitted)
        generate_immediately: When False only the topic is created
        ai_provider: Preferred provider (anthropic, openai, google)
        prompt_version: Recorded on the article
        skip_editorial_review: Publish directly instead of ready_for_editorial
        auto_publish_to_shopify: Push the finished article to Shopify
        include_products: Weave relevant store products into the prompt
        verbose: Print progress

    Returns:
        dict with keys: success, topic_id, article_id, status, message/error,
        generation_metadata
    """
    if not _generation_limiter.check(GENERATION_RATE_LIMIT, "generate-and-publish"):
        return {
            "success": False,
            "status": "topic_created",
            "error": "Rate limit exceeded. Please try again in a minute.",
        }

    if not title or not title.strip():
        return {"success": False, "status": "topic_created", "error": "Topic title is required"}

    title = title.strip()
    keyword_list = parse_article_keywords(keywords)
    tone = tone or DEFAULT_TONE
    length = length or DEFAULT_LENGTH
    template = template or DEFAULT_TEMPLATE
    prompt_version = prompt_version or PROMPT_VERSION

    # Step 1: topic
    topic_result = await create_topic(
        title, keywords=keyword_list, tone=tone, length=length, template=template
    )
    if not topic_result.get("success"):
        return {
            "success": False,
            "status": "topic_created",
            "error": f"Failed to create topic: {topic_result.get('error')}",
        }

    topic_id = topic_result["topic"].get("id")
    if verbose:
        print(f"Topic created: {topic_id}")

    if not generate_immediately:
        return {
            "success": True,
            "topic_id": topic_id,
            "status": "topic_created",
            "message": "Topic created successfully. You can generate content later.",
        }

    return await _generate_for_topic(
        topic_id,
        title,
        keyword_list,
        tone,
        length,
        template,
        ai_provider=ai_provider,
        prompt_version=prompt_version,
        skip_editorial_review=skip_editorial_review,
        auto_publish_to_shopify=auto_publish_to_shopify,
        include_products=include_products,
        verbose=verbose,
    )


async def _generate_for_topic(
    topic_id: str,
    title: str,
    keyword_list: list,
    tone: str,
    length: str,
    template: str,
    ai_provider: Optional[str] = None,
    prompt_version: str = PROMPT_VERSION,
    skip_editorial_review: bool = False,
    auto_publish_to_shopify: bool = False,
    include_products: bool = False,
    verbose: bool = False,
) -> dict:
    """Generate, store and optionally sync the article for an existing topic."""
    # Step 2: placeholder article
    started_at = utc_now_iso()
    article_result = await create_article({
        "title": f"Article: {title}",
        "slug": f"{generate_handle_from_title(title)}-{str(topic_id)[:8]}",
        "content": "Generating content...",
        "status": "generating",
        "source_topic_id": topic_id,
        "generation_started_at": started_at,
        "ai_model_used": ai_provider or "auto",
        "generation_prompt_version": prompt_version,
        "target_keywords": keyword_list,
    })
    if not article_result.get("success"):
        return {
            "success": False,
            "topic_id": topic_id,
            "status": "topic_created",
            "error": f"Failed to create article: {article_result.get('error')}",
        }

    article_id = article_result["article"].get("id")
    metadata = {"ai_model": ai_provider or "unknown", "prompt_version": prompt_version, "started_at": started_at}

    async def fail(error: str) -> dict:
        await update_article(article_id, {
            "status": "generation_failed",
            "generation_completed_at": utc_now_iso(),
        })
        print(f"[FAIL] {title[:50]} - {error}")
        return {
            "success": False,
            "topic_id": topic_id,
            "article_id": article_id,
            "status": "generation_failed",
            "error": error,
            "generation_metadata": metadata,
        }

    # Step 3: generate
    products = []
    if include_products:
        products = await get_relevant_products(title, keyword_list)
        if verbose:
            print(f"Including {len(products)} relevant product(s)")

    request = GenerationRequest(
        prompt=build_generation_prompt(title, keyword_list, tone, length, template, products),
        template=template,
        tone=tone,
        length=length,
        keywords=keyword_list,
        options={"max_tokens": get_max_tokens_for_length(length), "temperature": 0.7},
    )

    if verbose:
        print("Calling AI service...")

    try:
        result = await get_ai_service().generate_content(request, ai_provider)
    except Exception as e:
        return await fail(f"Unexpected error during generation: {e}")

    if result.final_provider:
        metadata["ai_model"] = result.final_provider
    metadata["cost"] = result.total_cost
    metadata["tokens"] = result.total_tokens

    if not result.success or not result.content:
        message = result.error.message if result.error else "Unknown error"
        return await fail(f"AI generation failed: {message}")

    # Step 4: store
    parsed = parse_ai_response(result.content)
    status = _final_status(skip_editorial_review, auto_publish_to_shopify)
    quality = analyze_content(parsed["content"], keyword_list or [title], template, get_target_word_count(length))
    words = count_words(parsed["content"])

    update = {
        "title": parsed["title"] if parsed["title"] != "Generated Article" else f"Article: {title}",
        "content": parsed["content"],
        "meta_description": parsed["meta_description"],
        "status": status,
        "generation_completed_at": utc_now_iso(),
        "word_count": words,
        "reading_time": calculate_reading_time(words),
        "seo_score": quality["overall_score"],
        "ai_model_used": result.model or result.final_provider,
    }
    if status == "published":
        update["published_at"] = utc_now_iso()

    if not await update_article(article_id, update):
        return await fail("Failed to save generated content")

    await complete_topic(topic_id)
    print(f"[OK] {update['title'][:50]} ({words} words, SEO {quality['overall_score']}, {metadata['ai_model']})")

    response = {
        "success": True,
        "topic_id": topic_id,
        "article_id": article_id,
        "status": status,
        "message": (
            "Article generated successfully and ready for editorial review"
            if status == "ready_for_editorial"
            else "Article generated and published successfully"
        ),
        "generation_metadata": metadata,
    }

    # Step 5: Shopify
    if auto_publish_to_shopify:
        if is_shopify_configured():
            response["shopify_synced"] = await sync_article_by_id(article_id, force=True)
        else:
            print("Warning: Shopify not configured, skipping auto-publish")
            response["shopify_synced"] = False

    return response


async def generate_next_topic(
    ai_provider: Optional[str] = None,
    skip_editorial_review: bool = False,
    auto_publish_to_shopify: bool = False,
    include_products: bool = False,
    verbose: bool = False,
) -> dict:
    """
    Claim the highest priority pending topic and generate its article.

    The topic's keywords and style_preferences drive the prompt. A failed run
    puts the topic back to pending.

    Returns:
        Same shape as generate_and_publish(); status is "queue_empty" when
        there is nothing to claim
    """
    if not _generation_limiter.check(GENERATION_RATE_LIMIT, "generate-and-publish"):
        return {
            "success": False,
            "status": "topic_created",
            "error": "Rate limit exceeded. Please try again in a minute.",
        }

    topic = await claim_next_topic()
    if not topic:
        return {"success": False, "status": "queue_empty", "error": "No pending topics in the queue"}

    topic_id = topic.get("id")
    title = (topic.get("topic_title") or "").strip()
    style = topic.get("style_preferences") or {}
    if verbose:
        print(f"Claimed topic: {title} ({topic_id})")

    try:
        result = await _generate_for_topic(
            topic_id,
            title,
            parse_article_keywords(topic.get("keywords")),
            style.get("tone") or DEFAULT_TONE,
            style.get("length") or DEFAULT_LENGTH,
            style.get("template") or DEFAULT_TEMPLATE,
            ai_provider=ai_provider,
            skip_editorial_review=skip_editorial_review,
            auto_publish_to_shopify=auto_publish_to_shopify,
            include_products=include_products,
            verbose=verbose,
        )
    except Exception:
        await release_topic(topic_id)
        raise

    if not result.get("success"):
        await release_topic(topic_id)
    return result


async def generate_from_queue(count: int = 1, **options) -> dict:
    """
    Work through up to `count` queued topics one at a time.

    Stops early when the queue is empty.

    Returns:
        dict with keys: generated, failed
    """
    generated = 0
    failed = 0
    for _ in range(count):
        result = await generate_next_topic(**options)
        if result.get("status") == "queue_empty":
            print("Topic queue is empty.")
            break
        if result.get("success"):
            generated += 1
        else:
            failed += 1
            print(f"[FAIL] {result.get('error')}")
    return {"generated": generated, "failed": failed}


# =============================================================================
# TITLE SUGGESTIONS
# =============================================================================

def build_title_prompt(
    topic: str,
    tone: Optional[str] = None,
    target_audience: Optional[str] = None,
    template_type: Optional[str] = None,
    keywords: Optional[str] = None,
) -> str:
    tone = tone or "Professional"
    audience = target_audience or "General readers"
    keyword_line = f"KEYWORDS TO INCLUDE: {keywords}" if keywords else ""

    return f"""Generate 6 compelling, SEO-optimized article titles for the following topic:

TOPIC: "{topic}"
WRITING TONE: {tone}
TARGET AUDIENCE: {audience}
CONTENT TYPE: {template_type or 'Blog post'}
{keyword_line}

REQUIREMENTS:
1. Each title should be 8-15 words long
2. Include power words that grab attention
3. Be specific and actionable
4. Incorporate SEO keywords naturally
5. Match the requested tone ({tone.lower()})
6. Appeal to {audience.lower()}

Mix styles: how-to, listicle, question, benefit-focused, problem-solving.

FORMAT: Return exactly 6 titles, one per line, numbered 1-6.

Now generate titles for: "{topic}"."""


def extract_titles_from_response(content: str) -> list[str]:
    """Numbered or bulleted lines of reasonable length, at most 6."""
    titles = []
    for line in (content or "").split("\n"):
        match = re.match(r'^(?:\d+[\.\)]\s*|[-•]\s*)(.+)$', line.strip())
        if match:
            title = match.group(1).strip()
            if 10 < len(title) < 100:
                titles.append(title)
    return titles[:MAX_TITLE_SUGGESTIONS]


def generate_fallback_titles(topic: str, tone: Optional[str] = "professional") -> list[str]:
    if tone in ("storytelling", "Story Telling"):
        return [
            f"The Story Behind {topic}",
            f"Journey Through {topic}: A Cultural Exploration",
            f"Tales and Traditions: Understanding {topic}",
            f"{topic}: Stories That Inspire",
            f"The Art of {topic}: A Narrative Guide",
            f"From Past to Present: The {topic} Story",
        ]

    if tone in ("casual", "Conversational"):
        return [
            f"Let's Talk About {topic}",
            f"{topic} Made Simple",
            f"Your Friend's Guide to {topic}",
            f"{topic}: No Fluff, Just Facts",
            f"Real Talk: {topic} Explained",
            f"{topic} for Everyone",
        ]

    return [
        f"Complete Guide to {topic}",
        f"How to Master {topic}: Step-by-Step Guide",
        f"{topic}: Everything You Need to Know",
        f"The Ultimate {topic} Handbook",
        f"{topic} Tips and Best Practices",
        f"Understanding {topic}: A Beginner's Guide",
    ]


async def suggest_titles(
    topic: str,
    tone: Optional[str] = None,
    target_audience: Optional[str] = None,
    template_type: Optional[str] = None,
    keywords: Optional[str] = None,
) -> dict:
    """
    Ask the AI service for six titles, falling back to templates on failure.

    Returns:
        dict with keys: success, titles, fallback, provider, cost, error
    """
    if not topic or not topic.strip():
        return {"success": False, "error": "Topic is required", "titles": []}

    request = GenerationRequest(
        prompt=build_title_prompt(topic, tone, target_audience, template_type, keywords),
        template="title-generation",
        tone="professional",
        length="short",
        keywords=parse_article_keywords(keywords),
        options={"max_tokens": 400, "temperature": 0.8},
    )

    try:
        result = await get_ai_service().generate_content(request)
    except Exception as e:
        return {
            "success": False,
            "error": f"Title suggestion failed: {e}",
            "titles": generate_fallback_titles(topic, tone),
            "fallback": True,
        }

    if not result.success:
        return {
            "success": False,
            "error": result.error.message if result.error else "Failed to generate titles",
            "titles": generate_fallback_titles(topic, tone),
            "fallback": True,
        }

    titles = extract_titles_from_response(result.content or "")
    if not titles:
        print("Warning: no titles found in AI response, using fallback")
        return {
            "success": True,
            "titles": generate_fallback_titles(topic, tone),
            "provider": result.final_provider,
            "fallback": True,
        }

    return {
        "success": True,
        "titles": titles,
        "provider": result.final_provider,
        "cost": result.total_cost,
        "fallback": False,
    }
