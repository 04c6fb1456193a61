"""
Content Quality - SEO, readability and structure scoring for Markdown articles

analyze_content() returns component scores (0-100), per-keyword density
analysis, and a short list of recommendations for the editor.
"""

import math
import re
from typing import Optional

from publisher.utils import parse_article_keywords


# Keyword density in percent of total words
IDEAL_KEYWORD_DENSITY_MIN = 0.5
IDEAL_KEYWORD_DENSITY_MAX = 2.5

IDEAL_SENTENCE_MIN_WORDS = 8
IDEAL_SENTENCE_MAX_WORDS = 25
MAX_PARAGRAPH_WORDS = 150
MIN_HEADING_RATIO = 0.2
MAX_COMPLEX_WORD_RATIO = 0.2
COMPLEX_WORD_MIN_LETTERS = 7
MIN_PARAGRAPHS = 3
MIN_INTRO_CHARS = 100
MIN_SEO_CONTENT_CHARS = 4000
MAX_RECOMMENDATIONS = 10

CONCLUSION_INDICATORS = (
    "conclusion", "summary", "finally", "in summary",
    "to conclude", "in conclusion", "overall", "takeaway",
)

TRANSITION_WORDS = (
    "however", "therefore", "furthermore", "moreover",
    "additionally", "consequently", "meanwhile", "nevertheless",
)

SCORE_WEIGHTS = {
    "seo": 0.3,
    "readability": 0.25,
    "structure": 0.25,
    "keywords": 0.2,
}

HEADING_PATTERN = re.compile(r'^(#{1,6})\s+(.+)$', re.MULTILINE)


def _clamp(score: float) -> int:
    return int(round(max(0, min(100, score))))


# =============================================================================
# METADATA
# =============================================================================

def extract_headings(content: str) -> list[tuple[int, str]]:
    """Markdown headings as (level, text) pairs."""
    return [(len(m.group(1)), m.group(2).strip()) for m in HEADING_PATTERN.finditer(content or "")]


def _paragraphs(content: str) -> list[str]:
    return [p for p in re.split(r'\n\s*\n', content or "") if p.strip()]


def extract_metadata(content: str) -> dict:
    """
    Word, sentence, paragraph and heading counts for a Markdown body.

    Sentences shorter than 10 characters (list markers, stray punctuation)
    are not counted.
    """
    words = (content or "").split()
    sentences = [s for s in re.split(r'[.!?]+', content or "") if len(s.strip()) > 10]
    headings = extract_headings(content)

    return {
        "word_count": len(words),
        "reading_time": math.ceil(len(words) / 200),
        "heading_count": len(headings),
        "sentence_count": len(sentences),
        "paragraph_count": len(_paragraphs(content)),
    }


# =============================================================================
# KEYWORDS
# =============================================================================

def keyword_status(density: float) -> str:
    if density == 0:
        return "missing"
    if density < IDEAL_KEYWORD_DENSITY_MIN:
        return "under"
    if density > IDEAL_KEYWORD_DENSITY_MAX:
        return "over"
    return "optimal"


def analyze_keywords(content: str, keywords: list) -> dict:
    """
    Count whole-word occurrences of each keyword.

    Returns:
        dict keyword -> {count, density (percent), status}
    """
    content_lower = (content or "").lower()
    total_words = len(content_lower.split())
    analysis = {}

    for keyword in keywords:
        pattern = r'\b' + re.escape(keyword.lower()) + r'\b'
        count = len(re.findall(pattern, content_lower))
        density = (count / total_words * 100) if total_words else 0.0
        analysis[keyword] = {
            "count": count,
            "density": round(density, 2),
            "status": keyword_status(density),
        }

    return analysis


# =============================================================================
# COMPONENT SCORES
# =============================================================================

def calculate_seo_score(keyword_analysis: dict) -> int:
    missing = sum(1 for k in keyword_analysis.values() if k["status"] == "missing")
    over = sum(1 for k in keyword_analysis.values() if k["status"] == "over")
    return _clamp(100 - 15 * missing - 10 * over)


def calculate_keyword_score(keyword_analysis: dict) -> int:
    """Per-keyword penalties; no keywords scores 0."""
    if not keyword_analysis:
        return 0

    penalties = {"missing": 20, "under": 10, "over": 15, "optimal": 0}
    score = 100 - sum(penalties[k["status"]] for k in keyword_analysis.values())
    return _clamp(score)


def calculate_readability_score(content: str, metadata: Optional[dict] = None) -> int:
    metadata = metadata or extract_metadata(content)
    word_count = metadata["word_count"]
    if not word_count:
        return 0

    score = 100

    avg_sentence = word_count / max(1, metadata["sentence_count"])
    if avg_sentence > IDEAL_SENTENCE_MAX_WORDS:
        score -= 15
    elif avg_sentence < IDEAL_SENTENCE_MIN_WORDS:
        score -= 10

    paragraphs = max(1, metadata["paragraph_count"])
    if word_count / paragraphs > MAX_PARAGRAPH_WORDS:
        score -= 10

    if metadata["heading_count"] / paragraphs < MIN_HEADING_RATIO:
        score -= 15

    complex_words = [
        w for w in content.split()
        if len(re.sub(r'[^a-zA-Z]', '', w)) >= COMPLEX_WORD_MIN_LETTERS
    ]
    if len(complex_words) / word_count > MAX_COMPLEX_WORD_RATIO:
        score -= 10

    return _clamp(score)


def has_introduction(content: str) -> bool:
    first = (content or "").strip().split("\n\n")[0]
    return len(first) > MIN_INTRO_CHARS and not first.startswith("#")


def has_conclusion(content: str) -> bool:
    last = (content or "").strip().split("\n\n")[-1].lower()
    return any(indicator in last for indicator in CONCLUSION_INDICATORS)


def has_proper_heading_hierarchy(headings: list[tuple[int, str]]) -> bool:
    """False when a heading goes more than one level deeper than the previous one."""
    levels = [level for level, _ in headings]
    return all(b - a <= 1 for a, b in zip(levels, levels[1:]))


def has_transitions(content: str) -> bool:
    content_lower = (content or "").lower()
    return any(word in content_lower for word in TRANSITION_WORDS)


def calculate_structure_score(content: str, metadata: Optional[dict] = None) -> int:
    metadata = metadata or extract_metadata(content)
    score = 100

    if not has_introduction(content):
        score -= 15
    if not has_conclusion(content):
        score -= 15
    if not has_proper_heading_hierarchy(extract_headings(content)):
        score -= 10
    if metadata["paragraph_count"] < MIN_PARAGRAPHS:
        score -= 20
    if not has_transitions(content):
        score -= 10

    return _clamp(score)


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

def get_template_recommendations(template: Optional[str], content: str) -> list[str]:
    if not template:
        return []

    content_lower = content.lower()
    recommendations = []

    if template == "Product Showcase" and "benefit" not in content_lower:
        recommendations.append("Highlight product benefits and value propositions")
    elif template == "How-to Guide" and "1." not in content and "Step" not in content:
        recommendations.append("Use numbered steps or clear step-by-step format")
    elif template == "Buying Guide" and ("pros" not in content_lower or "cons" not in content_lower):
        recommendations.append("Include pros and cons comparison")
    elif template == "Review Article" and "rating" not in content_lower and "score" not in content_lower:
        recommendations.append("Consider adding ratings or scoring system")

    return recommendations


def _build_recommendations(
    content: str,
    keyword_analysis: dict,
    metadata: dict,
    readability: int,
    structure: int,
    template: Optional[str],
    target_word_count: Optional[int],
) -> tuple[list[str], list[str]]:
    issues = []
    recommendations = []

    for keyword, info in keyword_analysis.items():
        if info["status"] == "missing":
            issues.append(f'Keyword "{keyword}" does not appear in the content')
            recommendations.append(f'Add keyword "{keyword}" naturally in the content')
        elif info["status"] == "over":
            issues.append(f'Keyword "{keyword}" is over-optimized ({info["density"]:.1f}%)')
            recommendations.append(f'Reduce frequency of "{keyword}" (current: {info["density"]:.1f}%)')
        elif info["status"] == "under":
            recommendations.append(f'Consider using "{keyword}" more frequently (current: {info["density"]:.1f}%)')

    if len(content) < MIN_SEO_CONTENT_CHARS:
        recommendations.append("Content may be too short for optimal SEO performance")
    if metadata["heading_count"] < 2:
        issues.append("Fewer than two headings")
        recommendations.append("Add more headings to improve content structure")

    if readability < 70:
        recommendations.append("Break down long sentences for better readability")
        recommendations.append("Use simpler language where possible")

    if structure < 70:
        if not has_introduction(content):
            issues.append("Missing introduction paragraph")
            recommendations.append("Add a clear introduction paragraph")
        if not has_conclusion(content):
            issues.append("Missing conclusion")
            recommendations.append("Include a conclusion summarizing key points")

    if target_word_count:
        words = metadata["word_count"]
        if abs(words - target_word_count) / target_word_count > 0.1:
            if words < target_word_count:
                recommendations.append(f"Expand content to reach target word count ({target_word_count} words)")
            else:
                recommendations.append(f"Consider condensing content (current: {words}, target: {target_word_count})")

    recommendations.extend(get_template_recommendations(template, content))
    return issues, recommendations[:MAX_RECOMMENDATIONS]


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def analyze_content(
    content: str,
    target_keywords,
    template: Optional[str] = None,
    target_word_count: Optional[int] = None,
) -> dict:
    """
    Score a Markdown article.

    Args:
        content: Markdown body
        target_keywords: Keywords as a list, JSON string or comma string
        template: Content template name for template-specific advice
        target_word_count: Expected length, adds a recommendation when off by >10%

    Returns:
        dict with keys: overall_score, seo_score, readability_score,
        structure_score, keyword_score, keyword_analysis, issues,
        recommendations, metadata
    """
    content = content or ""
    keywords = list(dict.fromkeys(parse_article_keywords(target_keywords)))

    metadata = extract_metadata(content)
    keyword_analysis = analyze_keywords(content, keywords)

    seo = calculate_seo_score(keyword_analysis)
    readability = calculate_readability_score(content, metadata)
    structure = calculate_structure_score(content, metadata)
    keyword_score = calculate_keyword_score(keyword_analysis)

    overall = _clamp(
        seo * SCORE_WEIGHTS["seo"]
        + readability * SCORE_WEIGHTS["readability"]
        + structure * SCORE_WEIGHTS["structure"]
        + keyword_score * SCORE_WEIGHTS["keywords"]
    )

    issues, recommendations = _build_recommendations(
        content, keyword_analysis, metadata, readability, structure, template, target_word_count
    )

    return {
        "overall_score": overall,
        "seo_score": seo,
        "readability_score": readability,
        "structure_score": structure,
        "keyword_score": keyword_score,
        "keyword_analysis": keyword_analysis,
        "issues": issues,
        "recommendations": recommendations,
        "metadata": metadata,
    }
