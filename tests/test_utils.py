"""Tests for shared helpers."""

from publisher.utils import (
    safe_json_parse,
    parse_article_keywords,
    generate_handle_from_title,
    strip_html,
    count_words,
    calculate_reading_time,
    extract_numeric_id,
    create_gid,
    format_datetime,
)


class TestKeywordParsing:
    """Keywords arrive as JSON text, lists or comma strings."""

    def test_json_text(self):
        """JSON-encoded arrays are decoded."""
        assert parse_article_keywords('["desk", "chair"]') == ["desk", "chair"]

    def test_list_passthrough(self):
        """Lists are cleaned but otherwise kept."""
        assert parse_article_keywords([" desk ", "", None, "chair"]) == ["desk", "chair"]

    def test_comma_string(self):
        """Plain comma strings are split and trimmed."""
        assert parse_article_keywords("desk, chair ,lamp") == ["desk", "chair", "lamp"]

    def test_empty_values(self):
        """Empty inputs give an empty list."""
        assert parse_article_keywords(None) == []
        assert parse_article_keywords("") == []
        assert parse_article_keywords("[]") == []

    def test_safe_json_parse_default(self):
        """Invalid JSON falls back to the default."""
        assert safe_json_parse("{not json", default={}) == {}
        assert safe_json_parse({"a": 1}) == {"a": 1}


class TestHandles:
    def test_basic_title(self):
        """Punctuation is dropped and spaces become hyphens."""
        assert generate_handle_from_title("How to Choose a Desk!") == "how-to-choose-a-desk"

    def test_collapses_hyphens(self):
        """Repeated separators collapse and edges are trimmed."""
        assert generate_handle_from_title("  Desks -- & -- Chairs  ") == "desks-chairs"

    def test_max_length(self):
        """Handles are capped at 255 characters."""
        handle = generate_handle_from_title("word " * 100)
        assert len(handle) <= 255
        assert not handle.endswith("-")

    def test_empty_title(self):
        assert generate_handle_from_title("") == ""


class TestTextMetrics:
    def test_strip_html(self):
        """Tags are removed and whitespace collapsed."""
        assert strip_html("<p>Hello <b>world</b></p>\n<p>again</p>") == "Hello world again"

    def test_count_words(self):
        assert count_words("one two  three") == 3
        assert count_words("") == 0

    def test_reading_time_rounds_up(self):
        """201 words is a two minute read."""
        assert calculate_reading_time(201) == 2
        assert calculate_reading_time(200) == 1
        assert calculate_reading_time(0) == 0

    def test_reading_time_from_text(self):
        assert calculate_reading_time("word " * 450) == 3


class TestShopifyIds:
    def test_extract_numeric_id(self):
        """Trailing digits are taken from a GID."""
        assert extract_numeric_id("gid://shopify/Article/12345") == 12345
        assert extract_numeric_id("678") == 678

    def test_extract_numeric_id_invalid(self):
        assert extract_numeric_id(None) is None
        assert extract_numeric_id("gid://shopify/Article/abc") is None

    def test_create_gid(self):
        assert create_gid("Blog", 42) == "gid://shopify/Blog/42"


class TestFormatDatetime:
    def test_iso_with_z(self):
        assert format_datetime("2026-03-01T08:30:00Z") == "2026-03-01 08:30"

    def test_empty(self):
        assert format_datetime("") == "—"
