"""Tests for text preparation and language detection."""

import pytest

from policyscan.utils.preprocessing import (
    decode_entities,
    detect_language,
    normalize_text,
    prepare_text,
    word_count,
)


class TestDecodeEntities:
    """Tests for HTML entity decoding."""

    def test_single_encoded(self):
        """Plain entities are decoded."""
        assert decode_entities("Tom &amp; Jerry") == "Tom & Jerry"

    def test_double_encoded(self):
        """Double-encoded entities are fully decoded."""
        assert decode_entities("it&amp;#39;s") == "it's"

    def test_none_is_empty(self):
        """Missing text decodes to an empty string."""
        assert decode_entities(None) == ""


class TestPrepareText:
    """Tests for whitespace normalization."""

    def test_collapses_whitespace(self):
        """Runs of whitespace become single spaces and ends are trimmed."""
        assert normalize_text("  hello \n\n  world\t ") == "hello world"

    def test_decodes_then_normalizes(self):
        """Entities and whitespace are both handled."""
        assert prepare_text(" Tom &amp;amp;   Jerry ") == "Tom & Jerry"


class TestWordCount:
    """Tests for word_count."""

    @pytest.mark.parametrize("text,expected", [
        ("", 0),
        ("one", 1),
        ("one  two\nthree", 3),
    ])
    def test_counts_whitespace_separated_words(self, text, expected):
        """Words are whitespace-separated tokens."""
        assert word_count(text) == expected


class TestDetectLanguage:
    """Tests for script-based language detection."""

    @pytest.mark.parametrize("text,expected", [
        ("Hello and welcome", "English"),
        ("مرحبا بكم", "Arabic"),
        ("こんにちは", "Japanese"),
        ("안녕하세요", "Korean"),
        ("สวัสดี", "Thai"),
        ("नमस्ते", "Hindi"),
        ("你好", "Chinese"),
    ])
    def test_scripts(self, text, expected):
        """Each supported script maps to its language."""
        assert detect_language(text) == expected

    def test_empty_defaults_to_english(self):
        """Empty text falls back to English."""
        assert detect_language("") == "English"
