import html
import re

# First matching script wins; anything else is reported as English
_SCRIPT_LANGUAGES = [
    ("Arabic", re.compile("[\u0600-\u06FF]")),
    ("Chinese", re.compile("[\u4E00-\u9FFF]")),
    ("Japanese", re.compile("[\u3040-\u30FF]")),
    ("Korean", re.compile("[\uAC00-\uD7AF]")),
    ("Thai", re.compile("[\u0E00-\u0E7F]")),
    ("Hindi", re.compile("[\u0900-\u097F]")),
]


def normalize_text(text: str) -> str:
    text = text or ""
    text = text.strip()
    text = re.sub(r"\s+", " ", text)
    return text


def decode_entities(text: str) -> str:
    """
    Decode HTML entities, twice.

    Transcripts scraped from video pages are often double-encoded
    (`&amp;#39;` -> `&#39;` -> `'`).
    """
    return html.unescape(html.unescape(text or ""))


def prepare_text(text: str) -> str:
    """Entity-decode and whitespace-normalize input before analysis."""
    return normalize_text(decode_entities(text))


def word_count(text: str) -> int:
    return len((text or "").split())


def detect_language(text: str) -> str:
    for language, pattern in _SCRIPT_LANGUAGES:
        if pattern.search(text or ""):
            return language
    return "English"
