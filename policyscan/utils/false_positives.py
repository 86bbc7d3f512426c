"""
False-positive filtering for "risky phrase" lists.

Models like to flag harmless everyday words (sports talk, family words,
device names). Any phrase that contains a deny-listed word is dropped.
This trades recall for precision in the highlighted-phrase output.
"""

import re
from typing import Dict, Iterable, List, Optional, Protocol

COMMON_WORDS = [
    "you", "worried", "rival", "team", "player", "goal", "score", "match", "game", "play",
    "win", "lose", "good", "bad", "big", "small", "new", "old", "first", "last", "best", "worst",
    "money", "dollar", "price", "cost", "value", "worth", "expensive", "cheap", "million", "billion",
    "year", "month", "week", "day", "time", "people", "person", "thing", "way", "work",
    "make", "take", "get", "go", "come", "see", "know", "think", "feel", "want", "need", "like",
    "look", "say", "tell", "ask", "give", "find", "use", "try", "call", "help", "start", "stop",
    "keep", "put", "bring", "turn", "move", "change", "show", "hear", "run", "walk",
    "sit", "stand", "wait", "watch", "read", "write", "speak", "talk", "listen", "learn", "teach",
    "buy", "sell", "pay", "earn", "spend", "save", "beat", "hit", "catch", "throw",
    "kick", "jump", "swim", "dance", "sing", "laugh", "cry", "smile", "frown", "love", "hate",
    "dislike", "happy", "sad", "angry", "excited", "bored", "tired", "hungry", "thirsty",
    "hot", "cold", "warm", "cool", "fast", "slow", "quick", "easy", "hard", "simple", "complex",
    "right", "wrong", "true", "false", "yes", "no", "maybe", "sure", "okay", "fine", "great", "awesome",
]

FAMILY_TERMS = [
    "kid", "kids", "child", "children", "boy", "girl", "son", "daughter",
    "family", "parent", "mom", "dad", "mother", "father", "sister", "brother", "baby", "toddler",
    "teen", "teenager", "youth", "young", "elderly", "senior", "adult", "grown", "grownup",
    "friend", "buddy", "pal", "mate", "colleague", "neighbor", "cousin", "uncle", "aunt", "grandma",
    "grandpa", "grandmother", "grandfather", "nephew", "niece", "relative", "relation",
]

TECHNOLOGY_TERMS = [
    "phone", "device", "mobile", "cell", "smartphone", "iphone", "android", "tablet", "computer",
    "laptop", "desktop", "screen", "display", "monitor", "keyboard", "mouse", "touch", "tap",
    "swipe", "click", "type", "text", "message", "ring", "dial", "number", "contact",
    "address", "email", "mail",
]

HOME_TERMS = [
    "home", "house", "room", "bedroom", "kitchen", "bathroom", "living", "dining", "office",
    "school", "class", "teacher", "student", "classroom", "homework", "study", "education",
]

DEFAULT_DENY_WORDS: List[str] = list(dict.fromkeys(
    COMMON_WORDS + FAMILY_TERMS + TECHNOLOGY_TERMS + HOME_TERMS
))

MIN_PHRASE_LENGTH = 3
_HAS_WORD_CHAR = re.compile(r"\w")


class PhrasePredicate(Protocol):
    def should_flag(self, phrase: str) -> bool:
        ...


class FalsePositiveFilter:
    """
    Deny-list phrase filter.

    Matching is case-insensitive substring containment, so "kids channel"
    is dropped because it contains "kid". Phrases shorter than three
    characters and punctuation-only phrases are dropped too.
    """

    def __init__(self, deny_words: Optional[Iterable[str]] = None):
        words = DEFAULT_DENY_WORDS if deny_words is None else deny_words
        self.deny_words = tuple(w.lower() for w in words if w)

    def is_false_positive(self, phrase: str) -> bool:
        lowered = phrase.lower()
        return any(word in lowered for word in self.deny_words)

    def should_flag(self, phrase: str) -> bool:
        if not isinstance(phrase, str):
            return False
        stripped = phrase.strip()
        if len(stripped) < MIN_PHRASE_LENGTH:
            return False
        if not _HAS_WORD_CHAR.search(stripped):
            return False
        return not self.is_false_positive(stripped)

    def filter(self, phrases: Iterable[str]) -> List[str]:
        return [p for p in phrases if self.should_flag(p)]

    def filter_by_category(self, phrases_by_category: Dict[str, List[str]]) -> Dict[str, List[str]]:
        return {category: self.filter(phrases) for category, phrases in phrases_by_category.items()}


def dedupe_phrases(phrases: Iterable[str]) -> List[str]:
    """Case-insensitive de-duplication; the first spelling seen is kept."""
    seen = set()
    unique = []
    for phrase in phrases:
        cleaned = phrase.strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        unique.append(cleaned)
    return unique
