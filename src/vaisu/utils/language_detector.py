"""
Lightweight language detection.

Counts common function words per language and picks the best scoring one.
"""

import re

COMMON_WORDS: dict[str, set[str]] = {
    "en": {"the", "and", "with", "this", "that", "from", "have", "would", "their", "there"},
    "es": {"el", "la", "de", "que", "en", "los", "las", "por", "para", "con"},
    "fr": {"le", "la", "les", "des", "est", "une", "dans", "pour", "plus", "avec"},
    "de": {"der", "die", "das", "und", "mit", "ist", "von", "eine", "den", "auf"},
    "it": {"il", "la", "le", "di", "che", "in", "per", "una", "nella", "con"},
}

_NON_WORD = re.compile(r"\W+")


def detect_language(text: str) -> str:
    """
    Return the ISO code of the most likely language.

    Text shorter than 10 characters, or without any common word, is "en".
    Ties keep the language listed first.
    """
    if not text or len(text) < 10:
        return "en"

    words = _NON_WORD.split(text.lower())
    best_lang, best_score = "en", 0
    for lang, common_words in COMMON_WORDS.items():
        score = sum(1 for word in words if word in common_words)
        if score > best_score:
            best_lang, best_score = lang, score

    return best_lang
