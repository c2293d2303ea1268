"""Shared helpers: hashing, auth tokens, language and date detection."""

from vaisu.utils.date_parser import parse_date
from vaisu.utils.hashing import calculate_content_hash
from vaisu.utils.language_detector import detect_language

__all__ = ["calculate_content_hash", "detect_language", "parse_date"]
