"""Content hashing used for document deduplication."""

import hashlib


def calculate_content_hash(content: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
