"""
Shared repository plumbing.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from vaisu.storage.kv_store import KeyValueStore, get_kv_store


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return to_iso(datetime.now(timezone.utc))


def to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_iso(value: str) -> datetime:
    """Parse a stored timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_updates(updates: dict[str, Any], protected: Iterable[str]) -> dict[str, Any]:
    """Drop protected keys from an update."""
    skipped = set(protected)
    return {key: value for key, value in updates.items() if key not in skipped}


class BaseRepository:
    """
    Repository over one key-value table.

    The store defaults to the process-wide store, resolved on each access so
    tests can swap it.
    """

    def __init__(self, table: str, store: Optional[KeyValueStore] = None):
        self.table = table
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store or get_kv_store()
