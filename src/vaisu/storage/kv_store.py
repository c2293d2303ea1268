"""
Key-value store clients.

Records are JSON objects addressed by `(table, partition_key, sort_key)`.
Two backends implement the same interface:

- `SqlKeyValueStore`: SQLAlchemy async engine, one `kv_items` table
- `LocalKeyValueStore`: one JSON file per table under `local_data_dir`,
  used for offline and development mode
"""

import asyncio
import copy
import json
import re
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vaisu.core.config import settings
from vaisu.core.exceptions import StorageError
from vaisu.core.logging import get_logger
from vaisu.storage import database
from vaisu.storage.models import KVItem

logger = get_logger()

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")


def sanitize_key(key: str) -> str:
    """Replace characters that are unsafe in file names with `_`."""
    return _UNSAFE_KEY_CHARS.sub("_", key)


def _matches(item: dict[str, Any], filters: Optional[dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(item.get(key) == value for key, value in filters.items())


class KeyValueStore(ABC):
    """Interface shared by the key-value backends."""

    @abstractmethod
    async def put_item(self, table: str, pk: str, sk: str, item: dict[str, Any]) -> None:
        """Create or overwrite an item."""

    @abstractmethod
    async def get_item(self, table: str, pk: str, sk: str) -> Optional[dict[str, Any]]:
        """Return the item or None."""

    @abstractmethod
    async def update_item(
        self, table: str, pk: str, sk: str, updates: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        """Merge `updates` into an existing item; None when the item is absent."""

    @abstractmethod
    async def delete_item(self, table: str, pk: str, sk: str) -> None:
        """Delete an item; deleting a missing item is not an error."""

    @abstractmethod
    async def query(
        self, table: str, pk: str, sk_prefix: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """Return the items of one partition, ordered by sort key."""

    @abstractmethod
    async def scan(
        self, table: str, filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        """Return every item of a table whose fields equal `filters`."""

    async def close(self) -> None:
        return None


class SqlKeyValueStore(KeyValueStore):
    """Key-value store on top of the `kv_items` SQL table."""

    @staticmethod
    @asynccontextmanager
    async def _session(action: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with database.get_async_session() as session:
                yield session
        except SQLAlchemyError as e:
            raise StorageError(f"Key-value {action} failed: {e}") from e

    async def put_item(self, table: str, pk: str, sk: str, item: dict[str, Any]) -> None:
        async with self._session("put") as session:
            existing = await session.get(KVItem, (table, pk, sk))
            if existing is None:
                session.add(
                    KVItem(table_name=table, partition_key=pk, sort_key=sk, data=dict(item))
                )
            else:
                existing.data = dict(item)

    async def get_item(self, table: str, pk: str, sk: str) -> Optional[dict[str, Any]]:
        async with self._session("get") as session:
            row = await session.get(KVItem, (table, pk, sk))
            return dict(row.data) if row is not None else None

    async def update_item(
        self, table: str, pk: str, sk: str, updates: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        async with self._session("update") as session:
            row = await session.get(KVItem, (table, pk, sk), with_for_update=True)
            if row is None:
                return None
            merged = {**row.data, **updates}
            row.data = merged
            return dict(merged)

    async def delete_item(self, table: str, pk: str, sk: str) -> None:
        async with self._session("delete") as session:
            await session.execute(
                delete(KVItem).where(
                    KVItem.table_name == table,
                    KVItem.partition_key == pk,
                    KVItem.sort_key == sk,
                )
            )

    async def query(
        self, table: str, pk: str, sk_prefix: Optional[str] = None
    ) -> list[dict[str, Any]]:
        stmt = select(KVItem).where(KVItem.table_name == table, KVItem.partition_key == pk)
        if sk_prefix:
            stmt = stmt.where(KVItem.sort_key.startswith(sk_prefix, autoescape=True))
        stmt = stmt.order_by(KVItem.sort_key)

        async with self._session("query") as session:
            result = await session.execute(stmt)
            return [dict(row.data) for row in result.scalars().all()]

    async def scan(
        self, table: str, filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        async with self._session("scan") as session:
            result = await session.execute(
                select(KVItem)
                .where(KVItem.table_name == table)
                .order_by(KVItem.partition_key, KVItem.sort_key)
            )
            items = [dict(row.data) for row in result.scalars().all()]
        return [item for item in items if _matches(item, filters)]

    async def close(self) -> None:
        await database.close_db()


class LocalKeyValueStore(KeyValueStore):
    """
    JSON-file key-value store.

    Each table is stored as `{data_dir}/{table}.json` containing
    `{partition_key: {sort_key: item}}`. Writes replace the whole file.
    """

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _table_path(self, table: str) -> Path:
        return self.data_dir / f"{sanitize_key(table)}.json"

    def _load(self, table: str) -> dict[str, dict[str, dict[str, Any]]]:
        path = self._table_path(table)
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupted local table {path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read local table {path}: {e}") from e

    def _save(self, table: str, data: dict[str, dict[str, dict[str, Any]]]) -> None:
        path = self._table_path(table)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2, default=str)
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to write local table {path}: {e}") from e

    async def put_item(self, table: str, pk: str, sk: str, item: dict[str, Any]) -> None:
        async with self._lock:
            data = self._load(table)
            data.setdefault(pk, {})[sk] = copy.deepcopy(item)
            self._save(table, data)

    async def get_item(self, table: str, pk: str, sk: str) -> Optional[dict[str, Any]]:
        async with self._lock:
            item = self._load(table).get(pk, {}).get(sk)
        return copy.deepcopy(item) if item is not None else None

    async def update_item(
        self, table: str, pk: str, sk: str, updates: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        async with self._lock:
            data = self._load(table)
            item = data.get(pk, {}).get(sk)
            if item is None:
                return None
            item.update(copy.deepcopy(updates))
            self._save(table, data)
            return copy.deepcopy(item)

    async def delete_item(self, table: str, pk: str, sk: str) -> None:
        async with self._lock:
            data = self._load(table)
            partition = data.get(pk)
            if partition is None or sk not in partition:
                return
            del partition[sk]
            if not partition:
                del data[pk]
            self._save(table, data)

    async def query(
        self, table: str, pk: str, sk_prefix: Optional[str] = None
    ) -> list[dict[str, Any]]:
        async with self._lock:
            partition = self._load(table).get(pk, {})
        return [
            copy.deepcopy(partition[sk])
            for sk in sorted(partition)
            if not sk_prefix or sk.startswith(sk_prefix)
        ]

    async def scan(
        self, table: str, filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        async with self._lock:
            data = self._load(table)
        items = [
            data[pk][sk]
            for pk in sorted(data)
            for sk in sorted(data[pk])
        ]
        return [copy.deepcopy(item) for item in items if _matches(item, filters)]


_store: Optional[KeyValueStore] = None


def create_kv_store(backend: Optional[str] = None) -> KeyValueStore:
    """
    Build a store for the given backend name.

    Args:
        backend: "sql" or "local"; defaults to `settings.kv_backend`

    Raises:
        ValueError: unknown backend name
    """
    backend = (backend or settings.kv_backend).lower()
    if backend == "sql":
        return SqlKeyValueStore()
    if backend == "local":
        return LocalKeyValueStore(Path(settings.local_data_dir) / "tables")
    raise ValueError(f"Unknown key-value backend: {backend}")


def get_kv_store() -> KeyValueStore:
    """Return the process-wide key-value store."""
    global _store
    if _store is None:
        _store = create_kv_store()
    return _store


def set_kv_store(store: Optional[KeyValueStore]) -> None:
    """Replace the process-wide store (None resets it)."""
    global _store
    _store = store


async def init_kv_store() -> KeyValueStore:
    """Initialize the configured backend; used by the application lifespan."""
    store = get_kv_store()
    if isinstance(store, SqlKeyValueStore):
        await database.init_db()
    logger.info(f"Key-value store ready: {type(store).__name__}")
    return store


async def close_kv_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        logger.info("Key-value store closed")
    _store = None
