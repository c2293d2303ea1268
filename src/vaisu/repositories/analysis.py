"""Analysis repository, keyed by `(documentId, "ANALYSIS")`."""

from typing import Any, Optional

from vaisu.core.config import settings
from vaisu.repositories.base import BaseRepository, filter_updates
from vaisu.storage.kv_store import KeyValueStore

SORT_KEY = "ANALYSIS"


class AnalysisRepository(BaseRepository):
    def __init__(self, store: Optional[KeyValueStore] = None):
        super().__init__(settings.analyses_table, store)

    async def create(self, analysis: dict[str, Any]) -> None:
        await self.store.put_item(
            self.table, analysis["documentId"], SORT_KEY, {**analysis, "SK": SORT_KEY}
        )

    async def find_by_document_id(self, document_id: str) -> Optional[dict[str, Any]]:
        return await self.store.get_item(self.table, document_id, SORT_KEY)

    async def update(self, document_id: str, updates: dict[str, Any]) -> None:
        """Partial update; `documentId` and `SK` are never overwritten."""
        values = filter_updates(updates, ("documentId", "SK"))
        if not values:
            return
        await self.store.update_item(self.table, document_id, SORT_KEY, values)

    async def delete(self, document_id: str) -> None:
        await self.store.delete_item(self.table, document_id, SORT_KEY)


analysis_repository = AnalysisRepository()
