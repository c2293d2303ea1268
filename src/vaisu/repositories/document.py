"""
Document metadata repository.

Records are keyed by `(documentId, "METADATA")`.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from vaisu.core.config import settings
from vaisu.repositories.base import BaseRepository, now_iso, parse_iso
from vaisu.repositories.usage_limits import UsageLimitsRepository, usage_limits_repository
from vaisu.storage.kv_store import KeyValueStore

SORT_KEY = "METADATA"


class DocumentRepository(BaseRepository):
    """CRUD and per-user statistics over document records."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        usage_limits: Optional[UsageLimitsRepository] = None,
    ):
        super().__init__(settings.documents_table, store)
        self.usage_limits = usage_limits or usage_limits_repository

    async def find_by_hash_and_filename(
        self, content_hash: str, filename: str
    ) -> Optional[dict[str, Any]]:
        """Deduplication lookup by content hash and file name."""
        matches = await self.store.scan(
            self.table,
            {"contentHash": content_hash, "filename": filename, "SK": SORT_KEY},
        )
        return matches[0] if matches else None

    async def create(self, document: dict[str, Any]) -> None:
        await self.store.put_item(
            self.table, document["documentId"], SORT_KEY, {**document, "SK": SORT_KEY}
        )

    async def find_by_id(self, document_id: str) -> Optional[dict[str, Any]]:
        return await self.store.get_item(self.table, document_id, SORT_KEY)

    async def update_access_metadata(self, document_id: str) -> None:
        """Set `lastAccessedAt` to now and increment `accessCount`."""
        existing = await self.find_by_id(document_id)
        if existing is None:
            return
        await self.store.update_item(
            self.table,
            document_id,
            SORT_KEY,
            {
                "lastAccessedAt": now_iso(),
                "accessCount": (existing.get("accessCount") or 0) + 1,
            },
        )

    async def delete(self, document_id: str) -> None:
        await self.store.delete_item(self.table, document_id, SORT_KEY)

    async def _user_documents(self, user_id: str) -> list[dict[str, Any]]:
        return await self.store.scan(self.table, {"userId": user_id, "SK": SORT_KEY})

    async def list_by_user_id(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        """Documents of a user, newest upload first."""
        documents = await self._user_documents(user_id)
        documents.sort(key=lambda doc: doc.get("uploadedAt", ""), reverse=True)
        return documents[:limit]

    async def count_by_user_id(self, user_id: str) -> int:
        return len(await self._user_documents(user_id))

    async def get_stats_by_user_id(self, user_id: str) -> dict[str, int]:
        """
        Dashboard statistics of a user.

        Returns:
            totalDocuments, totalWords, documentsThisWeek, totalGraphs,
            dailyAnalysisUsage, storageUsed
        """
        documents = await self._user_documents(user_id)
        one_week_ago = datetime.now(timezone.utc) - timedelta(days=7)

        this_week = 0
        for doc in documents:
            uploaded_at = doc.get("uploadedAt")
            if uploaded_at and parse_iso(uploaded_at) > one_week_ago:
                this_week += 1

        daily_usage = await self.usage_limits.get_daily_usage(user_id)

        return {
            "totalDocuments": len(documents),
            "totalWords": round(sum(doc.get("wordCount") or 0 for doc in documents)),
            "documentsThisWeek": this_week,
            "totalGraphs": sum(1 for doc in documents if doc.get("hasAnalysis")),
            "dailyAnalysisUsage": (daily_usage or {}).get("analysisCount", 0),
            "storageUsed": sum(doc.get("fileSize") or 0 for doc in documents),
        }


document_repository = DocumentRepository()
