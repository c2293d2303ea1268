"""
Usage counters per user and period.

Monthly periods (`YYYY-MM`) hold document, API call and storage counters;
daily periods (`YYYY-MM-DD`) hold the analysis counter.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from vaisu.core.config import settings
from vaisu.models.records import UsageLimitConfig, UsageLimits
from vaisu.repositories.base import BaseRepository, now_iso, to_iso
from vaisu.storage.kv_store import KeyValueStore

DEFAULT_LIMITS = UsageLimitConfig()

_COUNTER_ARGS = {
    "documentCount": "document_count",
    "analysisCount": "analysis_count",
    "apiCalls": "api_calls",
    "storageUsed": "storage_used",
}


def monthly_period(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now.year}-{now.month:02d}"


def daily_period(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d")


def compute_reset_date(period: str, now: Optional[datetime] = None) -> datetime:
    """Next midnight for daily periods, first day of next month otherwise."""
    now = now or datetime.now(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if len(period) == 10:
        return midnight + timedelta(days=1)
    if now.month == 12:
        return midnight.replace(year=now.year + 1, month=1, day=1)
    return midnight.replace(month=now.month + 1, day=1)


class UsageLimitsRepository(BaseRepository):
    """Usage counters keyed by `(userId, period)`."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        limits: Optional[UsageLimitConfig] = None,
    ):
        super().__init__(settings.usage_limits_table, store)
        self.default_limits = limits or DEFAULT_LIMITS

    async def get_usage_limits(self, user_id: str, period: str) -> Optional[dict[str, Any]]:
        return await self.store.get_item(self.table, user_id, period)

    async def get_current_usage(self, user_id: str) -> Optional[dict[str, Any]]:
        return await self.get_usage_limits(user_id, monthly_period())

    async def get_daily_usage(self, user_id: str) -> Optional[dict[str, Any]]:
        return await self.get_usage_limits(user_id, daily_period())

    async def create_usage_limits(
        self,
        user_id: str,
        period: str,
        document_count: int = 0,
        analysis_count: int = 0,
        api_calls: int = 0,
        storage_used: int = 0,
    ) -> dict[str, Any]:
        now = now_iso()
        record = UsageLimits(
            user_id=user_id,
            period=period,
            document_count=document_count,
            analysis_count=analysis_count,
            api_calls=api_calls,
            storage_used=storage_used,
            reset_date=to_iso(compute_reset_date(period)),
            created_at=now,
            updated_at=now,
        ).to_item()

        await self.store.put_item(self.table, user_id, period, record)
        return record

    async def _increment(
        self, user_id: str, period: str, field: str, amount: int
    ) -> dict[str, Any]:
        existing = await self.get_usage_limits(user_id, period)
        if existing is None:
            return await self.create_usage_limits(
                user_id, period, **{_COUNTER_ARGS[field]: amount}
            )

        updated = await self.store.update_item(
            self.table,
            user_id,
            period,
            {field: existing.get(field, 0) + amount, "updatedAt": now_iso()},
        )
        return updated or existing

    async def increment_document_count(self, user_id: str, amount: int = 1) -> dict[str, Any]:
        return await self._increment(user_id, monthly_period(), "documentCount", amount)

    async def increment_analysis_count(self, user_id: str, amount: int = 1) -> dict[str, Any]:
        return await self._increment(user_id, daily_period(), "analysisCount", amount)

    async def increment_api_calls(self, user_id: str, amount: int = 1) -> dict[str, Any]:
        return await self._increment(user_id, monthly_period(), "apiCalls", amount)

    async def increment_storage_used(self, user_id: str, size: int) -> dict[str, Any]:
        return await self._increment(user_id, monthly_period(), "storageUsed", size)

    async def check_limits(
        self, user_id: str, limits: Optional[UsageLimitConfig] = None
    ) -> dict[str, Any]:
        """
        Compare the current month's counters with the limits.

        Returns:
            {"allowed": bool, "exceeded": [...]} with names from
            documents / analyses / api_calls / storage
        """
        limits = limits or self.default_limits
        current = await self.get_current_usage(user_id)
        if current is None:
            return {"allowed": True, "exceeded": []}

        exceeded = []
        if current.get("documentCount", 0) >= limits.max_documents:
            exceeded.append("documents")
        if current.get("analysisCount", 0) >= limits.max_analyses:
            exceeded.append("analyses")
        if current.get("apiCalls", 0) >= limits.max_api_calls:
            exceeded.append("api_calls")
        if current.get("storageUsed", 0) >= limits.max_storage:
            exceeded.append("storage")

        return {"allowed": not exceeded, "exceeded": exceeded}

    async def get_usage_history(self, user_id: str, limit: int = 12) -> list[dict[str, Any]]:
        """Monthly records of the last `limit` months, newest first."""
        now = datetime.now(timezone.utc)
        year, month = now.year, now.month
        results = []
        for _ in range(limit):
            usage = await self.get_usage_limits(user_id, f"{year}-{month:02d}")
            if usage:
                results.append(usage)
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        return results


usage_limits_repository = UsageLimitsRepository()
