"""
Session repository.

Sessions are keyed by `(sessionId, "SESSION")`; the sessions of a user are
found by scanning on `userId`.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from vaisu.core.config import settings
from vaisu.models.records import Session
from vaisu.repositories.base import BaseRepository, parse_iso, to_iso
from vaisu.storage.kv_store import KeyValueStore

SORT_KEY = "SESSION"


class SessionRepository(BaseRepository):
    def __init__(self, store: Optional[KeyValueStore] = None):
        super().__init__(settings.sessions_table, store)

    async def create_session(
        self,
        user_id: str,
        refresh_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        session = Session(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            refresh_token=refresh_token,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=to_iso(now),
            expires_at=to_iso(now + timedelta(days=settings.session_expires_days)),
            revoked=False,
        ).to_item()

        await self.store.put_item(self.table, session["sessionId"], SORT_KEY, session)
        return session

    async def get_session_by_id(self, session_id: str) -> Optional[dict[str, Any]]:
        return await self.store.get_item(self.table, session_id, SORT_KEY)

    async def get_sessions_by_user_id(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        """Sessions of a user, most recent first."""
        sessions = await self.store.scan(self.table, {"userId": user_id})
        sessions.sort(key=lambda session: session.get("createdAt", ""), reverse=True)
        return sessions[:limit]

    async def revoke_session(self, session_id: str) -> None:
        await self.store.update_item(self.table, session_id, SORT_KEY, {"revoked": True})

    async def revoke_all_user_sessions(self, user_id: str) -> None:
        for session in await self.get_sessions_by_user_id(user_id, limit=100):
            if not session.get("revoked"):
                await self.revoke_session(session["sessionId"])

    async def is_session_valid(self, session_id: str) -> bool:
        session = await self.get_session_by_id(session_id)
        if not session or session.get("revoked"):
            return False
        return datetime.now(timezone.utc) < parse_iso(session["expiresAt"])

    async def delete_session(self, session_id: str) -> None:
        await self.store.delete_item(self.table, session_id, SORT_KEY)


session_repository = SessionRepository()
