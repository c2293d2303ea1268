"""
Audit log repository.

Entries are keyed by `(userId, "{timestamp}#{logId}")`, so one partition
query returns a user's history in time order.
"""

import uuid
from typing import Any, Optional

from vaisu.core.config import settings
from vaisu.models.records import AuditLog
from vaisu.repositories.base import BaseRepository, now_iso
from vaisu.storage.kv_store import KeyValueStore


class AuditLogsRepository(BaseRepository):
    def __init__(self, store: Optional[KeyValueStore] = None):
        super().__init__(settings.audit_logs_table, store)

    async def create_log(
        self,
        user_id: str,
        action: str,
        resource_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict[str, Any]:
        log = AuditLog(
            log_id=str(uuid.uuid4()),
            user_id=user_id,
            action=action,
            resource_id=resource_id,
            resource_type=resource_type,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
            timestamp=now_iso(),
        ).to_item()

        await self.store.put_item(
            self.table, user_id, f"{log['timestamp']}#{log['logId']}", log
        )
        return log

    async def get_logs_by_user_id(self, user_id: str, limit: int = 100) -> list[dict[str, Any]]:
        """Most recent first."""
        logs = await self.store.query(self.table, user_id)
        return list(reversed(logs))[:limit]

    async def get_logs_by_action(self, action: str, limit: int = 100) -> list[dict[str, Any]]:
        logs = await self.store.scan(self.table, {"action": action})
        logs.sort(key=lambda log: log.get("timestamp", ""), reverse=True)
        return logs[:limit]

    # ==================== Common actions ====================

    async def log_user_registration(
        self, user_id: str, email: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "USER_REGISTRATION", details={"email": email},
            ip_address=ip_address, user_agent=user_agent,
        )

    async def log_user_login(
        self, user_id: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "USER_LOGIN", ip_address=ip_address, user_agent=user_agent
        )

    async def log_user_logout(
        self,
        user_id: str,
        session_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "USER_LOGOUT", details={"sessionId": session_id},
            ip_address=ip_address, user_agent=user_agent,
        )

    async def log_password_reset(
        self, user_id: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "PASSWORD_RESET", ip_address=ip_address, user_agent=user_agent
        )

    async def log_email_verification(
        self, user_id: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "EMAIL_VERIFICATION", ip_address=ip_address, user_agent=user_agent
        )

    async def log_document_upload(
        self,
        user_id: str,
        document_id: str,
        file_name: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "DOCUMENT_UPLOAD",
            resource_id=document_id, resource_type="document",
            details={"fileName": file_name},
            ip_address=ip_address, user_agent=user_agent,
        )

    async def log_document_analysis(
        self,
        user_id: str,
        document_id: str,
        analysis_type: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "DOCUMENT_ANALYSIS",
            resource_id=document_id, resource_type="document",
            details={"analysisType": analysis_type},
            ip_address=ip_address, user_agent=user_agent,
        )

    async def log_account_deletion(
        self, user_id: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "ACCOUNT_DELETION", ip_address=ip_address, user_agent=user_agent
        )

    async def log_failed_login(
        self, user_id: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "FAILED_LOGIN", ip_address=ip_address, user_agent=user_agent
        )

    async def log_role_change(
        self,
        user_id: str,
        new_role: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "ROLE_CHANGE", details={"newRole": new_role},
            ip_address=ip_address, user_agent=user_agent,
        )

    async def log_usage_limit_exceeded(
        self,
        user_id: str,
        limit_type: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self.create_log(
            user_id, "USAGE_LIMIT_EXCEEDED", details={"limitType": limit_type},
            ip_address=ip_address, user_agent=user_agent,
        )


audit_logs_repository = AuditLogsRepository()
