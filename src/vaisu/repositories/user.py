"""
User repository.

Users are keyed by `(userId, "PROFILE")`. Email lookup scans the table with
the lowercased address.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from vaisu.core.config import settings
from vaisu.core.logging import get_logger
from vaisu.models.records import User
from vaisu.repositories.base import BaseRepository, now_iso, parse_iso, to_iso
from vaisu.storage.kv_store import KeyValueStore

logger = get_logger()

SORT_KEY = "PROFILE"
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_MINUTES = 15


class UserRepository(BaseRepository):
    def __init__(self, store: Optional[KeyValueStore] = None):
        super().__init__(settings.users_table, store)

    async def create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        role: Optional[str] = None,
        profile_picture_url: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Create a user pending email verification.

        Returns:
            the stored user record
        """
        now = now_iso()
        user = User(
            user_id=str(uuid.uuid4()),
            email=email.lower(),
            first_name=first_name,
            last_name=last_name,
            profile_picture_url=profile_picture_url,
            password_hash=password_hash,
            role=role or "free",
            status="pending_verification",
            email_verified=False,
            verification_token=str(uuid.uuid4()),
            failed_login_attempts=0,
            created_at=now,
            updated_at=now,
        ).to_item()

        await self.store.put_item(self.table, user["userId"], SORT_KEY, user)
        logger.info(f"User created: {user['userId']}")
        return user

    async def get_user_by_id(self, user_id: str) -> Optional[dict[str, Any]]:
        return await self.store.get_item(self.table, user_id, SORT_KEY)

    async def get_user_by_email(self, email: str) -> Optional[dict[str, Any]]:
        users = await self.store.scan(self.table, {"email": email.lower()})
        return users[0] if users else None

    async def update_user(self, user_id: str, updates: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        Set the given fields and `updatedAt`.

        None values are skipped; use `clear_fields` to remove a field.

        Returns:
            the updated user, None when the user does not exist
        """
        values = {key: value for key, value in updates.items() if value is not None}
        values["updatedAt"] = now_iso()
        return await self.store.update_item(self.table, user_id, SORT_KEY, values)

    async def clear_fields(self, user_id: str, fields: Iterable[str]) -> Optional[dict[str, Any]]:
        """Remove fields from a user record."""
        user = await self.get_user_by_id(user_id)
        if user is None:
            return None
        for field in fields:
            user.pop(field, None)
        user["updatedAt"] = now_iso()
        await self.store.put_item(self.table, user_id, SORT_KEY, user)
        return user

    async def delete_user(self, user_id: str) -> None:
        """Soft delete: mark the user inactive and stamp `deletedAt`."""
        await self.update_user(user_id, {"deletedAt": now_iso(), "status": "inactive"})

    async def verify_email(self, user_id: str, token: str) -> bool:
        user = await self.get_user_by_id(user_id)
        if not user or user.get("verificationToken") != token:
            return False

        await self.update_user(user_id, {"emailVerified": True, "status": "active"})
        await self.clear_fields(user_id, ("verificationToken",))
        return True

    async def reset_password(self, user_id: str, token: str, new_password_hash: str) -> bool:
        """
        Replace the password when the reset token matches and has not expired.

        Also clears the token and the failed login counter.
        """
        user = await self.get_user_by_id(user_id)
        if not user or user.get("resetToken") != token or not user.get("resetTokenExpiry"):
            return False

        if parse_iso(user["resetTokenExpiry"]) < datetime.now(timezone.utc):
            return False

        await self.update_user(
            user_id, {"passwordHash": new_password_hash, "failedLoginAttempts": 0}
        )
        await self.clear_fields(user_id, ("resetToken", "resetTokenExpiry", "lockedUntil"))
        return True

    async def increment_failed_attempts(self, user_id: str) -> None:
        """Count a failed login; the fifth consecutive failure locks the account."""
        user = await self.get_user_by_id(user_id)
        if not user:
            return

        attempts = (user.get("failedLoginAttempts") or 0) + 1
        updates: dict[str, Any] = {"failedLoginAttempts": attempts}
        if attempts >= MAX_FAILED_ATTEMPTS:
            locked_until = datetime.now(timezone.utc) + timedelta(minutes=LOCKOUT_MINUTES)
            updates["lockedUntil"] = to_iso(locked_until)
            logger.warning(f"Account {user_id} locked after {attempts} failed attempts")

        await self.update_user(user_id, updates)

    async def reset_failed_attempts(self, user_id: str) -> None:
        await self.update_user(user_id, {"failedLoginAttempts": 0})
        await self.clear_fields(user_id, ("lockedUntil",))

    async def is_account_locked(self, user_id: str) -> bool:
        user = await self.get_user_by_id(user_id)
        if not user or not user.get("lockedUntil"):
            return False
        return parse_iso(user["lockedUntil"]) > datetime.now(timezone.utc)


user_repository = UserRepository()
