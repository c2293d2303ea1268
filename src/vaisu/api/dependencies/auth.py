"""
Authentication dependencies.

`authenticate` reads a `Bearer <token>` Authorization header, verifies the
access token and loads the user, which must be active. `optional_authenticate`
never fails. `require_role`, `require_admin` and `require_self_or_admin`
build on top of them.

Usage:
    @router.get("/me")
    async def me(user: AuthenticatedUser = Depends(authenticate)):
        ...
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import Depends, Header, Request

from vaisu.core.exceptions import ApiError
from vaisu.core.logging import get_logger
from vaisu.repositories import user_repository
from vaisu.utils.auth import verify_access_token

logger = get_logger()


@dataclass
class AuthenticatedUser:
    user_id: str
    email: str
    role: Optional[str] = None
    subscription_status: Optional[str] = None
    record: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "AuthenticatedUser":
        return cls(
            user_id=record["userId"],
            email=record.get("email", ""),
            role=record.get("role"),
            subscription_status=record.get("subscriptionStatus"),
            record=record,
        )


def client_info(request: Request) -> tuple[str, Optional[str]]:
    """(ip, user agent) of a request."""
    ip = request.client.host if request.client else "unknown"
    return ip, request.headers.get("user-agent")


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token of a `Bearer <token>` header, None for any other shape."""
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    return parts[1]


async def authenticate(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> AuthenticatedUser:
    """
    Resolve the user of the request.

    Raises:
        ApiError: 401 without a valid token or user, 403 for inactive
            accounts, 500 when the user lookup fails
    """
    route = f"{request.method} {request.url.path}"
    token = extract_bearer_token(authorization)
    if not token:
        logger.warning(f"Auth: No token provided for {route}")
        raise ApiError(401, "No token provided")

    payload = verify_access_token(token)
    if not payload:
        logger.warning(f"Auth: Invalid or expired token for {route}")
        raise ApiError(401, "Invalid or expired token")

    try:
        user = await user_repository.get_user_by_id(payload["userId"])
    except Exception as e:
        logger.error(f"Auth: Database error looking up user {payload['userId']}: {e}")
        raise ApiError(500, "Internal server error during authentication") from e

    if not user:
        logger.warning(f"Auth: User not found for ID {payload['userId']}")
        raise ApiError(401, "User not found")

    status = user.get("status") or ""
    if status != "active":
        logger.warning(f"Auth: Account {user['userId']} is {status}")
        raise ApiError(403, f"Account is {status.replace('_', ' ', 1)}")

    current = AuthenticatedUser.from_record(user)
    request.state.user = current
    return current


async def optional_authenticate(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Optional[AuthenticatedUser]:
    """The user when the request carries a valid token, otherwise None."""
    token = extract_bearer_token(authorization)
    if not token:
        return None

    payload = verify_access_token(token)
    if not payload:
        return None

    try:
        user = await user_repository.get_user_by_id(payload["userId"])
    except Exception as e:
        logger.error(f"Optional authentication error: {e}")
        return None

    if not user:
        return None

    current = AuthenticatedUser.from_record(user)
    request.state.user = current
    return current


def require_role(*roles: str):
    """Dependency factory admitting only users whose role is in `roles`."""

    async def dependency(
        user: Optional[AuthenticatedUser] = Depends(optional_authenticate),
    ) -> AuthenticatedUser:
        if user is None:
            raise ApiError(401, "Authentication required")

        record = await user_repository.get_user_by_id(user.user_id)
        if not record:
            raise ApiError(401, "User not found")

        if not record.get("role") or record["role"] not in roles:
            raise ApiError(403, "Access denied: insufficient permissions")
        return user

    return dependency


require_admin = require_role("admin")


def require_self_or_admin(param_name: str = "userId"):
    """
    Dependency factory admitting the target user themselves or an admin.

    The target id is read from the path, the query string or a JSON body,
    in that order.
    """

    async def dependency(
        request: Request,
        user: Optional[AuthenticatedUser] = Depends(optional_authenticate),
    ) -> AuthenticatedUser:
        if user is None:
            raise ApiError(401, "Authentication required")

        target_user_id = request.path_params.get(param_name) or request.query_params.get(
            param_name
        )
        if not target_user_id and request.headers.get("content-type", "").startswith(
            "application/json"
        ):
            try:
                body = await request.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                target_user_id = body.get(param_name)

        if not target_user_id:
            raise ApiError(400, "Target user ID required")

        record = await user_repository.get_user_by_id(user.user_id)
        if not record:
            raise ApiError(401, "User not found")

        if record.get("role") != "admin" and user.user_id != target_user_id:
            raise ApiError(403, "Access denied")
        return user

    return dependency
