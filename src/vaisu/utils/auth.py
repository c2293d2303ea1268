"""
Authentication helpers.

- Argon2id password hashing (argon2-cffi), run in the default executor
- HS256 JWT access and refresh tokens (PyJWT)
- random tokens for email verification and password reset
- email and password validation
"""

import asyncio
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from vaisu.core.config import settings
from vaisu.core.logging import get_logger

logger = get_logger()

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

_password_hasher = PasswordHasher(
    time_cost=3,
    memory_cost=65536,  # KiB
    parallelism=1,
)


async def hash_password(password: str) -> str:
    """Argon2id hash of a password."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, _password_hasher.hash, password)


async def verify_password(password: str, password_hash: str) -> bool:
    """True when the password matches; malformed hashes never match."""
    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(
            None, _password_hasher.verify, password_hash, password
        )
    except (VerificationError, InvalidHashError):
        return False


def _encode(payload: dict[str, Any], token_type: str, expires_in: timedelta) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        **payload,
        "type": token_type,
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def generate_access_token(payload: dict[str, Any]) -> str:
    """Short-lived token carrying `userId` and `email`."""
    return _encode(
        payload,
        ACCESS_TOKEN_TYPE,
        timedelta(minutes=settings.access_token_expires_minutes),
    )


def generate_refresh_token(payload: dict[str, Any]) -> str:
    return _encode(
        payload,
        REFRESH_TOKEN_TYPE,
        timedelta(days=settings.refresh_token_expires_days),
    )


def generate_token_pair(payload: dict[str, Any]) -> dict[str, str]:
    return {
        "accessToken": generate_access_token(payload),
        "refreshToken": generate_refresh_token(payload),
    }


def _decode(token: str, token_type: str) -> Optional[dict[str, Any]]:
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[ALGORITHM],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        return None

    if claims.get("type") != token_type:
        return None
    return claims


def verify_access_token(token: str) -> Optional[dict[str, Any]]:
    """Claims of a valid access token, None otherwise."""
    return _decode(token, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str) -> Optional[dict[str, Any]]:
    """Claims of a valid refresh token, None otherwise."""
    return _decode(token, REFRESH_TOKEN_TYPE)


def generate_verification_token() -> str:
    return secrets.token_hex(32)


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def generate_token_expiry(hours: int = 24) -> str:
    """ISO timestamp `hours` from now."""
    expiry = datetime.now(timezone.utc) + timedelta(hours=hours)
    return expiry.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def validate_password(password: str) -> tuple[bool, list[str]]:
    """
    Check password strength.

    Returns:
        (valid, errors) where errors lists every unmet requirement
    """
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not SPECIAL_CHARACTERS.search(password):
        errors.append("Password must contain at least one special character")
    return not errors, errors
