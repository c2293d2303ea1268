"""
Account API: registration, login, tokens, sessions, password and profile.

Endpoints (prefix /api/auth):
- POST   /register, /login, /refresh, /logout, /logout-all
- POST   /verify-email, /request-password-reset, /reset-password
- GET    /sessions;  POST /revoke-session
- GET    /me;  PUT /profile, /password;  DELETE /account
- GET    /users/{userId}/audit-logs (self or admin), /admin/audit-logs (admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from vaisu.api.dependencies import (
    AuthenticatedUser,
    authenticate,
    client_info,
    require_admin,
    require_self_or_admin,
)
from vaisu.api.rate_limit import login_rate_limit, rate_limit
from vaisu.core.exceptions import ApiError
from vaisu.core.logging import get_logger
from vaisu.models.requests import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    LogoutAllRequest,
    LogoutRequest,
    PasswordResetRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    RevokeSessionRequest,
    UpdateProfileRequest,
    VerifyEmailRequest,
)
from vaisu.repositories import audit_logs_repository, session_repository, user_repository
from vaisu.repositories.base import now_iso
from vaisu.services.email import get_resend_client
from vaisu.utils import auth as auth_utils

router = APIRouter(prefix="/api/auth", tags=["auth"], dependencies=[Depends(rate_limit)])

logger = get_logger()

RESET_TOKEN_HOURS = 1
RESET_REQUESTED_MESSAGE = "If an account exists, a reset link has been sent"


def _password_errors(password: str, message: str) -> None:
    valid, errors = auth_utils.validate_password(password)
    if not valid:
        raise ApiError(400, message, details=errors)


# ==================== Registration / login ====================


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, request: Request):
    if not auth_utils.validate_email(body.email):
        raise ApiError(400, "Invalid email format")
    _password_errors(body.password, "Password does not meet requirements")

    if await user_repository.get_user_by_email(body.email):
        raise ApiError(409, "User with this email already exists")

    password_hash = await auth_utils.hash_password(body.password)
    user = await user_repository.create_user(
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        password_hash=password_hash,
    )

    # Accounts are verified on registration.
    await user_repository.update_user(user["userId"], {"emailVerified": True, "status": "active"})
    await user_repository.clear_fields(user["userId"], ("verificationToken",))

    ip, user_agent = client_info(request)
    await audit_logs_repository.log_user_registration(
        user["userId"], user["email"], ip_address=ip, user_agent=user_agent
    )
    logger.info(f"User registered: {user['userId']}")

    return {
        "message": "User registered successfully.",
        "userId": user["userId"],
        "email": user["email"],
    }


@router.post("/login", dependencies=[Depends(login_rate_limit)])
async def login(body: LoginRequest, request: Request):
    ip, user_agent = client_info(request)

    user = await user_repository.get_user_by_email(body.email)
    if not user:
        raise ApiError(401, "Invalid credentials")

    if await user_repository.is_account_locked(user["userId"]):
        raise ApiError(
            423,
            "Account is temporarily locked due to too many failed attempts",
            lockedUntil=user.get("lockedUntil"),
        )

    if not await auth_utils.verify_password(body.password, user.get("passwordHash", "")):
        await user_repository.increment_failed_attempts(user["userId"])
        await audit_logs_repository.log_failed_login(
            user["userId"], ip_address=ip, user_agent=user_agent
        )
        raise ApiError(401, "Invalid credentials")

    await user_repository.reset_failed_attempts(user["userId"])
    await user_repository.update_user(user["userId"], {"lastLogin": now_iso()})

    tokens = auth_utils.generate_token_pair({"userId": user["userId"], "email": user["email"]})
    session = await session_repository.create_session(
        user_id=user["userId"],
        refresh_token=tokens["refreshToken"],
        ip_address=ip,
        user_agent=user_agent,
    )
    await audit_logs_repository.log_user_login(user["userId"], ip_address=ip, user_agent=user_agent)

    return {
        "message": "Login successful",
        "accessToken": tokens["accessToken"],
        "refreshToken": tokens["refreshToken"],
        "sessionId": session["sessionId"],
        "user": {
            "userId": user["userId"],
            "email": user["email"],
            "firstName": user.get("firstName"),
            "lastName": user.get("lastName"),
        },
    }


@router.post("/refresh")
async def refresh(body: RefreshRequest):
    if not body.refresh_token:
        raise ApiError(400, "Refresh token required")

    payload = auth_utils.verify_refresh_token(body.refresh_token)
    if not payload:
        raise ApiError(401, "Invalid refresh token")

    user = await user_repository.get_user_by_id(payload["userId"])
    if not user:
        raise ApiError(401, "User not found")

    access_token = auth_utils.generate_access_token(
        {"userId": user["userId"], "email": user["email"]}
    )
    return {"accessToken": access_token}


@router.post("/logout")
async def logout(request: Request, body: Optional[LogoutRequest] = None):
    if body is not None and body.session_id:
        session = await session_repository.get_session_by_id(body.session_id)
        await session_repository.revoke_session(body.session_id)
        if session:
            ip, user_agent = client_info(request)
            await audit_logs_repository.log_user_logout(
                session["userId"], body.session_id, ip_address=ip, user_agent=user_agent
            )
    return {"message": "Logged out successfully"}


@router.post("/logout-all")
async def logout_all(
    body: LogoutAllRequest,
    _: AuthenticatedUser = Depends(require_self_or_admin("userId")),
):
    if not body.user_id:
        raise ApiError(400, "User ID required")

    await session_repository.revoke_all_user_sessions(body.user_id)
    return {"message": "Logged out from all devices successfully"}


# ==================== Email / password reset ====================


@router.post("/verify-email")
async def verify_email(body: VerifyEmailRequest, request: Request):
    if not await user_repository.verify_email(body.user_id, body.token):
        raise ApiError(400, "Invalid or expired verification token")

    ip, user_agent = client_info(request)
    await audit_logs_repository.log_email_verification(
        body.user_id, ip_address=ip, user_agent=user_agent
    )
    return {"message": "Email verified successfully"}


@router.post("/request-password-reset")
async def request_password_reset(body: PasswordResetRequest):
    user = await user_repository.get_user_by_email(body.email)
    if not user:
        return {"message": RESET_REQUESTED_MESSAGE}

    reset_token = auth_utils.generate_reset_token()
    await user_repository.update_user(
        user["userId"],
        {
            "resetToken": reset_token,
            "resetTokenExpiry": auth_utils.generate_token_expiry(RESET_TOKEN_HOURS),
        },
    )
    await get_resend_client().send_password_reset_email(body.email, reset_token)
    return {"message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, request: Request):
    _password_errors(body.new_password, "Password does not meet requirements")

    password_hash = await auth_utils.hash_password(body.new_password)
    if not await user_repository.reset_password(body.user_id, body.token, password_hash):
        raise ApiError(400, "Invalid or expired reset token")

    ip, user_agent = client_info(request)
    await audit_logs_repository.log_password_reset(
        body.user_id, ip_address=ip, user_agent=user_agent
    )
    return {"message": "Password reset successfully"}


# ==================== Sessions ====================


@router.get("/sessions")
async def list_sessions(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    _: AuthenticatedUser = Depends(require_self_or_admin("userId")),
):
    if not user_id:
        raise ApiError(400, "User ID required")

    sessions = await session_repository.get_sessions_by_user_id(user_id)
    return {"sessions": sessions}


@router.post("/revoke-session")
async def revoke_session(body: RevokeSessionRequest):
    if not body.session_id:
        raise ApiError(400, "Session ID required")

    await session_repository.revoke_session(body.session_id)
    return {"message": "Session revoked successfully"}


# ==================== Current user ====================


@router.get("/me")
async def me(current: AuthenticatedUser = Depends(authenticate)):
    user = await user_repository.get_user_by_id(current.user_id)
    if not user:
        raise ApiError(404, "User not found")

    return {
        "user": {
            "userId": user["userId"],
            "email": user["email"],
            "firstName": user.get("firstName"),
            "lastName": user.get("lastName"),
            "profilePictureUrl": user.get("profilePictureUrl"),
            "role": user.get("role"),
        }
    }


@router.put("/profile")
async def update_profile(
    body: UpdateProfileRequest, current: AuthenticatedUser = Depends(authenticate)
):
    updated = await user_repository.update_user(
        current.user_id, {"firstName": body.first_name, "lastName": body.last_name}
    )
    if not updated:
        raise ApiError(404, "User not found")

    return {
        "message": "Profile updated successfully",
        "user": {
            "userId": updated["userId"],
            "email": updated["email"],
            "firstName": updated.get("firstName"),
            "lastName": updated.get("lastName"),
        },
    }


@router.put("/password")
async def change_password(
    body: ChangePasswordRequest, current: AuthenticatedUser = Depends(authenticate)
):
    user = await user_repository.get_user_by_id(current.user_id)
    if not user:
        raise ApiError(404, "User not found")

    if not await auth_utils.verify_password(body.current_password, user.get("passwordHash", "")):
        raise ApiError(401, "Invalid current password")

    _password_errors(body.new_password, "New password does not meet requirements")

    new_hash = await auth_utils.hash_password(body.new_password)
    await user_repository.update_user(current.user_id, {"passwordHash": new_hash})
    return {"message": "Password changed successfully"}


@router.delete("/account")
async def delete_account(
    request: Request,
    body: Optional[DeleteAccountRequest] = None,
    current: AuthenticatedUser = Depends(authenticate),
):
    if body is None or not body.password:
        raise ApiError(400, "Password required to confirm deletion")

    user = await user_repository.get_user_by_id(current.user_id)
    if not user:
        raise ApiError(404, "User not found")

    if not await auth_utils.verify_password(body.password, user.get("passwordHash", "")):
        raise ApiError(401, "Invalid password")

    await user_repository.delete_user(current.user_id)
    await session_repository.revoke_all_user_sessions(current.user_id)

    ip, user_agent = client_info(request)
    await audit_logs_repository.log_account_deletion(
        current.user_id, ip_address=ip, user_agent=user_agent
    )
    return {"message": "Account deleted successfully"}


# ==================== Audit logs ====================


@router.get("/users/{userId}/audit-logs")
async def user_audit_logs(
    userId: str,
    limit: int = Query(default=100, ge=1, le=1000),
    _: AuthenticatedUser = Depends(require_self_or_admin("userId")),
):
    logs = await audit_logs_repository.get_logs_by_user_id(userId, limit)
    return {"logs": logs, "total": len(logs)}


@router.get("/admin/audit-logs")
async def audit_logs_by_action(
    action: str = Query(..., min_length=1),
    limit: int = Query(default=100, ge=1, le=1000),
    _: AuthenticatedUser = Depends(require_admin),
):
    logs = await audit_logs_repository.get_logs_by_action(action, limit)
    return {"logs": logs, "total": len(logs)}
