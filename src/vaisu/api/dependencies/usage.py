"""
Plan limits enforced before analysis and upload.
"""

from dataclasses import dataclass

from fastapi import Depends, Request

from vaisu.api.dependencies.auth import AuthenticatedUser, authenticate, client_info
from vaisu.core.exceptions import ApiError
from vaisu.core.logging import get_logger
from vaisu.repositories import audit_logs_repository, document_repository, usage_limits_repository

logger = get_logger()


@dataclass(frozen=True)
class PlanLimits:
    daily_analysis: int
    total_documents: int


LIMITS = {
    "FREE": PlanLimits(daily_analysis=5, total_documents=10),
    "PRO": PlanLimits(daily_analysis=100, total_documents=1000),
}

PRO_ROLES = ("pro", "admin")


def is_pro(user: AuthenticatedUser) -> bool:
    return user.subscription_status == "active" or user.role in PRO_ROLES


def get_limits(user: AuthenticatedUser) -> PlanLimits:
    return LIMITS["PRO"] if is_pro(user) else LIMITS["FREE"]


async def check_analysis_limit(
    request: Request, user: AuthenticatedUser = Depends(authenticate)
) -> AuthenticatedUser:
    """
    Reject the request once today's analysis count reached the plan limit.

    Raises:
        ApiError: 403 with {current, limit, resetAt}; 500 when usage cannot be read
    """
    limits = get_limits(user)
    try:
        daily_usage = await usage_limits_repository.get_daily_usage(user.user_id)
    except Exception as e:
        logger.error(f"Error checking analysis limit: {e}")
        raise ApiError(500, "Internal server error checking limits") from e

    current = (daily_usage or {}).get("analysisCount", 0)
    if current >= limits.daily_analysis:
        ip, user_agent = client_info(request)
        await audit_logs_repository.log_usage_limit_exceeded(
            user.user_id, "dailyAnalysis", ip_address=ip, user_agent=user_agent
        )
        raise ApiError(
            403,
            "Daily analysis limit exceeded",
            details={"current": current, "limit": limits.daily_analysis, "resetAt": "tomorrow"},
        )
    return user


async def check_storage_limit(
    request: Request, user: AuthenticatedUser = Depends(authenticate)
) -> AuthenticatedUser:
    """
    Reject uploads once the user stores the plan's maximum of documents.

    Raises:
        ApiError: 403 with {current, limit}; 500 when the count cannot be read
    """
    limits = get_limits(user)
    try:
        total = await document_repository.count_by_user_id(user.user_id)
    except Exception as e:
        logger.error(f"Error checking storage limit: {e}")
        raise ApiError(500, "Internal server error checking limits") from e

    if total >= limits.total_documents:
        ip, user_agent = client_info(request)
        await audit_logs_repository.log_usage_limit_exceeded(
            user.user_id, "totalDocuments", ip_address=ip, user_agent=user_agent
        )
        raise ApiError(
            403,
            "Storage limit exceeded (maximum documents reached)",
            details={"current": total, "limit": limits.total_documents},
        )
    return user
