"""
FastAPI dependencies: authentication, authorization and plan limits.
"""

from vaisu.api.dependencies.auth import (
    AuthenticatedUser,
    authenticate,
    client_info,
    extract_bearer_token,
    optional_authenticate,
    require_admin,
    require_role,
    require_self_or_admin,
)
from vaisu.api.dependencies.usage import (
    LIMITS,
    PlanLimits,
    check_analysis_limit,
    check_storage_limit,
    get_limits,
)

__all__ = [
    "AuthenticatedUser",
    "authenticate",
    "client_info",
    "extract_bearer_token",
    "optional_authenticate",
    "require_admin",
    "require_role",
    "require_self_or_admin",
    "LIMITS",
    "PlanLimits",
    "check_analysis_limit",
    "check_storage_limit",
    "get_limits",
]
