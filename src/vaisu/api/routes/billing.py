"""
Billing API: Stripe checkout for the Pro plan.
"""

from fastapi import APIRouter, Depends

from vaisu.api.dependencies import AuthenticatedUser, authenticate
from vaisu.api.rate_limit import rate_limit
from vaisu.core.exceptions import ApiError, BillingError
from vaisu.core.logging import get_logger
from vaisu.services.billing import stripe_service

router = APIRouter(prefix="/api/billing", tags=["billing"], dependencies=[Depends(rate_limit)])

logger = get_logger()


@router.post("/checkout-session")
async def create_checkout_session(user: AuthenticatedUser = Depends(authenticate)):
    """Start a subscription checkout; returns `{url}` of the hosted page."""
    if not user.email:
        raise ApiError(400, "User email is required for checkout")

    try:
        url = await stripe_service.create_checkout_session(user.user_id, user.email)
    except BillingError as e:
        logger.error(f"Create checkout session error: {e}")
        raise ApiError(500, str(e) or "Failed to create checkout session") from e
    return {"url": url}
