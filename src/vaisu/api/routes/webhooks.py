"""
Stripe webhook receiver.

The raw request body is verified against the `stripe-signature` header
before the event is decoded; `checkout.session.completed` activates the
subscription of the user named by `client_reference_id`.
"""

from typing import Any, Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import PlainTextResponse

from vaisu.core.exceptions import BillingError
from vaisu.core.logging import get_logger
from vaisu.repositories import user_repository
from vaisu.services.billing import stripe_service

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

logger = get_logger()


async def handle_checkout_completed(session: dict[str, Any]) -> None:
    user_id = session.get("client_reference_id")
    subscription_id = session.get("subscription")
    if not user_id or not subscription_id:
        return

    await user_repository.update_user(
        user_id,
        {
            "subscriptionStatus": "active",
            "subscriptionId": subscription_id,
            "subscriptionProvider": "stripe",
        },
    )
    logger.info(f"User {user_id} subscription activated.")


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
}


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
):
    if not stripe_signature:
        return PlainTextResponse("Webhook Error: Missing stripe-signature", status_code=400)

    payload = await request.body()
    try:
        event = stripe_service.construct_event(payload, stripe_signature)
    except BillingError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return PlainTextResponse(f"Webhook Error: {e}", status_code=400)

    handler = EVENT_HANDLERS.get(event.get("type", ""))
    if handler is not None:
        await handler(event.get("data", {}).get("object", {}))
    else:
        logger.debug(f"Unhandled event type {event.get('type')}")

    return {"received": True}
