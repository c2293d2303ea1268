"""
Stripe billing over the REST API.

Checkout sessions are created with form-encoded requests; webhook payloads
are verified against the `Stripe-Signature` header (`t=<ts>,v1=<hmac>`),
where the signature is HMAC-SHA256 of `"{t}.{payload}"` under the endpoint
secret.
"""

import hashlib
import hmac
import json
import time
from typing import Any, Optional

import httpx

from vaisu.core.config import settings
from vaisu.core.exceptions import BillingError
from vaisu.core.logging import get_logger

logger = get_logger()


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def parse_signature_header(header: str) -> tuple[Optional[int], list[str]]:
    timestamp: Optional[int] = None
    signatures: list[str] = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                timestamp = None
        elif key == "v1":
            signatures.append(value)
    return timestamp, signatures


class StripeService:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._transport = transport

    @property
    def secret_key(self) -> str:
        return self._secret_key if self._secret_key is not None else settings.stripe_secret_key

    @property
    def webhook_secret(self) -> str:
        if self._webhook_secret is not None:
            return self._webhook_secret
        return settings.stripe_webhook_secret

    async def create_checkout_session(self, user_id: str, email: str) -> str:
        """
        Start a Pro subscription checkout.

        Returns:
            the hosted checkout URL

        Raises:
            BillingError: Stripe rejected the request or returned no URL
        """
        form = {
            "mode": "subscription",
            "payment_method_types[0]": "card",
            "line_items[0][price]": settings.stripe_price_id_pro,
            "line_items[0][quantity]": "1",
            "customer_email": email,
            "client_reference_id": user_id,
            "success_url": f"{settings.app_url}/dashboard?checkout=success",
            "cancel_url": f"{settings.app_url}/pricing?checkout=cancel",
            "metadata[userId]": user_id,
        }
        try:
            async with httpx.AsyncClient(
                base_url=settings.stripe_api_base, timeout=30.0, transport=self._transport
            ) as client:
                response = await client.post(
                    "/v1/checkout/sessions",
                    data=form,
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Stripe API error: {e.response.status_code} - {e.response.text}")
            raise BillingError("Failed to create checkout session") from e
        except httpx.HTTPError as e:
            logger.error(f"Stripe request failed: {e}")
            raise BillingError("Failed to create checkout session") from e

        url = response.json().get("url")
        if not url:
            raise BillingError("Failed to create checkout session URL")
        return url

    def construct_event(
        self, payload: bytes, signature_header: str, now: Optional[float] = None
    ) -> dict[str, Any]:
        """
        Verify a webhook delivery and decode its event.

        Raises:
            BillingError: malformed header, bad signature, stale timestamp
                or a body that is not a JSON object
        """
        timestamp, signatures = parse_signature_header(signature_header)
        if timestamp is None or not signatures:
            raise BillingError(
                "Webhook signature verification failed: "
                "Unable to extract timestamp and signatures from header"
            )

        expected = compute_signature(payload, timestamp, self.webhook_secret)
        if not any(hmac.compare_digest(expected, signature) for signature in signatures):
            raise BillingError(
                "Webhook signature verification failed: "
                "No signatures found matching the expected signature for payload"
            )

        current = time.time() if now is None else now
        if abs(current - timestamp) > settings.stripe_webhook_tolerance:
            raise BillingError(
                "Webhook signature verification failed: Timestamp outside the tolerance zone"
            )

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise BillingError("Webhook signature verification failed: Invalid payload") from e
        if not isinstance(event, dict):
            raise BillingError("Webhook signature verification failed: Invalid payload")
        return event


stripe_service = StripeService()
