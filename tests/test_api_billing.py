"""Tests for health, billing checkout and the Stripe webhook."""

import json
import time

import httpx
import pytest
from fastapi.middleware.cors import CORSMiddleware

from vaisu.core.config import settings
from vaisu.core.exceptions import BillingError
from vaisu.core.middleware import PerformanceMiddleware, RequestLoggingMiddleware
from vaisu.main import app
from vaisu.repositories import user_repository
from vaisu.services.billing import StripeService, stripe_service
from vaisu.services.billing.stripe_service import compute_signature, parse_signature_header

WEBHOOK_SECRET = "whsec_test"


def signed_headers(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> dict:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = compute_signature(payload, timestamp, secret)
    return {"stripe-signature": f"t={timestamp},v1={signature}", "content-type": "application/json"}


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["version"] == settings.app_version
        assert data["message"] == f"Welcome to {settings.app_name}"

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["environment"] == settings.environment
        assert data["timestamp"]

    def test_unknown_route_uses_error_shape(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert "error" in response.json()

    def test_cors_is_outermost_middleware(self):
        assert [m.cls for m in app.user_middleware] == [
            CORSMiddleware,
            PerformanceMiddleware,
            RequestLoggingMiddleware,
        ]


class TestCheckout:
    def test_returns_checkout_url(self, client, auth_headers, monkeypatch):
        calls = []

        async def fake_checkout(user_id, email):
            calls.append((user_id, email))
            return "https://checkout.stripe.test/session"

        monkeypatch.setattr(stripe_service, "create_checkout_session", fake_checkout)

        response = client.post("/api/billing/checkout-session", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/session"}
        assert calls[0][1] == "user@example.com"

    def test_stripe_failure(self, client, auth_headers, monkeypatch):
        async def failing_checkout(user_id, email):
            raise BillingError("Failed to create checkout session")

        monkeypatch.setattr(stripe_service, "create_checkout_session", failing_checkout)

        response = client.post("/api/billing/checkout-session", headers=auth_headers)
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to create checkout session"

    def test_requires_authentication(self, client):
        response = client.post("/api/billing/checkout-session")
        assert response.status_code == 401


class TestStripeService:
    async def test_checkout_request(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_price_id_pro", "price_123")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["form"] = dict(httpx.QueryParams(request.content.decode()))
            return httpx.Response(200, json={"url": "https://checkout.stripe.test/abc"})

        service = StripeService(secret_key="sk_test", transport=httpx.MockTransport(handler))
        url = await service.create_checkout_session("user-1", "a@example.com")

        assert url == "https://checkout.stripe.test/abc"
        assert seen["path"] == "/v1/checkout/sessions"
        assert seen["auth"] == "Bearer sk_test"
        assert seen["form"]["mode"] == "subscription"
        assert seen["form"]["client_reference_id"] == "user-1"
        assert seen["form"]["line_items[0][price]"] == "price_123"
        assert seen["form"]["customer_email"] == "a@example.com"

    async def test_checkout_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(402, json={"error": {}}))
        service = StripeService(secret_key="sk_test", transport=transport)
        with pytest.raises(BillingError):
            await service.create_checkout_session("user-1", "a@example.com")

    async def test_checkout_without_url(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        service = StripeService(secret_key="sk_test", transport=transport)
        with pytest.raises(BillingError, match="URL"):
            await service.create_checkout_session("user-1", "a@example.com")

    def test_parse_signature_header(self):
        assert parse_signature_header("t=12,v1=abc,v1=def,v0=old") == (12, ["abc", "def"])
        assert parse_signature_header("garbage") == (None, [])

    def test_construct_event(self):
        service = StripeService(webhook_secret=WEBHOOK_SECRET)
        payload = b'{"type": "ping"}'
        header = signed_headers(payload, timestamp=1000)["stripe-signature"]

        assert service.construct_event(payload, header, now=1000) == {"type": "ping"}
        with pytest.raises(BillingError, match="Timestamp"):
            service.construct_event(payload, header, now=1000 + 3600)
        with pytest.raises(BillingError, match="No signatures"):
            service.construct_event(b'{"type": "pong"}', header, now=1000)

    def test_construct_event_requires_object(self):
        service = StripeService(webhook_secret=WEBHOOK_SECRET)
        payload = b'["checkout.session.completed"]'
        header = signed_headers(payload, timestamp=1000)["stripe-signature"]

        with pytest.raises(BillingError, match="Invalid payload"):
            service.construct_event(payload, header, now=1000)


class TestWebhook:
    @pytest.fixture(autouse=True)
    def webhook_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)

    def test_missing_signature(self, client):
        response = client.post("/api/webhooks/stripe", content=b"{}")
        assert response.status_code == 400
        assert response.text == "Webhook Error: Missing stripe-signature"

    def test_invalid_signature(self, client):
        payload = b'{"type": "checkout.session.completed"}'
        response = client.post(
            "/api/webhooks/stripe",
            content=payload,
            headers=signed_headers(payload, secret="whsec_other"),
        )
        assert response.status_code == 400
        assert response.text.startswith("Webhook Error: Webhook signature verification failed")

    def test_signed_non_object_payload(self, client):
        payload = b"42"
        response = client.post(
            "/api/webhooks/stripe", content=payload, headers=signed_headers(payload)
        )
        assert response.status_code == 400
        assert response.text.endswith("Invalid payload")

    async def test_checkout_completed_activates_subscription(self, client, register_user):
        user = register_user()
        payload = json.dumps(
            {
                "type": "checkout.session.completed",
                "data": {
                    "object": {"client_reference_id": user["userId"], "subscription": "sub_123"}
                },
            }
        ).encode("utf-8")

        response = client.post(
            "/api/webhooks/stripe", content=payload, headers=signed_headers(payload)
        )
        assert response.status_code == 200
        assert response.json() == {"received": True}

        record = await user_repository.get_user_by_id(user["userId"])
        assert record["subscriptionStatus"] == "active"
        assert record["subscriptionId"] == "sub_123"
        assert record["subscriptionProvider"] == "stripe"

    def test_unhandled_event_acknowledged(self, client):
        payload = b'{"type": "invoice.paid", "data": {"object": {}}}'
        response = client.post(
            "/api/webhooks/stripe", content=payload, headers=signed_headers(payload)
        )
        assert response.status_code == 200
        assert response.json() == {"received": True}
