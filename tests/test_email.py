"""Tests for the Resend email client."""

import json

import httpx
import pytest

from vaisu.core.exceptions import EmailError
from vaisu.services.email.resend_client import ResendClient


async def test_skipped_without_api_key():
    client = ResendClient(api_key="")
    assert await client.send_email("a@example.com", "Hi", "<p>Hi</p>") is None


async def test_sends_with_plain_text_fallback():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email-1"})

    client = ResendClient(api_key="re_test", transport=httpx.MockTransport(handler))
    result = await client.send_email("a@example.com", "Hi", "<p>Hello <b>there</b></p>")

    assert result == {"id": "email-1"}
    assert seen["path"] == "/emails"
    assert seen["auth"] == "Bearer re_test"
    assert seen["body"]["to"] == "a@example.com"
    assert seen["body"]["text"] == "Hello there"


async def test_password_reset_link():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "email-2"})

    client = ResendClient(api_key="re_test", transport=httpx.MockTransport(handler))
    await client.send_password_reset_email("a@example.com", "tok123")

    assert "/reset-password?token=tok123" in bodies[0]["html"]


async def test_rejected_request():
    transport = httpx.MockTransport(lambda request: httpx.Response(422, text="invalid to"))
    client = ResendClient(api_key="re_test", transport=transport)
    with pytest.raises(EmailError, match="Resend Error: invalid to"):
        await client.send_email("bad", "Hi", "<p>Hi</p>")
