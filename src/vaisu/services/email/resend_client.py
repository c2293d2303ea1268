"""
Transactional email through the Resend HTTP API.
"""

import re
from typing import Any, Optional

import httpx

from vaisu.core.config import settings
from vaisu.core.exceptions import EmailError
from vaisu.core.logging import get_logger

logger = get_logger()

_TAG = re.compile(r"<[^>]*>?")

PASSWORD_RESET_SUBJECT = "Reset your Vaisu password"
PASSWORD_RESET_TEMPLATE = """
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
  <h2>Reset Password</h2>
  <p>You have requested to reset your password for Vaisu.</p>
  <p>Click the link below to reset it:</p>
  <p>
    <a href="{link}" style="display: inline-block; background-color: #007bff; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px;">Reset Password</a>
  </p>
  <p style="color: #666; font-size: 14px;">Or copy this link: {link}</p>
  <p>If you didn't request this, please ignore this email.</p>
</div>
"""


class ResendClient:
    """
    Args:
        api_key: overrides `settings.resend_api_key`
        transport: httpx transport (tests)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.from_address = settings.email_from
        self._transport = transport
        if not self.api_key:
            logger.warning("RESEND_API_KEY is not set. Emails will be logged, not sent.")

    async def send_email(
        self, to: str, subject: str, html: str, text: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        """
        Send one email.

        Returns:
            the Resend response (contains the email `id`), None when skipped

        Raises:
            EmailError: Resend rejected the request or was unreachable
        """
        if not self.api_key:
            logger.info(f"Email to {to} skipped (no API key): {subject}")
            return None

        payload = {
            "from": self.from_address,
            "to": to,
            "subject": subject,
            "html": html,
            "text": text or _TAG.sub("", html),
        }
        try:
            async with httpx.AsyncClient(
                base_url=settings.resend_base_url, timeout=30.0, transport=self._transport
            ) as client:
                response = await client.post(
                    "/emails",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Failed to send email to {to}: {e.response.status_code} - {e.response.text}"
            )
            raise EmailError(f"Resend Error: {e.response.text}") from e
        except httpx.HTTPError as e:
            logger.error(f"Unexpected failure sending to {to}: {e}")
            raise EmailError(f"Resend Error: {e}") from e

        data = response.json()
        logger.info(f"Email sent to {to}, ID: {data.get('id')}")
        return data

    async def send_password_reset_email(self, to: str, reset_token: str) -> Optional[dict[str, Any]]:
        link = f"{settings.app_url}/reset-password?token={reset_token}"
        return await self.send_email(
            to, PASSWORD_RESET_SUBJECT, PASSWORD_RESET_TEMPLATE.format(link=link)
        )


_client: Optional[ResendClient] = None


def get_resend_client() -> ResendClient:
    global _client
    if _client is None:
        _client = ResendClient()
    return _client
