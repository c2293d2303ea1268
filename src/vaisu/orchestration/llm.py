"""
Feature slug generation through the OpenRouter chat completions API.
"""

import re
import time
from typing import Optional

import httpx

from vaisu.core.logging import get_logger
from vaisu.orchestration.config import DEFAULT_MODEL, OrchestrationConfig

logger = get_logger()

SLUG_SYSTEM_PROMPT = (
    "You are a naming assistant. Read the user's software feature request and "
    "generate a short, hyphenated slug (max 4-5 words) that describes the feature "
    '(e.g., "add-billing-system", "fix-login-bug").\n'
    "Return ONLY the slug. No explanation."
)


def sanitize_slug(raw: str) -> str:
    slug = re.sub(r"[^a-z0-9-]", "-", raw.strip().lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def fallback_slug() -> str:
    return f"feature-{int(time.time() * 1000)}"


def generate_feature_slug(
    prompt: str,
    config: OrchestrationConfig,
    model: str = DEFAULT_MODEL,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """
    Ask the LLM for a hyphenated feature slug.

    Any failure (HTTP error, empty or unusable answer) yields
    `feature-{epoch_ms}` instead.
    """
    try:
        with httpx.Client(timeout=60.0, transport=transport) as client:
            response = client.post(
                f"{config.openrouter_base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {config.openrouter_api_key}",
                    "HTTP-Referer": "https://vaisu.dev",
                    "X-Title": "Vaisu Agent Orchestrator",
                },
                json={
                    "model": model,
                    "messages": [
                        {"role": "system", "content": SLUG_SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                },
            )
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(
            f"OpenRouter API failed: {e.response.status_code} - {e.response.text}"
        )
        return fallback_slug()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Failed to generate feature slug: {e}")
        return fallback_slug()

    choices = data.get("choices") or [{}]
    content = ((choices[0].get("message") or {}).get("content") or "").strip()
    slug = sanitize_slug(content)
    if not slug:
        logger.error("LLM returned empty slug")
        return fallback_slug()
    return slug
