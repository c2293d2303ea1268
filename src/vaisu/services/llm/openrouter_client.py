"""
OpenRouter chat-completion client.

OpenRouter speaks the OpenAI API, so the official `AsyncOpenAI` client is
pointed at its base URL with the attribution headers OpenRouter expects.
"""

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from openai import AsyncOpenAI

from vaisu.core.config import settings
from vaisu.core.exceptions import InvalidJSONResponseError, LLMError
from vaisu.core.logging import get_logger
from vaisu.services.llm.model_config import TaskType, get_model_for_task

logger = get_logger()

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

# Raised while parsing or reshaping model output.
PARSE_ERRORS = (InvalidJSONResponseError, AttributeError, TypeError, KeyError, IndexError)


def dict_items(values: Any) -> list[dict[str, Any]]:
    """Keep the dict entries of a model-returned list."""
    if not isinstance(values, list):
        raise InvalidJSONResponseError()
    return [value for value in values if isinstance(value, dict)]


@dataclass
class LLMCallConfig:
    model: str
    messages: list[dict[str, str]]
    max_tokens: int
    temperature: float


@dataclass
class LLMResponse:
    content: str
    tokens_used: int
    model: str


class OpenRouterClient:
    """
    Thin wrapper over `AsyncOpenAI` with model fallback and JSON parsing.

    Args:
        api_key: overrides `settings.openrouter_api_key`
        client: preconfigured client (tests)
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        self._client = client or AsyncOpenAI(
            api_key=api_key or settings.openrouter_api_key or "missing",
            base_url=settings.openrouter_base_url,
            timeout=settings.llm_request_timeout,
            default_headers={
                "HTTP-Referer": settings.app_url,
                "X-Title": "Vaisu",
            },
        )

    async def call(
        self,
        model: str,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> LLMResponse:
        """
        Single chat completion.

        Raises:
            LLMError: the request failed or returned no choices
        """
        logger.info(f"Calling OpenRouter with model: {model}")
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"OpenRouter API error: {e}")
            raise LLMError(f"LLM call failed: {e}") from e

        tokens_used = response.usage.total_tokens if response.usage else 0
        logger.info(f"Success with {model}, tokens: {tokens_used}")
        return LLMResponse(content=content, tokens_used=tokens_used, model=model)

    async def call_with_fallback(
        self, task: TaskType, prompt: str, retries: int = 2
    ) -> LLMResponse:
        """
        Run a task on its primary model, then its fallback model.

        When both fail and retries remain, the whole sequence is retried
        with one retry fewer.
        """
        config = get_model_for_task(task)
        messages = [
            {"role": "system", "content": config.system_prompt},
            {"role": "user", "content": prompt},
        ]

        try:
            return await self.call(
                config.primary, messages, config.max_tokens, config.temperature
            )
        except LLMError:
            if retries <= 0:
                raise

        logger.warning(f"Primary model failed for {task}, trying fallback: {config.fallback}")
        try:
            return await self.call(
                config.fallback, messages, config.max_tokens, config.temperature
            )
        except LLMError:
            if retries > 1:
                return await self.call_with_fallback(task, prompt, retries - 1)
            raise

    async def batch_call(self, requests: list[LLMCallConfig]) -> list[LLMResponse]:
        """Run requests in concurrent batches, preserving order."""
        batch_size = settings.llm_batch_size
        results: list[LLMResponse] = []
        for start in range(0, len(requests), batch_size):
            batch = requests[start:start + batch_size]
            results.extend(
                await asyncio.gather(
                    *(
                        self.call(r.model, r.messages, r.max_tokens, r.temperature)
                        for r in batch
                    )
                )
            )
        return results

    @staticmethod
    def parse_json_response(response: LLMResponse) -> Any:
        """
        Extract JSON from an LLM answer.

        Strips markdown code fences and any prose around the outermost
        object or array.

        Raises:
            InvalidJSONResponseError: nothing parseable was found
        """
        content = response.content.strip()

        match = _CODE_BLOCK.search(content)
        if match:
            content = match.group(1)

        first_curly = content.find("{")
        first_square = content.find("[")
        start = end = -1
        if first_curly != -1 and (first_square == -1 or first_curly < first_square):
            start, end = first_curly, content.rfind("}") + 1
        elif first_square != -1:
            start, end = first_square, content.rfind("]") + 1

        if start != -1 and end > start:
            content = content[start:end]

        try:
            return json.loads(content)
        except ValueError:
            logger.error(f"Failed to parse JSON response: {response.content[:200]!r}")
            raise InvalidJSONResponseError() from None


_client: Optional[OpenRouterClient] = None


def get_openrouter_client() -> OpenRouterClient:
    global _client
    if _client is None:
        _client = OpenRouterClient()
    return _client


def set_openrouter_client(client: Optional[OpenRouterClient]) -> None:
    """Replace the shared client (tests)."""
    global _client
    _client = client
