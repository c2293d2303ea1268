"""LLM access: task model selection, prompts and the OpenRouter client."""

from vaisu.services.llm.model_config import ModelConfig, TaskType, get_model_for_task
from vaisu.services.llm.openrouter_client import (
    LLMCallConfig,
    LLMResponse,
    OpenRouterClient,
    get_openrouter_client,
    set_openrouter_client,
)
from vaisu.services.llm.prompt_loader import load_prompt

__all__ = [
    "LLMCallConfig",
    "LLMResponse",
    "ModelConfig",
    "OpenRouterClient",
    "TaskType",
    "get_model_for_task",
    "get_openrouter_client",
    "load_prompt",
    "set_openrouter_client",
]
