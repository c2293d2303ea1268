"""
Orchestration settings.

The OpenRouter key and base URL come from the environment first, then from
`backend/.env` under the project root.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from vaisu.core.exceptions import AgentError

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "z-ai/glm-4.5-air:free"


@dataclass(frozen=True)
class OrchestrationConfig:
    openrouter_api_key: str
    openrouter_base_url: str
    project_root: Path


def load_config(project_root: Optional[Path] = None) -> OrchestrationConfig:
    """
    Resolve the orchestration settings.

    Args:
        project_root: repository root; defaults to the working directory

    Raises:
        AgentError: no OPENROUTER_API_KEY in the environment or backend/.env
    """
    root = Path(project_root or Path.cwd()).resolve()
    env_path = root / "backend" / ".env"
    file_values = dotenv_values(env_path) if env_path.exists() else {}

    api_key = os.environ.get("OPENROUTER_API_KEY") or file_values.get("OPENROUTER_API_KEY")
    base_url = (
        os.environ.get("OPENROUTER_BASE_URL")
        or file_values.get("OPENROUTER_BASE_URL")
        or DEFAULT_BASE_URL
    )

    if not api_key:
        raise AgentError("OPENROUTER_API_KEY not found in backend/.env or environment variables")

    return OrchestrationConfig(
        openrouter_api_key=api_key.strip(),
        openrouter_base_url=base_url.strip().rstrip("/"),
        project_root=root,
    )
