"""Loads task prompts shipped as markdown files in `vaisu/prompts`."""

from functools import lru_cache
from pathlib import Path

from vaisu.core.logging import get_logger

logger = get_logger()

PROMPTS_DIR = Path(__file__).resolve().parents[2] / "prompts"


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """
    Read `prompts/{name}.md`.

    Returns:
        the stripped prompt text, or "" when the file is missing
    """
    path = PROMPTS_DIR / f"{name}.md"
    if not path.exists():
        logger.warning(f"Prompt file not found: {path}. Falling back to empty string.")
        return ""
    return path.read_text(encoding="utf-8").strip()
