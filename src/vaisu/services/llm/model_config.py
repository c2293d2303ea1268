"""
Model selection per LLM task.

Every task uses the primary/fallback pair and token budget from settings,
with its own temperature and system prompt.
"""

from dataclasses import dataclass

from vaisu.core.config import settings
from vaisu.services.llm.prompt_loader import load_prompt

# task name -> (temperature, prompt file)
TASKS: dict[str, tuple[float, str]] = {
    "tldr": (0.3, "tldr"),
    "executiveSummary": (0.5, "executive_summary"),
    "entityExtraction": (0.1, "entity_extraction"),
    "relationshipDetection": (0.3, "relationship_detection"),
    "sectionSummary": (0.3, "section_summary"),
    "signalAnalysis": (0.2, "signal_analysis"),
    "vizRecommendation": (0.4, "viz_recommendation"),
    "kpiExtraction": (0.1, "kpi_extraction"),
    "glossary": (0.3, "glossary"),
    "qa": (0.6, "qa"),
    "mindMapGeneration": (0.4, "mind_map_generation"),
    "argumentMapGeneration": (0.3, "argument_map_generation"),
    "uml-extraction": (0.3, "uml_extraction"),
    "knowledge-graph-generation": (0.4, "knowledge_graph_generation"),
    "entityGraph": (0.3, "entity_graph"),
    "depthAnalysis": (0.3, "depth_analysis"),
}

TaskType = str


@dataclass(frozen=True)
class ModelConfig:
    primary: str
    fallback: str
    max_tokens: int
    temperature: float
    system_prompt: str


def get_model_for_task(task: TaskType) -> ModelConfig:
    """
    Raises:
        KeyError: unknown task
    """
    temperature, prompt_name = TASKS[task]
    return ModelConfig(
        primary=settings.llm_primary_model,
        fallback=settings.llm_fallback_model,
        max_tokens=settings.llm_max_tokens,
        temperature=temperature,
        system_prompt=load_prompt(prompt_name),
    )
