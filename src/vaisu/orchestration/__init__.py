"""
Agent orchestration CLI: feature pipeline and application scaffolder.
"""

from vaisu.orchestration.agent_runner import run_agent
from vaisu.orchestration.config import OrchestrationConfig, load_config
from vaisu.orchestration.llm import generate_feature_slug
from vaisu.orchestration.logger import OrchestrationLogger
from vaisu.orchestration.pipeline import Orchestrator, find_latest_file

__all__ = [
    "OrchestrationConfig",
    "OrchestrationLogger",
    "Orchestrator",
    "find_latest_file",
    "generate_feature_slug",
    "load_config",
    "run_agent",
]
