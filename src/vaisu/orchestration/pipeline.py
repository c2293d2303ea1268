"""
Feature delivery pipeline.

Seven persona agents run in order, each reading the previous agent's JSON
output from the feature workspace `.context/prd/{slug}`:

    Maestro -> Rearchy -> Daisy -> Tasky -> Devy -> Checky -> Guidy

A phase whose output already exists is skipped, so an interrupted run can be
restarted with the same slug.

Usage:
    vaisu-orchestrate <path-to-prompt-file> [optional-slug]
"""

import argparse
import json
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from vaisu.core.exceptions import AgentError, VaisuError
from vaisu.core.logging import get_logger
from vaisu.orchestration.agent_runner import run_agent
from vaisu.orchestration.config import DEFAULT_MODEL, OrchestrationConfig, load_config
from vaisu.orchestration.llm import generate_feature_slug
from vaisu.orchestration.logger import OrchestrationLogger

logger = get_logger()

MAX_DEVY_ITERATIONS = 50


def find_latest_file(directory: Path | str, pattern: str | re.Pattern) -> Optional[Path]:
    """Newest file (by mtime) in `directory` whose name matches `pattern`."""
    directory = Path(directory)
    if not directory.is_dir():
        return None

    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    matches = [p for p in directory.iterdir() if p.is_file() and regex.search(p.name)]
    if not matches:
        return None
    return max(matches, key=lambda p: p.stat().st_mtime)


def has_pending_tasks(tasky_file: Path, run_logger: OrchestrationLogger) -> bool:
    """True when the task plan still has a task with status PENDING."""
    try:
        if not tasky_file.exists():
            return False
        content = json.loads(tasky_file.read_text(encoding="utf-8"))
        return any(task.get("status") == "PENDING" for task in content["execution_plan"])
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        run_logger.error(f"Failed to parse tasky file: {e}")
        return False


@dataclass
class PipelineContext:
    raw_prompt: str
    slug: str
    feature_dir: Path
    project_root: Path
    outputs: dict[str, Optional[Path]]


PromptBuilder = Callable[[PipelineContext], str]


@dataclass(frozen=True)
class Phase:
    name: str
    output_pattern: str
    log_name: str
    build_prompt: PromptBuilder

    def skill_path(self, project_root: Path) -> Path:
        return project_root / "agents" / self.name.lower() / f"{self.name}.md"


def _maestro_prompt(ctx: PipelineContext) -> str:
    return (
        "The user has submitted a new request.\n"
        "Analyze the request and generate the initial JSON prompt file.\n\n"
        f"USER REQUEST:\n'{ctx.raw_prompt}'\n\n"
        f"FEATURE SLUG: {ctx.slug}\n"
        f"OUTPUT DIRECTORY: {ctx.feature_dir}"
    )


def _rearchy_prompt(ctx: PipelineContext) -> str:
    return (
        "Take the Maestro prompt file and decompose it into requirements.\n\n"
        f"INPUT FILE: {ctx.outputs.get('Maestro')}\n"
        f"OUTPUT DIRECTORY: {ctx.feature_dir}"
    )


def _daisy_prompt(ctx: PipelineContext) -> str:
    return (
        "Take the Requirements file and create a technical design and test plan.\n\n"
        f"INPUT FILE: {ctx.outputs.get('Rearchy')}\n"
        f"OUTPUT DIRECTORY: {ctx.feature_dir}"
    )


def _tasky_prompt(ctx: PipelineContext) -> str:
    return (
        "Take the Design file and break it down into atomic development tasks.\n\n"
        f"INPUT FILE: {ctx.outputs.get('Daisy')}\n"
        f"OUTPUT DIRECTORY: {ctx.feature_dir}"
    )


def _devy_prompt(ctx: PipelineContext) -> str:
    return (
        "Take the Task Execution Plan and start implementing the feature.\n"
        "Execute the next PENDING task.\n\n"
        f"INPUT FILE: {ctx.outputs.get('Tasky')}\n"
        f"OUTPUT DIRECTORY: {ctx.feature_dir}"
    )


def _checky_prompt(ctx: PipelineContext) -> str:
    return (
        "Perform a comprehensive audit of the feature implementation.\n\n"
        "INPUTS:\n"
        f"- Original Request: '{ctx.raw_prompt}'\n"
        f"- Maestro File: {ctx.outputs.get('Maestro')}\n"
        f"- Rearchy File: {ctx.outputs.get('Rearchy')}\n"
        f"- Daisy File: {ctx.outputs.get('Daisy')}\n"
        f"- Tasky File: {ctx.outputs.get('Tasky')}\n"
        f"- Devy File: {ctx.outputs.get('Devy')}\n\n"
        f"OUTPUT DIRECTORY: {ctx.feature_dir}"
    )


def _guidy_prompt(ctx: PipelineContext) -> str:
    style_skill = ctx.project_root / "agents" / "skills" / "style-consistency"
    return (
        "Run quality checks, verify styles, and commit/push changes.\n\n"
        "INPUTS:\n"
        f"- Checky Audit: {ctx.outputs.get('Checky')}\n"
        f"- Feature Slug: {ctx.slug}\n\n"
        f"OUTPUT DIRECTORY: {ctx.feature_dir}\n"
        f"STYLE SKILL PATH: {style_skill}"
    )


PHASES: tuple[Phase, ...] = (
    Phase("Maestro", r"maestro-prompt.*\.json$", "01-maestro.log", _maestro_prompt),
    Phase("Rearchy", r"rearchy-reqs.*\.json$", "02-rearchy.log", _rearchy_prompt),
    Phase("Daisy", r"daisy-design.*\.json$", "03-daisy.log", _daisy_prompt),
    Phase("Tasky", r"tasky-tasks.*\.json$", "04-tasky.log", _tasky_prompt),
    Phase("Devy", r"devy-report.*\.json$", "05-devy.log", _devy_prompt),
    Phase("Checky", r"checky-.*\.json$", "06-checky.log", _checky_prompt),
    Phase("Guidy", r"guidy-report.*\.json$", "07-guidy.log", _guidy_prompt),
)


class Orchestrator:
    """Drives the phases for one feature workspace."""

    def __init__(
        self,
        raw_prompt: str,
        slug: str,
        config: OrchestrationConfig,
        model: str = DEFAULT_MODEL,
        phases: tuple[Phase, ...] = PHASES,
        runner=run_agent,
    ):
        self.config = config
        self.model = model
        self.phases = phases
        self.runner = runner

        self.feature_dir = config.project_root / ".context" / "prd" / slug
        self.logs_dir = self.feature_dir / "logs"
        self.logs_dir.mkdir(parents=True, exist_ok=True)

        self.logger = OrchestrationLogger(self.feature_dir)
        self.context = PipelineContext(
            raw_prompt=raw_prompt,
            slug=slug,
            feature_dir=self.feature_dir,
            project_root=config.project_root,
            outputs={},
        )

    def _run(self, phase: Phase, log_file: Optional[Path]) -> None:
        self.runner(
            phase.name,
            phase.skill_path(self.config.project_root),
            phase.build_prompt(self.context),
            self.logger,
            cwd=self.config.project_root,
            model=self.model,
            log_file=log_file,
        )

    def run_phase(self, phase: Phase) -> Optional[Path]:
        existing = find_latest_file(self.feature_dir, phase.output_pattern)
        if existing:
            self.logger.success(f"Skipping {phase.name} (Output exists: {existing.name})")
            self.context.outputs[phase.name] = existing
            return existing

        if phase.name == "Devy":
            return self._run_devy(phase)

        self._run(phase, self.logs_dir / phase.log_name)

        output = find_latest_file(self.feature_dir, phase.output_pattern)
        if not output:
            raise AgentError(f"{phase.name} failed to generate output file.")
        self.logger.success(f"{phase.name} output found: {output.name}")
        self.context.outputs[phase.name] = output
        return output

    def _run_devy(self, phase: Phase) -> Optional[Path]:
        tasky_file = self.context.outputs.get("Tasky")
        pending = tasky_file is not None and has_pending_tasks(tasky_file, self.logger)
        iteration = 0

        while pending and iteration < MAX_DEVY_ITERATIONS:
            iteration += 1
            self.logger.log(f"🔄 Devy Loop #{iteration}: Starting next task...")
            self._run(phase, self.logs_dir / phase.log_name)
            pending = has_pending_tasks(tasky_file, self.logger)

        if not pending:
            self.logger.log("✅ All tasks completed. Generating final report...")
            self._run(phase, None)

        output = find_latest_file(self.feature_dir, phase.output_pattern)
        if output:
            self.logger.success(f"Devy output found: {output.name}")
        else:
            self.logger.error("Devy finished but no final report was found.")
        self.context.outputs[phase.name] = output
        return output

    def run(self) -> dict[str, Optional[Path]]:
        self.logger.log(f"🚀 Starting Orchestration for feature: {self.context.slug}")
        self.logger.log(f"📂 Context Directory: {self.feature_dir}")

        for phase in self.phases:
            self.run_phase(phase)

        self.logger.success("🏁 Orchestration Complete!")
        return dict(self.context.outputs)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="vaisu-orchestrate",
        description="Run the agent pipeline for a feature request",
    )
    parser.add_argument("prompt_file", help="Path to the feature request prompt file")
    parser.add_argument("slug", nargs="?", default=None, help="Feature slug (generated when omitted)")
    args = parser.parse_args(argv)

    try:
        config = load_config()
        raw_prompt = Path(args.prompt_file).read_text(encoding="utf-8")
    except (VaisuError, OSError) as e:
        logger.error(str(e))
        return 1

    slug = args.slug
    if not slug:
        logger.info("🔮 Analyzing request to determine feature slug...")
        slug = generate_feature_slug(raw_prompt, config)
    logger.info(f"Feature identifier: {slug}")

    orchestrator = Orchestrator(raw_prompt, slug, config)
    try:
        orchestrator.run()
    except VaisuError as e:
        orchestrator.logger.error(f"Orchestration failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
