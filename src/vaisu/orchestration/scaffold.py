"""
Interactive scaffolder: asks a few questions and hands them to the Scaffy agent.

Usage:
    vaisu-scaffold
"""

import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from vaisu.core.exceptions import VaisuError
from vaisu.core.logging import get_logger
from vaisu.orchestration.agent_runner import run_agent
from vaisu.orchestration.config import DEFAULT_MODEL, OrchestrationConfig, load_config
from vaisu.orchestration.logger import OrchestrationLogger

logger = get_logger()

DB_TYPES = ("dynamodb", "postgres")
THEME_MODES = ("clone-vaisu", "new-proposal")


@dataclass
class ScaffoldRequest:
    app_name: str
    target_dir: Path
    db_type: str = "dynamodb"
    theme_mode: str = "clone-vaisu"
    theme_prompt: str = ""


def ask_request(ask: Callable[[str], str] = input, cwd: Optional[Path] = None) -> ScaffoldRequest:
    cwd = Path(cwd or Path.cwd())

    app_name = ask("1. Name of the new application: ").strip()
    default_dir = (cwd / ".." / app_name).resolve()
    target = ask(f"2. Target directory (absolute path, default: {default_dir}): ").strip()
    target_dir = Path(target) if target else default_dir
    if not target_dir.is_absolute():
        target_dir = (cwd / target_dir).resolve()

    db_type = ask("3. Database type (dynamodb/postgres) [default: dynamodb]: ").strip() or "dynamodb"
    theme_mode = (
        ask("4. Theme strategy (clone-vaisu/new-proposal) [default: clone-vaisu]: ").strip()
        or "clone-vaisu"
    )

    theme_prompt = ""
    if theme_mode == "new-proposal":
        theme_prompt = ask("   > Describe the desired theme (colors, vibe): ").strip()

    return ScaffoldRequest(app_name, target_dir, db_type, theme_mode, theme_prompt)


def build_task_prompt(request: ScaffoldRequest, project_root: Path) -> str:
    lines = [
        "SCAFFOLDING REQUEST:",
        "",
        f"1. APP NAME: {request.app_name}",
        f"2. TARGET DIRECTORY: {request.target_dir}",
        f"3. DATABASE TYPE: {request.db_type}",
        f"4. THEME STRATEGY: {request.theme_mode}",
    ]
    if request.theme_prompt:
        lines.append(f'5. THEME DESCRIPTION: "{request.theme_prompt}"')
    lines += [
        "",
        f"SOURCE PROJECT ROOT: {project_root}",
        "",
        "Instructions:",
        f"- You are reading the source project (Vaisu) at {project_root}.",
        f"- You are creating the NEW project at {request.target_dir}.",
        "- Follow the workflow defined in your skill.",
        f"- If {request.db_type} is 'postgres', ensure Drizzle ORM is set up correctly.",
        "- Ensure 'Mobile' frontend is initialized.",
    ]
    return "\n".join(lines)


def job_log_file(config: OrchestrationConfig, app_name: str, today: Optional[date] = None) -> Path:
    job_dir = config.project_root / ".context" / "scaffolding-jobs"
    return job_dir / f"{(today or date.today()).isoformat()}-scaffy-{app_name}.log"


def scaffold(request: ScaffoldRequest, config: OrchestrationConfig, runner=run_agent) -> Path:
    """Run Scaffy for `request`; returns the job log path."""
    try:
        request.target_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.warning("Could not create target directory immediately. Agent will attempt.")

    log_file = job_log_file(config, request.app_name)
    run_logger = OrchestrationLogger(log_file.parent)

    runner(
        "Scaffy",
        config.project_root / "agents" / "scaffy" / "Scaffy.md",
        build_task_prompt(request, config.project_root),
        run_logger,
        cwd=config.project_root,
        model=DEFAULT_MODEL,
        log_file=log_file,
    )
    return log_file


def main() -> int:
    print("🏗️  SCAFFY - The Application Scaffolder 🏗️")
    print("-------------------------------------------")

    try:
        config = load_config()
    except VaisuError as e:
        logger.error(str(e))
        return 1

    request = ask_request()

    print("\n📋 Configuration:")
    print(f"- App Name: {request.app_name}")
    print(f"- Path:     {request.target_dir}")
    print(f"- Database: {request.db_type}")
    theme_note = f"({request.theme_prompt})" if request.theme_prompt else ""
    print(f"- Theme:    {request.theme_mode} {theme_note}")
    print("\n🚀 Launching Scaffy...")

    try:
        log_file = scaffold(request, config)
    except VaisuError as e:
        print(f"\n❌ Scaffolding failed: {e}")
        return 1

    print(f"\n✅ Scaffolding complete! Check {request.target_dir}")
    print(f"📜 Log saved to: {log_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
