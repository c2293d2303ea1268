"""
Runs one persona agent through the `opencode` CLI.
"""

import subprocess
import sys
from pathlib import Path
from typing import Optional

from vaisu.core.exceptions import AgentError
from vaisu.orchestration.logger import OrchestrationLogger

AGENT_EXECUTABLE = "opencode"


def build_agent_prompt(skill_content: str, task_prompt: str) -> str:
    return (
        "SYSTEM INSTRUCTION: Adopt the following persona and execute the task.\n"
        f"{skill_content}\n"
        "\n"
        "---\n"
        "CURRENT INPUT / TRIGGER:\n"
        f"{task_prompt}"
    ).strip()


def run_agent(
    name: str,
    skill_path: Path | str,
    task_prompt: str,
    logger: OrchestrationLogger,
    cwd: Optional[Path | str] = None,
    model: Optional[str] = None,
    log_file: Optional[Path | str] = None,
) -> None:
    """
    Run `opencode run [--model M] <prompt>` with the skill file as persona.

    Output is streamed to the console and, when `log_file` is given,
    appended to it as well.

    Raises:
        AgentError: the skill file is missing, the executable cannot be
            started, or the agent exits with a nonzero code
    """
    skill_path = Path(skill_path)
    if not skill_path.exists():
        raise AgentError(f"Skill definition not found at: {skill_path}")

    prompt = build_agent_prompt(skill_path.read_text(encoding="utf-8"), task_prompt)

    args = [AGENT_EXECUTABLE, "run"]
    if model:
        args += ["--model", model]
    args.append(prompt)

    logger.log(f"🤖 Awakening Agent: {name}")

    try:
        if log_file is None:
            code = subprocess.run(args, cwd=cwd).returncode
        else:
            code = _run_tee(args, cwd, Path(log_file))
    except FileNotFoundError as e:
        logger.error(f"Failed to spawn {AGENT_EXECUTABLE} for {name}: {e}")
        raise AgentError(f"Failed to spawn {AGENT_EXECUTABLE} for {name}: {e}") from e

    if code != 0:
        logger.error(f"{name} exited with code {code}.")
        raise AgentError(f"{name} failed with exit code {code}")

    logger.success(f"{name} completed its session.")


def _run_tee(args: list[str], cwd, log_file: Path) -> int:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    with log_file.open("a", encoding="utf-8") as sink, subprocess.Popen(
        args,
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        encoding="utf-8",
        errors="replace",
    ) as process:
        for line in process.stdout:
            sys.stdout.write(line)
            sink.write(line)
    return process.returncode
