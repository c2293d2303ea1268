"""Tests for the agent pipeline, slug generation and the scaffolder."""

import json
import os
import re
from datetime import date
from pathlib import Path

import httpx
import pytest

from vaisu.core.exceptions import AgentError
from vaisu.orchestration import pipeline
from vaisu.orchestration.agent_runner import build_agent_prompt, run_agent
from vaisu.orchestration.config import DEFAULT_BASE_URL, OrchestrationConfig, load_config
from vaisu.orchestration.llm import generate_feature_slug, sanitize_slug
from vaisu.orchestration.logger import OrchestrationLogger
from vaisu.orchestration.pipeline import (
    PHASES,
    Orchestrator,
    find_latest_file,
    has_pending_tasks,
)
from vaisu.orchestration.scaffold import (
    ScaffoldRequest,
    ask_request,
    build_task_prompt,
    job_log_file,
    scaffold,
)

OUTPUT_NAMES = {
    "Maestro": "maestro-prompt-1.json",
    "Rearchy": "rearchy-reqs-1.json",
    "Daisy": "daisy-design-1.json",
    "Tasky": "tasky-tasks-1.json",
    "Devy": "devy-report-1.json",
    "Checky": "checky-audit-1.json",
    "Guidy": "guidy-report-1.json",
}


@pytest.fixture
def config(tmp_path):
    return OrchestrationConfig(
        openrouter_api_key="key",
        openrouter_base_url="https://llm.test/api/v1",
        project_root=tmp_path,
    )


class FakeRunner:
    """Records agent runs and writes each phase's output file."""

    def __init__(self, feature_dir: Path, skip_outputs=()):
        self.feature_dir = feature_dir
        self.skip_outputs = set(skip_outputs)
        self.runs: list[tuple[str, object]] = []

    def __call__(self, name, skill_path, task_prompt, logger, cwd=None, model=None, log_file=None):
        self.runs.append((name, log_file))
        if name == "Devy":
            self._advance_tasks()
            if log_file is not None:
                return
        if name not in self.skip_outputs:
            (self.feature_dir / OUTPUT_NAMES[name]).write_text("{}", encoding="utf-8")
        if name == "Tasky":
            plan = {"execution_plan": [{"id": 1, "status": "PENDING"}, {"id": 2, "status": "PENDING"}]}
            (self.feature_dir / OUTPUT_NAMES[name]).write_text(json.dumps(plan), encoding="utf-8")

    def _advance_tasks(self):
        tasky = self.feature_dir / OUTPUT_NAMES["Tasky"]
        plan = json.loads(tasky.read_text(encoding="utf-8"))
        for task in plan["execution_plan"]:
            if task["status"] == "PENDING":
                task["status"] = "DONE"
                break
        tasky.write_text(json.dumps(plan), encoding="utf-8")


class TestFindLatestFile:
    def test_newest_match_wins(self, tmp_path):
        old = tmp_path / "rearchy-reqs-old.json"
        new = tmp_path / "rearchy-reqs-new.json"
        other = tmp_path / "notes.txt"
        for i, path in enumerate((old, new, other)):
            path.write_text("{}")
            os.utime(path, (1000 + i, 1000 + i))

        assert find_latest_file(tmp_path, r"rearchy-reqs.*\.json$") == new
        assert find_latest_file(tmp_path, re.compile(r"^notes")) == other

    def test_no_match(self, tmp_path):
        assert find_latest_file(tmp_path, r"guidy-report.*\.json$") is None

    def test_missing_directory(self, tmp_path):
        assert find_latest_file(tmp_path / "nope", r".*") is None


class TestPendingTasks:
    def test_pending_and_done(self, tmp_path):
        run_logger = OrchestrationLogger(tmp_path)
        tasky = tmp_path / "tasky-tasks.json"

        tasky.write_text(json.dumps({"execution_plan": [{"status": "DONE"}, {"status": "PENDING"}]}))
        assert has_pending_tasks(tasky, run_logger) is True

        tasky.write_text(json.dumps({"execution_plan": [{"status": "DONE"}]}))
        assert has_pending_tasks(tasky, run_logger) is False

    def test_unparseable_plan_logged(self, tmp_path):
        run_logger = OrchestrationLogger(tmp_path)
        tasky = tmp_path / "tasky-tasks.json"
        tasky.write_text("not json")

        assert has_pending_tasks(tasky, run_logger) is False
        assert "ERROR: Failed to parse tasky file:" in run_logger.log_path.read_text()

    def test_missing_file(self, tmp_path):
        assert has_pending_tasks(tmp_path / "missing.json", OrchestrationLogger(tmp_path)) is False


class TestOrchestrationLogger:
    def test_line_format(self, tmp_path):
        run_logger = OrchestrationLogger(tmp_path / "logs")
        run_logger.log("hello")
        run_logger.error("broken")
        run_logger.success("done")

        lines = run_logger.log_path.read_text(encoding="utf-8").splitlines()
        assert re.match(r"^\[\d{4}-\d{2}-\d{2}T[\d:.]+Z\] hello$", lines[0])
        assert lines[1].endswith("] ERROR: broken")
        assert lines[2].endswith("] SUCCESS: done")


class TestSlug:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("add-billing-system", "add-billing-system"),
            ("  Fix Login Bug!\n", "fix-login-bug"),
            ("--weird__slug--", "weird-slug"),
        ],
    )
    def test_sanitize(self, raw, expected):
        assert sanitize_slug(raw) == expected

    def test_generated_by_llm(self, config):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "Add Dark Mode"}}]}
            )

        slug = generate_feature_slug(
            "Please add a dark mode", config, transport=httpx.MockTransport(handler)
        )

        assert slug == "add-dark-mode"
        assert seen["url"] == "https://llm.test/api/v1/chat/completions"
        assert seen["auth"] == "Bearer key"
        assert seen["body"]["messages"][1] == {"role": "user", "content": "Please add a dark mode"}

    def test_http_error_falls_back(self, config):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        assert re.fullmatch(r"feature-\d+", generate_feature_slug("x", config, transport=transport))

    def test_empty_answer_falls_back(self, config):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "!!!"}}]})
        )
        assert generate_feature_slug("x", config, transport=transport).startswith("feature-")


class TestLoadConfig:
    def test_from_dotenv(self, tmp_path, monkeypatch):
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        monkeypatch.delenv("OPENROUTER_BASE_URL", raising=False)
        (tmp_path / "backend").mkdir()
        (tmp_path / "backend" / ".env").write_text(
            "OPENROUTER_API_KEY=file-key\nOPENROUTER_BASE_URL=https://proxy.test/v1/\n"
        )

        config = load_config(tmp_path)
        assert config.openrouter_api_key == "file-key"
        assert config.openrouter_base_url == "https://proxy.test/v1"
        assert config.project_root == tmp_path.resolve()

    def test_environment_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "env-key")
        monkeypatch.delenv("OPENROUTER_BASE_URL", raising=False)
        (tmp_path / "backend").mkdir()
        (tmp_path / "backend" / ".env").write_text("OPENROUTER_API_KEY=file-key\n")

        config = load_config(tmp_path)
        assert config.openrouter_api_key == "env-key"
        assert config.openrouter_base_url == DEFAULT_BASE_URL

    def test_missing_key(self, tmp_path, monkeypatch):
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        with pytest.raises(AgentError, match="OPENROUTER_API_KEY not found"):
            load_config(tmp_path)


class TestRunAgent:
    def test_missing_skill(self, tmp_path):
        with pytest.raises(AgentError, match="Skill definition not found"):
            run_agent("Maestro", tmp_path / "Maestro.md", "task", OrchestrationLogger(tmp_path))

    def test_missing_executable(self, tmp_path, monkeypatch):
        skill = tmp_path / "Maestro.md"
        skill.write_text("You are Maestro.")
        monkeypatch.setattr(
            "vaisu.orchestration.agent_runner.AGENT_EXECUTABLE", "vaisu-no-such-agent-binary"
        )
        with pytest.raises(AgentError, match="Failed to spawn"):
            run_agent("Maestro", skill, "task", OrchestrationLogger(tmp_path))

    @pytest.fixture
    def fake_agent(self, tmp_path, monkeypatch):
        def _install(exit_code: int) -> Path:
            script = tmp_path / "fake-agent"
            script.write_text(f'#!/bin/sh\necho "agent ran $1"\nexit {exit_code}\n')
            script.chmod(0o755)
            monkeypatch.setattr("vaisu.orchestration.agent_runner.AGENT_EXECUTABLE", str(script))
            skill = tmp_path / "Devy.md"
            skill.write_text("You are Devy.")
            return skill

        return _install

    def test_output_appended_to_log_file(self, tmp_path, fake_agent, capsys):
        skill = fake_agent(0)
        log_file = tmp_path / "logs" / "05-devy.log"
        log_file.parent.mkdir()
        log_file.write_text("earlier\n")

        run_agent("Devy", skill, "task", OrchestrationLogger(tmp_path), log_file=log_file)

        assert log_file.read_text() == "earlier\nagent ran run\n"
        assert "agent ran run" in capsys.readouterr().out

    def test_nonzero_exit_with_log_file(self, tmp_path, fake_agent):
        skill = fake_agent(3)
        with pytest.raises(AgentError, match="exit code 3"):
            run_agent(
                "Devy",
                skill,
                "task",
                OrchestrationLogger(tmp_path),
                log_file=tmp_path / "devy.log",
            )
        assert (tmp_path / "devy.log").read_text() == "agent ran run\n"

    def test_prompt_layout(self):
        prompt = build_agent_prompt("You are Devy.", "Do the next task")
        assert prompt.startswith("SYSTEM INSTRUCTION: Adopt the following persona")
        assert "You are Devy.\n\n---\nCURRENT INPUT / TRIGGER:\nDo the next task" in prompt


class TestOrchestrator:
    def test_full_run(self, config):
        orchestrator = Orchestrator("Add dark mode", "add-dark-mode", config)
        runner = FakeRunner(orchestrator.feature_dir)
        orchestrator.runner = runner

        outputs = orchestrator.run()

        assert orchestrator.feature_dir == config.project_root / ".context" / "prd" / "add-dark-mode"
        assert [name for name, _ in runner.runs] == [
            "Maestro", "Rearchy", "Daisy", "Tasky", "Devy", "Devy", "Devy", "Checky", "Guidy",
        ]
        devy_logs = [log for name, log in runner.runs if name == "Devy"]
        assert devy_logs == [
            orchestrator.logs_dir / "05-devy.log",
            orchestrator.logs_dir / "05-devy.log",
            None,
        ]
        assert outputs["Guidy"].name == "guidy-report-1.json"
        assert "Orchestration Complete!" in orchestrator.logger.log_path.read_text(encoding="utf-8")

    def test_existing_outputs_are_skipped(self, config):
        orchestrator = Orchestrator("Add dark mode", "add-dark-mode", config)
        (orchestrator.feature_dir / "maestro-prompt-x.json").write_text("{}")
        runner = FakeRunner(orchestrator.feature_dir)
        orchestrator.runner = runner

        orchestrator.run_phase(PHASES[0])

        assert runner.runs == []
        log = orchestrator.logger.log_path.read_text(encoding="utf-8")
        assert "Skipping Maestro (Output exists: maestro-prompt-x.json)" in log

    def test_missing_output_fails(self, config):
        orchestrator = Orchestrator("Add dark mode", "add-dark-mode", config)
        orchestrator.runner = FakeRunner(orchestrator.feature_dir, skip_outputs={"Maestro"})

        with pytest.raises(AgentError, match="Maestro failed to generate output file."):
            orchestrator.run()

    def test_prompts_reference_previous_outputs(self, config):
        orchestrator = Orchestrator("Add dark mode", "add-dark-mode", config)
        prompts = {}

        def runner(name, skill_path, task_prompt, logger, **kwargs):
            prompts[name] = (skill_path, task_prompt)
            FakeRunner(orchestrator.feature_dir)(name, skill_path, task_prompt, logger, **kwargs)

        orchestrator.runner = runner
        orchestrator.run_phase(PHASES[0])
        orchestrator.run_phase(PHASES[1])

        skill_path, maestro_prompt = prompts["Maestro"]
        assert skill_path == config.project_root / "agents" / "maestro" / "Maestro.md"
        assert "USER REQUEST:\n'Add dark mode'" in maestro_prompt
        assert "FEATURE SLUG: add-dark-mode" in maestro_prompt
        assert f"INPUT FILE: {orchestrator.feature_dir / 'maestro-prompt-1.json'}" in prompts["Rearchy"][1]

    def test_main_reports_failure(self, config, tmp_path, monkeypatch):
        prompt_file = tmp_path / "request.txt"
        prompt_file.write_text("Add dark mode")
        monkeypatch.setattr(pipeline, "load_config", lambda: config)

        assert pipeline.main([str(prompt_file), "add-dark-mode"]) == 1
        log = (config.project_root / ".context" / "prd" / "add-dark-mode" / "orchestration.log").read_text()
        assert "ERROR: Orchestration failed: Skill definition not found" in log

    def test_main_missing_prompt_file(self, config, tmp_path, monkeypatch):
        monkeypatch.setattr(pipeline, "load_config", lambda: config)
        assert pipeline.main([str(tmp_path / "missing.txt")]) == 1


class TestScaffold:
    def test_ask_request_defaults(self, tmp_path):
        answers = iter(["shop", "", "", ""])
        request = ask_request(lambda prompt: next(answers), cwd=tmp_path / "vaisu")

        assert request == ScaffoldRequest(
            app_name="shop",
            target_dir=(tmp_path / "shop").resolve(),
            db_type="dynamodb",
            theme_mode="clone-vaisu",
            theme_prompt="",
        )

    def test_ask_request_new_theme(self, tmp_path):
        answers = iter(["shop", "/srv/shop", "postgres", "new-proposal", "dark and neon"])
        request = ask_request(lambda prompt: next(answers), cwd=tmp_path)

        assert request.target_dir == Path("/srv/shop")
        assert request.db_type == "postgres"
        assert request.theme_prompt == "dark and neon"

    def test_task_prompt(self, tmp_path):
        request = ScaffoldRequest("shop", tmp_path / "shop", "postgres", "new-proposal", "neon")
        prompt = build_task_prompt(request, tmp_path)

        assert prompt.startswith("SCAFFOLDING REQUEST:")
        assert "3. DATABASE TYPE: postgres" in prompt
        assert '5. THEME DESCRIPTION: "neon"' in prompt
        assert f"SOURCE PROJECT ROOT: {tmp_path}" in prompt

    def test_task_prompt_without_theme(self, tmp_path):
        request = ScaffoldRequest("shop", tmp_path / "shop")
        assert "THEME DESCRIPTION" not in build_task_prompt(request, tmp_path)

    def test_job_log_file(self, config):
        path = job_log_file(config, "shop", today=date(2025, 1, 31))
        assert path == config.project_root / ".context" / "scaffolding-jobs" / "2025-01-31-scaffy-shop.log"

    def test_scaffold_runs_scaffy(self, config, tmp_path):
        runs = []

        def runner(name, skill_path, task_prompt, logger, cwd=None, model=None, log_file=None):
            runs.append((name, skill_path, log_file))

        request = ScaffoldRequest("shop", tmp_path / "apps" / "shop")
        log_file = scaffold(request, config, runner=runner)

        assert request.target_dir.is_dir()
        assert runs == [("Scaffy", config.project_root / "agents" / "scaffy" / "Scaffy.md", log_file)]
        assert log_file.parent.is_dir()
