"""Tests for CLI commands."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from llm_agent.cli.main import app
from llm_agent.protocol.types import ExecutionContext, RunOutcome, RunResult, Usage

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging():
    """The CLI configures the llm_agent logger; undo that after each test."""
    logger = logging.getLogger("llm_agent")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def _mock_agent(result: RunResult) -> MagicMock:
    agent = MagicMock()
    agent.run = AsyncMock(return_value=result)
    return agent


COMPLETED = RunResult(
    outcome=RunOutcome.COMPLETED,
    text="Use /remind to set a reminder.",
    usage=Usage(input_tokens=30, output_tokens=10),
    iteration_count=2,
)


class TestCLIHelp:
    """Tests for CLI help commands."""

    def test_help(self):
        """Test --help displays correctly."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Tool-using LLM agent" in result.stdout

    def test_run_help(self):
        """Test run --help displays correctly."""
        result = runner.invoke(app, ["run", "--help"])
        assert result.exit_code == 0
        assert "--max-iterations" in result.stdout

    def test_tools_help(self):
        result = runner.invoke(app, ["tools", "--help"])
        assert result.exit_code == 0


class TestCLIVersion:
    """Tests for version command."""

    def test_version(self):
        """Test version command output."""
        from llm_agent import __version__

        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "llm-agent" in result.stdout
        assert __version__ in result.stdout


class TestCLIRun:
    """Tests for run command."""

    def test_run_requires_message(self):
        result = runner.invoke(app, ["run"])
        assert result.exit_code != 0

    def test_run_basic(self):
        """Test a completed run prints the answer."""
        agent = _mock_agent(COMPLETED)
        with patch("llm_agent.Agent", return_value=agent) as agent_class:
            result = runner.invoke(app, ["run", "How do reminders work?", "--client", "openai"])

        assert result.exit_code == 0
        assert "Agent Result: COMPLETED" in result.stdout
        assert "Use /remind to set a reminder." in result.stdout
        settings = agent_class.call_args.kwargs["settings"]
        assert settings.client == "openai"

    def test_run_passes_context(self):
        agent = _mock_agent(COMPLETED)
        with patch("llm_agent.Agent", return_value=agent):
            runner.invoke(
                app,
                [
                    "run",
                    "hi",
                    "--user-id",
                    "42",
                    "--scope-id",
                    "guild-1",
                    "--role",
                    "Admin",
                    "--role",
                    "Mod",
                ],
            )

        context = agent.run.await_args.kwargs["context"]
        assert context == ExecutionContext(user_id="42", scope_id="guild-1", roles=("Admin", "Mod"))

    def test_run_options_become_settings(self, tmp_path):
        agent = _mock_agent(COMPLETED)
        with patch("llm_agent.Agent", return_value=agent) as agent_class:
            runner.invoke(
                app,
                [
                    "run",
                    "hi",
                    "--max-iterations",
                    "3",
                    "--docs",
                    str(tmp_path),
                    "--disable",
                    "documentation, roles",
                    "--parallel",
                ],
            )

        settings = agent_class.call_args.kwargs["settings"]
        assert settings.max_tool_call_iterations == 3
        assert settings.docs_path == tmp_path
        assert settings.disabled_providers == ["documentation", "roles"]
        assert settings.parallel_tool_calls is True

    def test_run_with_json_output(self):
        """Test run with --json flag."""
        agent = _mock_agent(COMPLETED)
        with patch("llm_agent.Agent", return_value=agent):
            result = runner.invoke(app, ["run", "hi", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["outcome"] == "completed"
        assert data["usage"]["input_tokens"] == 30

    def test_run_iteration_cap_exits_nonzero(self):
        capped = RunResult(
            outcome=RunOutcome.ITERATION_CAP,
            error_message="Exceeded maximum tool call iterations (1)",
        )
        with patch("llm_agent.Agent", return_value=_mock_agent(capped)):
            result = runner.invoke(app, ["run", "hi"])

        assert result.exit_code == 1
        assert "Agent Result: ITERATION_CAP" in result.stdout
        assert "Exceeded maximum tool call iterations" in result.stdout

    def test_run_error_as_json(self):
        with patch("llm_agent.Agent", side_effect=KeyError("Client 'x' is not registered")):
            result = runner.invoke(app, ["run", "hi", "--json", "--client", "x"])

        assert result.exit_code == 1
        assert "not registered" in json.loads(result.stdout)["error"]

    def test_run_verbose_metrics(self):
        with patch("llm_agent.Agent", return_value=_mock_agent(COMPLETED)):
            result = runner.invoke(app, ["run", "hi", "--verbose"])

        assert result.exit_code == 0
        assert "Iterations: 2" in result.stdout
        assert "Tokens: 40" in result.stdout


class TestCLITools:
    """Tests for tools command."""

    def test_no_providers(self):
        result = runner.invoke(app, ["tools"])
        assert result.exit_code == 0
        assert "No tool providers configured." in result.stdout

    def test_lists_documentation_provider(self, tmp_path):
        (tmp_path / "reminders.md").write_text("# Reminders\n")
        result = runner.invoke(app, ["tools", "--docs", str(tmp_path), "--json"])

        assert result.exit_code == 0
        providers = json.loads(result.stdout)
        assert providers[0]["name"] == "documentation"
        assert providers[0]["enabled"] is True
        assert "search_documentation" in providers[0]["tools"]

    def test_table_output(self, tmp_path):
        result = runner.invoke(app, ["tools", "--docs", str(tmp_path), "--disable", "documentation"])
        assert result.exit_code == 0
        assert "Tool Providers" in result.stdout
        assert "disabled" in result.stdout

    def test_bad_tools_config(self, tmp_path):
        path = tmp_path / "tools.yaml"
        path.write_text("providers: [oops]\n")
        result = runner.invoke(app, ["tools", "--tools-config", str(path)])
        assert result.exit_code == 1


class TestCLIDoctor:
    """Tests for doctor command."""

    def test_doctor_shows_clients(self, monkeypatch):
        for key in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "OPENROUTER_API_KEY"):
            monkeypatch.delenv(key, raising=False)

        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "Client Status" in result.stdout
        assert "anthropic" in result.stdout

    def test_doctor_with_no_clients(self):
        """Test doctor when no clients registered."""
        with patch("llm_agent.clients.get_registry") as mock_reg:
            mock_registry = MagicMock()
            mock_registry.list_clients.return_value = []
            mock_reg.return_value = mock_registry

            result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "No clients registered." in result.stdout


class TestCLIConfig:
    """Tests for config command."""

    def test_config_show_no_file(self):
        result = runner.invoke(app, ["config", "--show"])
        assert result.exit_code == 0
        assert "No configuration file found." in result.stdout

    def test_config_init(self, tmp_path, monkeypatch):
        """Test config --init creates config file."""
        config_file = tmp_path / "llm-agent" / "config.yaml"
        monkeypatch.setenv("LLM_AGENT_CONFIG", str(config_file))

        result = runner.invoke(app, ["config", "--init"])

        assert result.exit_code == 0
        assert config_file.exists()
        assert "max_tool_call_iterations: 10" in config_file.read_text()

    def test_config_init_keeps_existing(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("defaults: {client: openai}\n")
        monkeypatch.setenv("LLM_AGENT_CONFIG", str(config_file))

        result = runner.invoke(app, ["config", "--init"])

        assert result.exit_code == 0
        assert config_file.read_text() == "defaults: {client: openai}\n"

    def test_config_no_options(self):
        """Test config with no options shows usage."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Usage" in result.stdout
