"""Tests for the Agent facade and registry building."""

import logging

import pytest

from llm_agent import Agent, build_registry
from llm_agent.clients.openrouter import OpenRouterClient
from llm_agent.config.settings import AgentSettings
from llm_agent.protocol.types import RunOutcome
from llm_agent.tools.registry import ToolRegistry

from conftest import ScriptedClient, text_response, tool_response


def greet(tool_input, context):
    return {"greeting": f"Hello {context.user_id}"}


@pytest.fixture
def docs_dir(tmp_path):
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "reminders.md").write_text("# Reminders\n")
    return docs


@pytest.fixture
def tools_file(tmp_path):
    path = tmp_path / "tools.yaml"
    path.write_text(
        "providers:\n"
        "  greetings:\n"
        "    tools:\n"
        "      greet:\n"
        "        handler: test_agent:greet\n"
    )
    return path


class TestBuildRegistry:
    """Tests for build_registry."""

    def test_empty_settings(self):
        assert len(build_registry(AgentSettings())) == 0

    def test_documentation_and_declared_providers(self, docs_dir, tools_file):
        registry = build_registry(AgentSettings(docs_path=docs_dir, tools_config=tools_file))
        assert registry.provider_names() == ["documentation", "greetings"]
        assert registry.is_enabled("documentation")

    def test_disabled_providers(self, docs_dir, tools_file):
        settings = AgentSettings(
            docs_path=docs_dir,
            tools_config=tools_file,
            disabled_providers=["documentation"],
        )
        registry = build_registry(settings)
        assert not registry.is_enabled("documentation")
        assert [t.name for t in registry.get_enabled_tools()] == ["greet"]

    def test_unknown_disabled_provider_only_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="llm_agent"):
            registry = build_registry(AgentSettings(disabled_providers=["ghost"]))
        assert len(registry) == 0
        assert "ghost" in caplog.text


class TestAgent:
    """Tests for Agent."""

    @pytest.mark.asyncio
    async def test_run_with_client_instance(self, settings, registry, context):
        client = ScriptedClient(
            [tool_response(("c1", "add", {"a": 1, "b": 1})), text_response("2")]
        )
        agent = Agent(client=client, registry=registry, settings=settings)

        result = await agent.run("1 + 1?", context=context)

        assert result.outcome == RunOutcome.COMPLETED
        assert result.text == "2"
        assert result.tool_calls[0].result == {"sum": 2}
        assert agent.client is client
        assert agent.registry is registry

    @pytest.mark.asyncio
    async def test_settings_flow_into_run(self, registry):
        settings = AgentSettings(
            client="scripted",
            model="m-1",
            max_tokens=77,
            system_prompt="From settings",
            max_retries=0,
        )
        client = ScriptedClient([text_response("ok")])
        agent = Agent(client=client, registry=registry, settings=settings)

        await agent.run("hi")

        request = client.requests[0]
        assert request.model == "m-1"
        assert request.max_tokens == 77
        assert request.system_prompt == "From settings"

    @pytest.mark.asyncio
    async def test_system_prompt_and_overrides(self, settings):
        client = ScriptedClient([tool_response(("c1", "add", {}))])
        agent = Agent(
            client=client,
            registry=ToolRegistry(),
            settings=settings,
            system_prompt="Custom",
        )

        result = await agent.run("hi", max_tool_call_iterations=1)

        assert client.requests[0].system_prompt == "Custom"
        assert result.outcome == RunOutcome.ITERATION_CAP

    def test_client_by_name(self):
        settings = AgentSettings(client="openrouter", model="openai/gpt-4o", request_timeout=12)
        agent = Agent(settings=settings, registry=ToolRegistry())

        assert isinstance(agent.client, OpenRouterClient)
        assert agent.client._default_model == "openai/gpt-4o"
        assert agent.client._timeout == 12

    def test_unknown_client_name(self):
        with pytest.raises(KeyError):
            Agent(client="nonexistent", settings=AgentSettings())

    def test_registry_built_from_settings(self, docs_dir):
        agent = Agent(
            client=ScriptedClient(),
            settings=AgentSettings(docs_path=docs_dir),
        )
        assert agent.registry.provider_names() == ["documentation"]

    @pytest.mark.asyncio
    async def test_doctor(self, settings):
        agent = Agent(client=ScriptedClient(), registry=ToolRegistry(), settings=settings)
        result = await agent.doctor()
        assert result.ok is True
