"""Pytest configuration and shared fixtures for llm-agent tests."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Iterable
from typing import Any, ClassVar, Union

import pytest

from llm_agent.clients.base import ClientCapabilities, CompletionClient, DoctorResult
from llm_agent.config.settings import AgentSettings, reset_settings
from llm_agent.protocol.types import (
    CompletionRequest,
    CompletionResponse,
    ExecutionContext,
    StopReason,
    ToolCall,
    ToolDefinition,
    ToolExecutionResult,
    Usage,
)
from llm_agent.tools.base import FunctionToolProvider, ToolNotSupportedError, ToolParameter, ToolProvider
from llm_agent.tools.registry import ToolRegistry

Scripted = Union[CompletionResponse, Callable[[CompletionRequest], Any], BaseException]


def text_response(text: str, input_tokens: int = 10, output_tokens: int = 5) -> CompletionResponse:
    """A successful end-of-turn response."""
    return CompletionResponse(
        success=True,
        content=text,
        stop_reason=StopReason.END_TURN,
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def tool_response(*calls: tuple[str, str, Any], content: str | None = None) -> CompletionResponse:
    """A tool-use response from ``(id, name, input)`` triples."""
    return CompletionResponse(
        success=True,
        content=content,
        stop_reason=StopReason.TOOL_USE,
        tool_calls=[ToolCall(id=call_id, name=name, input=tool_input) for call_id, name, tool_input in calls],
        usage=Usage(input_tokens=20, output_tokens=8),
    )


class ScriptedClient(CompletionClient):
    """Completion client that replays a fixed script of responses."""

    name: ClassVar[str] = "scripted"
    capabilities: ClassVar[ClientCapabilities] = ClientCapabilities(tool_use=True)

    def __init__(self, script: Iterable[Scripted] = ()) -> None:
        super().__init__(timeout=None)
        self._script = list(script)
        self.requests: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        if not self._script:
            raise AssertionError("ScriptedClient ran out of responses")
        step = self._script.pop(0)
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            step = step(request)
            if asyncio.iscoroutine(step):
                step = await step
        return step

    async def _complete_once(self, request: CompletionRequest) -> CompletionResponse:
        raise NotImplementedError

    async def doctor(self) -> DoctorResult:
        return DoctorResult(ok=True, message="Scripted client OK", latency_ms=1.0)

    @property
    def call_count(self) -> int:
        """Get number of complete calls."""
        return len(self.requests)


class RecordingProvider(ToolProvider):
    """In-memory provider that records calls and returns canned results."""

    def __init__(
        self,
        name: str,
        tool_names: Iterable[str],
        results: dict[str, ToolExecutionResult] | None = None,
        description: str = "",
    ) -> None:
        self.name = name
        self.description = description or f"{name} tools"
        self._tools = [
            ToolDefinition(
                name=tool_name,
                description=f"{tool_name} tool",
                input_schema={"type": "object", "properties": {}},
            )
            for tool_name in tool_names
        ]
        self._results = results or {}
        self.calls: list[tuple[str, Any, ExecutionContext]] = []

    def get_tools(self) -> list[ToolDefinition]:
        return list(self._tools)

    async def execute_tool(
        self, tool_name: str, tool_input: Any, context: ExecutionContext
    ) -> ToolExecutionResult:
        if not self.has_tool(tool_name):
            raise ToolNotSupportedError(tool_name, self.name)
        self.calls.append((tool_name, tool_input, context))
        return self._results.get(tool_name, ToolExecutionResult.ok({"tool": tool_name}))


class BrokenListingProvider(RecordingProvider):
    """Provider whose tool listing starts failing once ``broken`` is set."""

    broken = False

    def get_tools(self) -> list[ToolDefinition]:
        if self.broken:
            raise RuntimeError("schema backend down")
        return super().get_tools()


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    """Keep tests away from the user's config file and environment."""
    monkeypatch.setenv("LLM_AGENT_CONFIG", str(tmp_path / "no-config.yaml"))
    for key in list(os.environ):
        if key.startswith("LLM_AGENT_") and key != "LLM_AGENT_CONFIG":
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def context() -> ExecutionContext:
    """Create a sample execution context."""
    return ExecutionContext(user_id="user-1", scope_id="guild-1", channel_id="chan-1", roles=("Admin",))


@pytest.fixture
def math_provider() -> FunctionToolProvider:
    """Create a provider with a couple of simple function tools."""
    provider = FunctionToolProvider("math", "Arithmetic helpers")

    @provider.tool(
        parameters=[ToolParameter("a", "integer"), ToolParameter("b", "integer")],
    )
    def add(tool_input, context):
        """Add two integers."""
        return {"sum": tool_input["a"] + tool_input["b"]}

    @provider.tool(parameters=[ToolParameter("value", "number")])
    async def double(tool_input, context):
        """Double a number."""
        return {"result": tool_input["value"] * 2}

    return provider


@pytest.fixture
def registry(math_provider) -> ToolRegistry:
    """Create a registry with the math provider enabled."""
    registry = ToolRegistry()
    registry.register_provider(math_provider)
    return registry


@pytest.fixture
def settings() -> AgentSettings:
    """Create settings with fast, deterministic defaults."""
    return AgentSettings(client="scripted", tool_timeout=None, max_retries=0)
