"""Tests for ToolRegistry."""

import asyncio
import threading

import pytest

from llm_agent.protocol.types import ToolDefinition, ToolErrorKind, ToolExecutionResult
from llm_agent.tools.base import (
    DuplicateProviderError,
    FunctionToolProvider,
    InvalidToolSchemaError,
    ProviderNotFoundError,
    RepeatedToolNameError,
    ToolNameConflictError,
    ToolNotSupportedError,
)
from llm_agent.tools.registry import ToolRegistry

from conftest import BrokenListingProvider, RecordingProvider


class TestRegistration:
    """Tests for provider registration."""

    def test_register_and_list(self, registry):
        assert registry.provider_names() == ["math"]
        assert "math" in registry
        assert "MATH" in registry
        assert len(registry) == 1
        assert registry.is_enabled("math")

    def test_duplicate_provider_rejected(self, registry):
        with pytest.raises(DuplicateProviderError):
            registry.register_provider(RecordingProvider("Math", ["other"]))

    def test_conflicting_tool_rejected_when_enabled(self, registry):
        with pytest.raises(ToolNameConflictError) as exc_info:
            registry.register_provider(RecordingProvider("calc", ["ADD"]))
        assert exc_info.value.providers == ("math", "calc")

    def test_conflicting_tool_allowed_when_disabled(self, registry):
        registry.register_provider(RecordingProvider("calc", ["add"]), enabled=False)
        assert not registry.is_enabled("calc")

    def test_enable_with_conflict_fails(self, registry):
        registry.register_provider(RecordingProvider("calc", ["add"]), enabled=False)
        with pytest.raises(ToolNameConflictError):
            registry.enable_provider("calc")
        assert not registry.is_enabled("calc")

    def test_provider_repeating_a_tool_rejected(self):
        with pytest.raises(RepeatedToolNameError) as exc_info:
            ToolRegistry([RecordingProvider("p", ["a", "A"])])
        assert str(exc_info.value) == "Provider 'p' declares tool 'A' more than once"
        assert exc_info.value.providers == ("p",)
        assert isinstance(exc_info.value, ToolNameConflictError)

    def test_invalid_schema_rejected(self):
        provider = RecordingProvider("p", [])
        provider._tools = [ToolDefinition(name="bad", input_schema={"type": 5})]
        with pytest.raises(InvalidToolSchemaError):
            ToolRegistry([provider])

    def test_blank_name_rejected(self):
        provider = RecordingProvider("p", [])
        provider.name = " "
        with pytest.raises(ValueError):
            ToolRegistry().register_provider(provider)

    def test_unknown_provider_errors(self, registry):
        with pytest.raises(ProviderNotFoundError):
            registry.enable_provider("ghost")
        with pytest.raises(ProviderNotFoundError):
            registry.disable_provider("ghost")
        with pytest.raises(ProviderNotFoundError):
            registry.get_provider("ghost")

    def test_enable_disable_are_idempotent(self, registry):
        registry.disable_provider("math")
        registry.disable_provider("math")
        assert not registry.is_enabled("math")
        registry.enable_provider("math")
        registry.enable_provider("math")
        assert registry.is_enabled("math")

    def test_reenabling_restores_identical_tools(self, registry):
        registry.register_provider(RecordingProvider("roles", ["lookup_role"]))
        before = registry.get_enabled_tools()

        registry.disable_provider("roles")
        assert [t.name for t in registry.get_enabled_tools()] == ["add", "double"]
        registry.enable_provider("roles")

        assert registry.get_enabled_tools() == before

    def test_describe(self, registry):
        registry.register_provider(RecordingProvider("roles", ["lookup_role"]), enabled=False)
        assert registry.describe() == [
            {
                "name": "math",
                "description": "Arithmetic helpers",
                "enabled": True,
                "tools": ["add", "double"],
            },
            {
                "name": "roles",
                "description": "roles tools",
                "enabled": False,
                "tools": ["lookup_role"],
            },
        ]


class TestEnabledTools:
    """Tests for get_enabled_tools."""

    def test_only_enabled_providers(self, registry):
        registry.register_provider(RecordingProvider("roles", ["lookup_role"]))
        assert [t.name for t in registry.get_enabled_tools()] == ["add", "double", "lookup_role"]

        registry.disable_provider("math")
        assert [t.name for t in registry.get_enabled_tools()] == ["lookup_role"]

    def test_empty_registry(self):
        assert ToolRegistry().get_enabled_tools() == []

    def test_conflict_detected(self):
        first = RecordingProvider("first", ["lookup"])
        second = RecordingProvider("second", ["search"])
        registry = ToolRegistry([first, second])
        second._tools = first.get_tools()

        with pytest.raises(ToolNameConflictError):
            registry.get_enabled_tools()


class TestExecuteTool:
    """Tests for execute_tool routing."""

    @pytest.mark.asyncio
    async def test_routes_to_owner_with_canonical_name(self, context):
        provider = RecordingProvider("roles", ["lookup_role"])
        registry = ToolRegistry([provider])

        result = await registry.execute_tool("LOOKUP_ROLE", {"role": "mod"}, context)

        assert result.success
        assert provider.calls == [("lookup_role", {"role": "mod"}, context)]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry, context):
        result = await registry.execute_tool("ghost", {}, context)
        assert result.error_kind == ToolErrorKind.NOT_SUPPORTED

    @pytest.mark.asyncio
    async def test_disabled_provider_code_never_runs(self, context):
        provider = RecordingProvider("roles", ["lookup_role"])
        registry = ToolRegistry([provider])
        registry.disable_provider("roles")

        result = await registry.execute_tool("lookup_role", {}, context)

        assert result.error_kind == ToolErrorKind.NOT_SUPPORTED
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_provider_exception_is_contained(self, context):
        provider = FunctionToolProvider("p")

        @provider.tool()
        def explode(tool_input, context):
            raise KeyError("missing")

        result = await ToolRegistry([provider]).execute_tool("explode", {}, context)

        assert result.success is False
        assert result.error_kind == ToolErrorKind.EXCEPTION
        assert result.error_message.startswith("Tool execution failed:")

    @pytest.mark.asyncio
    async def test_provider_refusing_own_tool(self, context):
        class Refusing(RecordingProvider):
            async def execute_tool(self, tool_name, tool_input, context):
                raise ToolNotSupportedError(tool_name, self.name)

        registry = ToolRegistry([Refusing("r", ["t"])])
        result = await registry.execute_tool("t", {}, context)
        assert result.error_kind == ToolErrorKind.NOT_SUPPORTED

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, context):
        class Cancelling(RecordingProvider):
            async def execute_tool(self, tool_name, tool_input, context):
                raise asyncio.CancelledError()

        registry = ToolRegistry([Cancelling("c", ["t"])])
        with pytest.raises(asyncio.CancelledError):
            await registry.execute_tool("t", {}, context)

    @pytest.mark.asyncio
    async def test_failure_result_passes_through(self, context):
        provider = RecordingProvider(
            "roles", ["lookup_role"], results={"lookup_role": ToolExecutionResult.error("nope")}
        )
        result = await ToolRegistry([provider]).execute_tool("lookup_role", {}, context)
        assert result.error_message == "nope"
        assert result.error_kind == ToolErrorKind.FAILED

    @pytest.mark.asyncio
    async def test_failing_tool_listing_is_contained(self, context):
        provider = BrokenListingProvider("schemas", ["x"])
        registry = ToolRegistry([provider])
        provider.broken = True

        result = await registry.execute_tool("x", {}, context)

        assert result.success is False
        assert result.error_kind == ToolErrorKind.EXCEPTION
        assert "schema backend down" in result.error_message
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_failing_listing_does_not_hide_other_providers(self, context):
        broken = BrokenListingProvider("schemas", ["x"])
        roles = RecordingProvider("roles", ["lookup_role"])
        registry = ToolRegistry([broken, roles])
        broken.broken = True

        result = await registry.execute_tool("lookup_role", {}, context)

        assert result.success
        assert len(roles.calls) == 1

    def test_failing_listing_surfaces_from_enabled_tools(self):
        provider = BrokenListingProvider("schemas", ["x"])
        registry = ToolRegistry([provider])
        provider.broken = True

        with pytest.raises(RuntimeError, match="schema backend down"):
            registry.get_enabled_tools()


class TestConcurrentToggling:
    """Enable/disable from another thread while runs read and execute."""

    @pytest.mark.asyncio
    async def test_snapshots_stay_consistent(self, context):
        registry = ToolRegistry(
            [RecordingProvider("math", ["add", "double"]), RecordingProvider("roles", ["lookup_role"])]
        )
        with_roles = ["add", "double", "lookup_role"]
        without_roles = ["add", "double"]
        stop = threading.Event()
        toggling = threading.Event()
        toggles = 0

        def toggle() -> None:
            nonlocal toggles
            while not stop.is_set():
                registry.disable_provider("roles")
                registry.enable_provider("roles")
                toggles += 1
                toggling.set()

        async def run_once(run: int) -> list[list[str]]:
            seen = []
            for _ in range(50):
                names = [tool.name for tool in registry.get_enabled_tools()]
                assert names in (with_roles, without_roles)
                seen.append(names)

                always = await registry.execute_tool("add", {"run": run}, context)
                assert always.success

                maybe = await registry.execute_tool("lookup_role", {}, context)
                assert maybe.success or maybe.error_kind == ToolErrorKind.NOT_SUPPORTED
                await asyncio.sleep(0)
            return seen

        toggler = threading.Thread(target=toggle)
        toggler.start()
        assert toggling.wait(timeout=5)
        try:
            snapshots = await asyncio.gather(*(run_once(run) for run in range(20)))
        finally:
            stop.set()
            toggler.join()

        assert len(snapshots) == 20
        assert all(len(seen) == 50 for seen in snapshots)
        assert toggles > 0
        assert registry.is_enabled("roles")
