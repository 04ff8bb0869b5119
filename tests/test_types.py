"""Tests for protocol types."""

import pytest
from pydantic import ValidationError

from llm_agent.protocol.types import (
    CompletionRequest,
    CompletionResponse,
    ExecutionContext,
    Message,
    Role,
    RunOutcome,
    RunResult,
    StopReason,
    TokenPricing,
    ToolCall,
    ToolErrorKind,
    ToolExecutionResult,
    ToolResult,
    Usage,
)


class TestMessage:
    """Tests for Message."""

    def test_constructors(self):
        assert Message.user("hi").role == Role.USER
        assert Message.system("rules").role == Role.SYSTEM
        assistant = Message.assistant("thinking", [ToolCall(id="c1", name="add")])
        assert assistant.tool_calls[0].id == "c1"
        tool = Message.tool([ToolResult(tool_call_id="c1", content={"sum": 3})])
        assert tool.role == Role.TOOL
        assert tool.content == ""

    def test_assistant_without_calls_has_none(self):
        assert Message.assistant("done", []).tool_calls is None

    def test_only_assistant_carries_tool_calls(self):
        with pytest.raises(ValidationError):
            Message(role=Role.USER, tool_calls=[ToolCall(id="c1", name="add")])

    def test_only_tool_message_carries_results(self):
        with pytest.raises(ValidationError):
            Message(role=Role.ASSISTANT, tool_results=[ToolResult(tool_call_id="c1")])

    def test_messages_are_immutable(self):
        message = Message.user("hi")
        with pytest.raises(ValidationError):
            message.content = "changed"


class TestUsage:
    """Tests for Usage and pricing."""

    def test_addition(self):
        total = Usage(input_tokens=10, output_tokens=2, cache_read_tokens=1) + Usage(
            input_tokens=5, output_tokens=3, cache_write_tokens=4
        )
        assert total == Usage(
            input_tokens=15, output_tokens=5, cache_read_tokens=1, cache_write_tokens=4
        )
        assert total.total_tokens == 20

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            Usage(input_tokens=-1)

    def test_pricing_estimate(self):
        pricing = TokenPricing(input_per_million=1.0, output_per_million=2.0)
        usage = Usage(input_tokens=500_000, output_tokens=250_000)
        assert pricing.estimate(usage) == pytest.approx(1.0)


class TestCompletionModels:
    """Tests for CompletionRequest and CompletionResponse."""

    def test_request_requires_a_message(self):
        with pytest.raises(ValidationError):
            CompletionRequest(messages=[])

    def test_request_defaults(self):
        request = CompletionRequest(messages=[Message.user("hi")])
        assert request.tools is None
        assert request.max_tokens == 1024
        assert request.enable_prompt_caching is True

    def test_temperature_range(self):
        with pytest.raises(ValidationError):
            CompletionRequest(messages=[Message.user("hi")], temperature=2.5)

    def test_failure(self):
        response = CompletionResponse.failure("rate limited")
        assert response.success is False
        assert response.stop_reason == StopReason.ERROR
        assert response.error_message == "rate limited"

    def test_failure_requires_message(self):
        with pytest.raises(ValidationError):
            CompletionResponse(success=False)

    def test_success_rejects_error_message(self):
        with pytest.raises(ValidationError):
            CompletionResponse(success=True, error_message="nope")

    def test_tool_calls_require_tool_use(self):
        with pytest.raises(ValidationError):
            CompletionResponse(
                success=True,
                stop_reason=StopReason.END_TURN,
                tool_calls=[ToolCall(id="c1", name="add")],
            )

    def test_raw_is_excluded_from_dump(self):
        response = CompletionResponse(success=True, content="hi", raw={"id": "x"})
        assert "raw" not in response.model_dump()


class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_has_role_is_case_insensitive(self):
        context = ExecutionContext(user_id="u1", roles=("Admin", "Moderator"))
        assert context.has_role("admin")
        assert context.has_role("MODERATOR")
        assert not context.has_role("owner")

    def test_user_id_required(self):
        with pytest.raises(ValidationError):
            ExecutionContext()


class TestToolExecutionResult:
    """Tests for ToolExecutionResult."""

    def test_ok_content(self):
        assert ToolExecutionResult.ok({"a": 1}).to_content() == {"a": 1}

    def test_ok_without_data(self):
        assert ToolExecutionResult.ok().to_content() == {"success": True}

    def test_error_content(self):
        result = ToolExecutionResult.error("downstream timeout")
        assert result.error_kind == ToolErrorKind.FAILED
        assert result.to_content() == {"error": "downstream timeout"}

    def test_not_supported(self):
        result = ToolExecutionResult.not_supported("ghost")
        assert result.error_kind == ToolErrorKind.NOT_SUPPORTED
        assert "ghost" in result.error_message


class TestRunResult:
    """Tests for RunResult."""

    def test_success_only_when_completed(self):
        assert RunResult(outcome=RunOutcome.COMPLETED).success is True
        for outcome in (RunOutcome.FAILED, RunOutcome.ITERATION_CAP, RunOutcome.CANCELLED):
            assert RunResult(outcome=outcome).success is False

    def test_json_dump(self):
        result = RunResult(outcome=RunOutcome.COMPLETED, text="hi", messages=[Message.user("q")])
        data = result.model_dump(mode="json")
        assert data["outcome"] == "completed"
        assert data["messages"][0]["role"] == "user"
