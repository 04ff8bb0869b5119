"""
Protocol types for the agent core.

Defines the Pydantic models exchanged between the agent runner, completion
clients and tool providers. Nothing here is persisted: every message, tool
call and tool result lives only as long as the run that created it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    """Conversation turn roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class StopReason(str, Enum):
    """Why the backend stopped generating."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    ERROR = "error"
    OTHER = "other"


class ToolDefinition(BaseModel):
    """Immutable description of a callable tool, as sent to the model."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Tool name, unique among enabled tools.")
    description: str = Field(default="", description="Natural-language description for the model.")
    input_schema: Mapping[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON Schema describing the accepted input.",
    )


class ToolCall(BaseModel):
    """A request from the model to invoke one tool."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Backend-assigned id, echoed back unchanged.")
    name: str = Field(..., description="Requested tool name.")
    input: Any = Field(default_factory=dict, description="Tool input, not validated by the core.")


class ToolResult(BaseModel):
    """The answer to one tool call."""

    model_config = ConfigDict(frozen=True)

    tool_call_id: str = Field(..., description="Id of the originating tool call.")
    content: Any = Field(default=None, description="Structured result payload.")
    is_error: bool = Field(default=False)


class Message(BaseModel):
    """One turn in the conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = Field(default="", description="Turn text; empty for tool-only turns.")
    tool_calls: list[ToolCall] | None = Field(default=None)
    tool_results: list[ToolResult] | None = Field(default=None)

    @model_validator(mode="after")
    def _validate_payloads(self) -> Message:
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("Only assistant messages may carry tool calls.")
        if self.tool_results and self.role is not Role.TOOL:
            raise ValueError("Only tool messages may carry tool results.")
        return self

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: Sequence[ToolCall] | None = None) -> Message:
        return cls(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=list(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool(cls, results: Sequence[ToolResult]) -> Message:
        return cls(role=Role.TOOL, tool_results=list(results))


class Usage(BaseModel):
    """Token accounting for one or more completion calls."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cache_read_tokens: int = Field(default=0, ge=0)
    cache_write_tokens: int = Field(default=0, ge=0)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_read_tokens=self.cache_read_tokens + other.cache_read_tokens,
            cache_write_tokens=self.cache_write_tokens + other.cache_write_tokens,
        )


class TokenPricing(BaseModel):
    """USD prices per million tokens, used for cost estimates."""

    model_config = ConfigDict(frozen=True)

    input_per_million: float = Field(default=3.00, ge=0.0)
    output_per_million: float = Field(default=15.00, ge=0.0)
    cache_read_per_million: float = Field(default=0.30, ge=0.0)
    cache_write_per_million: float = Field(default=3.75, ge=0.0)

    def estimate(self, usage: Usage) -> float:
        """Return the estimated cost of *usage* in USD."""
        cost = (
            usage.input_tokens * self.input_per_million
            + usage.output_tokens * self.output_per_million
            + usage.cache_read_tokens * self.cache_read_per_million
            + usage.cache_write_tokens * self.cache_write_per_million
        ) / 1_000_000
        return round(cost, 6)


class CompletionRequest(BaseModel):
    """Provider-agnostic input for one completion round trip."""

    model_config = ConfigDict(frozen=True)

    system_prompt: str | None = Field(default=None)
    messages: list[Message] = Field(..., min_length=1)
    tools: list[ToolDefinition] | None = Field(
        default=None, description="Omitted when tool use is disabled for the call."
    )
    model: str | None = Field(default=None, description="Model override; client default if unset.")
    max_tokens: int = Field(default=1024, ge=1)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    enable_prompt_caching: bool = Field(
        default=True, description="Advisory hint; clients may ignore it."
    )


class CompletionResponse(BaseModel):
    """Normalized reply from a completion client."""

    model_config = ConfigDict(frozen=True)

    success: bool = Field(...)
    content: str | None = Field(default=None)
    stop_reason: StopReason = Field(default=StopReason.END_TURN)
    tool_calls: list[ToolCall] | None = Field(default=None)
    usage: Usage = Field(default_factory=Usage)
    error_message: str | None = Field(default=None)
    model: str | None = Field(default=None, description="Resolved model identifier.")
    raw: Any | None = Field(default=None, exclude=True, description="Raw vendor payload.")

    @model_validator(mode="after")
    def _validate_consistency(self) -> CompletionResponse:
        if self.success and self.error_message is not None:
            raise ValueError("error_message must be unset on a successful response.")
        if not self.success and not self.error_message:
            raise ValueError("error_message is required on a failed response.")
        if self.tool_calls and self.stop_reason is not StopReason.TOOL_USE:
            raise ValueError("tool_calls require the tool_use stop reason.")
        return self

    @classmethod
    def failure(cls, error_message: str, usage: Usage | None = None) -> CompletionResponse:
        return cls(
            success=False,
            stop_reason=StopReason.ERROR,
            error_message=error_message,
            usage=usage or Usage(),
        )


class ExecutionContext(BaseModel):
    """Caller environment handed to every tool execution during a run."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., description="Opaque id of the invoking user.")
    scope_id: str | None = Field(default=None, description="Enclosing guild/workspace scope.")
    channel_id: str | None = Field(default=None, description="Conversation or channel id.")
    roles: tuple[str, ...] = Field(default=(), description="Caller authorization roles.")
    attributes: Mapping[str, Any] = Field(default_factory=dict)

    def has_role(self, role: str) -> bool:
        wanted = role.casefold()
        return any(r.casefold() == wanted for r in self.roles)


class ToolErrorKind(str, Enum):
    """Classification of tool execution failures."""

    NONE = "none"
    FAILED = "failed"  # Tool reported an expected failure
    NOT_SUPPORTED = "not_supported"  # No enabled provider owns the tool
    TIMEOUT = "timeout"
    EXCEPTION = "exception"  # Provider code raised


class ToolExecutionResult(BaseModel):
    """Outcome of one tool execution as reported by a provider or the registry."""

    model_config = ConfigDict(frozen=True)

    success: bool = Field(...)
    data: Any = Field(default=None)
    error_message: str | None = Field(default=None)
    error_kind: ToolErrorKind = Field(default=ToolErrorKind.NONE)

    @classmethod
    def ok(cls, data: Any = None) -> ToolExecutionResult:
        return cls(success=True, data=data)

    @classmethod
    def error(
        cls, message: str, kind: ToolErrorKind = ToolErrorKind.FAILED
    ) -> ToolExecutionResult:
        return cls(success=False, error_message=message, error_kind=kind)

    @classmethod
    def not_supported(cls, tool_name: str) -> ToolExecutionResult:
        return cls.error(
            f"Tool '{tool_name}' not found in any enabled provider",
            kind=ToolErrorKind.NOT_SUPPORTED,
        )

    def to_content(self) -> Any:
        """Payload fed back to the model for this execution."""
        if not self.success:
            return {"error": self.error_message or "Unknown error"}
        if self.data is None:
            return {"success": True}
        return self.data


class RunOutcome(str, Enum):
    """Terminal outcome of an agent run."""

    COMPLETED = "completed"
    FAILED = "failed"
    ITERATION_CAP = "iteration_cap"
    CANCELLED = "cancelled"


class ToolTraceEntry(BaseModel):
    """One executed tool call, recorded for observability."""

    model_config = ConfigDict(frozen=True)

    iteration: int
    tool_call_id: str
    name: str
    input: Any = None
    result: Any = None
    is_error: bool = False
    error_kind: ToolErrorKind = ToolErrorKind.NONE
    duration_ms: int = 0


class RunResult(BaseModel):
    """Terminal output of one agent run."""

    model_config = ConfigDict(extra="allow")

    outcome: RunOutcome = Field(...)
    text: str | None = Field(default=None, description="Final answer, if any.")
    error_message: str | None = Field(default=None)
    usage: Usage = Field(default_factory=Usage)
    iteration_count: int = Field(default=0, ge=0)
    tool_calls: list[ToolTraceEntry] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list, description="Conversation transcript.")
    truncated: bool = Field(default=False, description="Final text was cut at max tokens.")
    estimated_cost_usd: float | None = Field(default=None)
    duration_ms: int = Field(default=0)

    @property
    def success(self) -> bool:
        return self.outcome is RunOutcome.COMPLETED

    @property
    def total_tool_calls(self) -> int:
        return len(self.tool_calls)
