"""
Protocol definitions for the agent core.

Pydantic models for conversation messages, tool calls, completion requests and run results.
"""

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
    ToolDefinition,
    ToolErrorKind,
    ToolExecutionResult,
    ToolResult,
    ToolTraceEntry,
    Usage,
)

__all__ = [
    "CompletionRequest",
    "CompletionResponse",
    "ExecutionContext",
    "Message",
    "Role",
    "RunOutcome",
    "RunResult",
    "StopReason",
    "TokenPricing",
    "ToolCall",
    "ToolDefinition",
    "ToolErrorKind",
    "ToolExecutionResult",
    "ToolResult",
    "ToolTraceEntry",
    "Usage",
]
