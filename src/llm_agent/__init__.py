"""llm-agent package."""

from .agent import Agent, build_registry
from .clients import (
    ClientCapabilities,
    ClientRegistry,
    CompletionClient,
    DoctorResult,
    RetryPolicy,
    get_client,
)
from .config import AgentSettings, get_settings, load_settings
from .engine import AgentRunner, RunConfiguration
from .protocol.types import (
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
    Usage,
)
from .tools import (
    DocumentationToolProvider,
    FunctionToolProvider,
    ToolError,
    ToolParameter,
    ToolProvider,
    ToolRegistry,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Agent",
    "AgentRunner",
    "AgentSettings",
    "ClientCapabilities",
    "ClientRegistry",
    "CompletionClient",
    "CompletionRequest",
    "CompletionResponse",
    "DocumentationToolProvider",
    "DoctorResult",
    "ExecutionContext",
    "FunctionToolProvider",
    "Message",
    "RetryPolicy",
    "Role",
    "RunConfiguration",
    "RunOutcome",
    "RunResult",
    "StopReason",
    "TokenPricing",
    "ToolCall",
    "ToolDefinition",
    "ToolError",
    "ToolErrorKind",
    "ToolExecutionResult",
    "ToolParameter",
    "ToolProvider",
    "ToolRegistry",
    "ToolResult",
    "Usage",
    "build_registry",
    "get_client",
    "get_settings",
    "load_settings",
]
