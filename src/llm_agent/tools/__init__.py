"""Tool providers, the tool registry and declarative tool loading."""

from .base import (
    DuplicateProviderError,
    FunctionToolProvider,
    InvalidToolSchemaError,
    ProviderNotFoundError,
    RepeatedToolNameError,
    ToolConfigurationError,
    ToolError,
    ToolNameConflictError,
    ToolNotSupportedError,
    ToolParameter,
    ToolProvider,
    ToolRegistryError,
    build_input_schema,
)
from .declarative import DeclaredProvider, load_tool_providers, register_tool_providers
from .documentation import DocumentationToolProvider
from .registry import ToolRegistry

__all__ = [
    "DeclaredProvider",
    "DocumentationToolProvider",
    "DuplicateProviderError",
    "FunctionToolProvider",
    "InvalidToolSchemaError",
    "ProviderNotFoundError",
    "RepeatedToolNameError",
    "ToolConfigurationError",
    "ToolError",
    "ToolNameConflictError",
    "ToolNotSupportedError",
    "ToolParameter",
    "ToolProvider",
    "ToolRegistry",
    "ToolRegistryError",
    "build_input_schema",
    "load_tool_providers",
    "register_tool_providers",
]
