"""
Tool provider contract and helpers.

A tool provider is a named bundle of related tools that share one
enable/disable toggle in the :class:`~llm_agent.tools.registry.ToolRegistry`.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Union

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from llm_agent.protocol.types import ExecutionContext, ToolDefinition, ToolExecutionResult

logger = logging.getLogger(__name__)


class ToolRegistryError(Exception):
    """Base class for registry misconfiguration errors."""


class DuplicateProviderError(ToolRegistryError):
    """A provider with the same name is already registered."""


class ToolNameConflictError(ToolRegistryError):
    """Two enabled providers expose the same tool name."""

    def __init__(self, tool_name: str, providers: Iterable[str]) -> None:
        self.tool_name = tool_name
        self.providers = tuple(providers)
        super().__init__(
            f"Tool '{tool_name}' is exposed by more than one enabled provider: "
            f"{', '.join(self.providers)}"
        )


class RepeatedToolNameError(ToolNameConflictError):
    """A single provider declares the same tool name twice."""

    def __init__(self, tool_name: str, provider: str) -> None:
        ToolRegistryError.__init__(
            self, f"Provider '{provider}' declares tool '{tool_name}' more than once"
        )
        self.tool_name = tool_name
        self.providers = (provider,)


class ProviderNotFoundError(ToolRegistryError):
    """No provider with the given name is registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Provider '{name}' not found in registry")


class InvalidToolSchemaError(ToolRegistryError):
    """A tool declares an input schema that is not valid JSON Schema."""


class ToolNotSupportedError(Exception):
    """Raised by a provider asked to execute a tool it does not own.

    This is a programming error, distinct from a tool-level failure.
    """

    def __init__(self, tool_name: str, provider_name: str | None = None) -> None:
        self.tool_name = tool_name
        self.provider_name = provider_name
        where = f" by provider '{provider_name}'" if provider_name else ""
        super().__init__(f"Tool '{tool_name}' is not supported{where}")


class ToolError(Exception):
    """Raised by tool handlers to report an expected failure to the model."""


class ToolConfigurationError(Exception):
    """A declarative tool configuration is malformed."""


class ToolProvider(ABC):
    """Abstract base class for tool providers.

    Implementations should:
    - set :attr:`name` to a stable identifier, unique within a registry
    - set :attr:`description`
    - implement :meth:`get_tools` and async :meth:`execute_tool`

    ``execute_tool`` reports expected failures as ``ToolExecutionResult.error``
    and raises :class:`ToolNotSupportedError` for a name it does not own.
    Providers may be called concurrently from many runs and must not block
    indefinitely; they are cancelled through normal asyncio cancellation.
    """

    name: str
    description: str = ""

    @abstractmethod
    def get_tools(self) -> list[ToolDefinition]:
        """Return the tools this provider exposes."""

    @abstractmethod
    async def execute_tool(
        self,
        tool_name: str,
        tool_input: Any,
        context: ExecutionContext,
    ) -> ToolExecutionResult:
        """Execute one of this provider's tools."""

    def get_tool(self, tool_name: str) -> ToolDefinition | None:
        """Return the definition for ``tool_name`` (case-insensitive) or None."""
        wanted = tool_name.casefold()
        for tool in self.get_tools():
            if tool.name.casefold() == wanted:
                return tool
        return None

    def has_tool(self, tool_name: str) -> bool:
        return self.get_tool(tool_name) is not None

    def validate_input(self, tool_name: str, tool_input: Any) -> str | None:
        """Validate ``tool_input`` against the tool's schema.

        Returns:
            None if the input is valid, otherwise a short error message.
        """
        tool = self.get_tool(tool_name)
        if tool is None:
            raise ToolNotSupportedError(tool_name, self.name)
        validator = Draft7Validator(dict(tool.input_schema))
        errors = sorted(validator.iter_errors(tool_input), key=lambda e: list(e.path))
        if not errors:
            return None
        first = errors[0]
        location = ".".join(str(p) for p in first.path)
        return f"{location}: {first.message}" if location else first.message


def check_tool_schema(tool: ToolDefinition) -> None:
    """Raise :class:`InvalidToolSchemaError` if the tool's input schema is malformed."""
    try:
        Draft7Validator.check_schema(dict(tool.input_schema))
    except SchemaError as e:
        raise InvalidToolSchemaError(
            f"Tool '{tool.name}' has an invalid input schema: {e.message}"
        ) from e


@dataclass
class ToolParameter:
    """Parameter definition for a tool."""

    name: str
    type: str = "string"  # "string", "integer", "number", "boolean", "array", "object"
    required: bool = True
    default: Any = None
    description: str = ""
    enum: list[Any] | None = None
    items: dict[str, Any] | None = None

    def to_json_schema(self) -> dict[str, Any]:
        """Convert to JSON Schema format."""
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.default is not None:
            schema["default"] = self.default
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.items is not None:
            schema["items"] = dict(self.items)
        return schema


def build_input_schema(parameters: Iterable[ToolParameter]) -> dict[str, Any]:
    """Build an object input schema from a parameter list."""
    properties: dict[str, Any] = {}
    required: list[str] = []

    for param in parameters:
        properties[param.name] = param.to_json_schema()
        if param.required:
            required.append(param.name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


ToolHandler = Callable[
    [Any, ExecutionContext],
    Union[Any, Awaitable[Any]],
]


@dataclass
class FunctionTool:
    """A tool definition bound to a handler callable."""

    definition: ToolDefinition
    handler: ToolHandler
    validate: bool = field(default=True)


class FunctionToolProvider(ToolProvider):
    """Provider assembled from plain handler callables.

    Handlers are called as ``handler(tool_input, context)`` and may be sync or
    async. A return value that is already a :class:`ToolExecutionResult` is
    passed through; anything else becomes the success payload. Raise
    :class:`ToolError` to report a failure the model should see.

    Example::

        roles = FunctionToolProvider("roles", "Guild role lookups")

        @roles.tool(parameters=[ToolParameter("role_name", "string")])
        async def lookup_role(tool_input, context):
            ...
    """

    def __init__(self, name: str, description: str = "") -> None:
        if not name or not name.strip():
            raise ValueError("Provider name must be a non-empty string.")
        self.name = name.strip()
        self.description = description
        self._tools: dict[str, FunctionTool] = {}

    def add_tool(
        self,
        name: str,
        handler: ToolHandler,
        description: str = "",
        parameters: Iterable[ToolParameter] | None = None,
        input_schema: dict[str, Any] | None = None,
        validate: bool = True,
    ) -> ToolDefinition:
        """Register ``handler`` as tool ``name`` and return its definition."""
        if parameters is not None and input_schema is not None:
            raise ValueError("Pass either parameters or input_schema, not both.")
        key = name.casefold()
        if key in self._tools:
            raise ValueError(f"Tool '{name}' is already defined in provider '{self.name}'.")

        schema = input_schema if input_schema is not None else build_input_schema(parameters or [])
        definition = ToolDefinition(name=name, description=description, input_schema=schema)
        check_tool_schema(definition)
        self._tools[key] = FunctionTool(definition=definition, handler=handler, validate=validate)
        logger.debug("Registered tool %s on provider %s", name, self.name)
        return definition

    def tool(
        self,
        name: str | None = None,
        description: str | None = None,
        parameters: Iterable[ToolParameter] | None = None,
        input_schema: dict[str, Any] | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator form of :meth:`add_tool`.

        The tool name defaults to the function name and the description to
        the first line of its docstring.
        """

        def decorator(func: ToolHandler) -> ToolHandler:
            doc = inspect.getdoc(func) or ""
            self.add_tool(
                name or func.__name__,
                func,
                description=description if description is not None else doc.split("\n")[0],
                parameters=parameters,
                input_schema=input_schema,
            )
            return func

        return decorator

    def get_tools(self) -> list[ToolDefinition]:
        return [entry.definition for entry in self._tools.values()]

    async def execute_tool(
        self,
        tool_name: str,
        tool_input: Any,
        context: ExecutionContext,
    ) -> ToolExecutionResult:
        entry = self._tools.get(tool_name.casefold())
        if entry is None:
            raise ToolNotSupportedError(tool_name, self.name)

        if entry.validate:
            problem = self.validate_input(tool_name, tool_input)
            if problem is not None:
                return ToolExecutionResult.error(
                    f"Invalid input for tool '{entry.definition.name}': {problem}"
                )

        try:
            result = entry.handler(tool_input, context)
            if inspect.isawaitable(result):
                result = await result
        except ToolError as e:
            return ToolExecutionResult.error(str(e))

        if isinstance(result, ToolExecutionResult):
            return result
        return ToolExecutionResult.ok(result)


__all__ = [
    "DuplicateProviderError",
    "FunctionTool",
    "FunctionToolProvider",
    "InvalidToolSchemaError",
    "ProviderNotFoundError",
    "ToolConfigurationError",
    "ToolError",
    "ToolHandler",
    "ToolNameConflictError",
    "ToolNotSupportedError",
    "ToolParameter",
    "ToolProvider",
    "ToolRegistryError",
    "build_input_schema",
    "check_tool_schema",
]
