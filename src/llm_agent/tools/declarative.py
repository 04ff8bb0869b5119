"""
Declarative tool providers.

Providers and their tools can be declared in YAML, with each tool bound to a
Python handler by import path. This enables config-only tool wiring.

Example tools.yaml:
```yaml
providers:
  roles:
    description: Guild role lookups
    enabled: true
    tools:
      lookup_role:
        description: Look up a role by name
        handler: my_bot.tools.roles:lookup_role
        parameters:
          role_name:
            type: string
            required: true
          include_members: boolean
```
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from llm_agent.tools.base import (
    FunctionToolProvider,
    InvalidToolSchemaError,
    ToolConfigurationError,
    ToolHandler,
    ToolParameter,
)
from llm_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class DeclaredProvider:
    """A provider loaded from configuration with its default enabled flag."""

    provider: FunctionToolProvider
    enabled: bool = True


def resolve_handler(path: str) -> ToolHandler:
    """Import a handler from ``package.module:function`` (or dotted) notation."""
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ToolConfigurationError(f"Invalid handler path '{path}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ToolConfigurationError(f"Cannot import handler module '{module_name}': {e}") from e

    target: Any = module
    for part in attr.split("."):
        target = getattr(target, part, None)
        if target is None:
            raise ToolConfigurationError(f"Handler '{path}' not found")
    if not callable(target):
        raise ToolConfigurationError(f"Handler '{path}' is not callable")
    return target


def _parse_parameters(tool_name: str, params_config: Any) -> list[ToolParameter]:
    if params_config is None:
        return []
    if not isinstance(params_config, dict):
        raise ToolConfigurationError(f"Tool '{tool_name}': parameters must be a mapping")

    parameters = []
    for param_name, param_config in params_config.items():
        if isinstance(param_config, dict):
            parameters.append(
                ToolParameter(
                    name=param_name,
                    type=param_config.get("type", "string"),
                    required=param_config.get("required", True),
                    default=param_config.get("default"),
                    description=param_config.get("description", ""),
                    enum=param_config.get("enum"),
                    items=param_config.get("items"),
                )
            )
        else:
            # Simple type shorthand: "query: string"
            parameters.append(ToolParameter(name=param_name, type=str(param_config)))
    return parameters


def _parse_provider(name: str, config: Any) -> DeclaredProvider:
    if not isinstance(config, dict):
        raise ToolConfigurationError(f"Provider '{name}' must be a mapping")

    provider = FunctionToolProvider(config.get("name", name), config.get("description", ""))
    tools = config.get("tools") or {}
    if not isinstance(tools, dict):
        raise ToolConfigurationError(f"Provider '{name}': tools must be a mapping")

    for tool_name, tool_config in tools.items():
        if not isinstance(tool_config, dict):
            raise ToolConfigurationError(f"Tool '{tool_name}' must be a mapping")
        handler_path = tool_config.get("handler")
        if not handler_path:
            raise ToolConfigurationError(f"Tool '{tool_name}' has no handler")

        schema = tool_config.get("input_schema")
        try:
            provider.add_tool(
                tool_config.get("name", tool_name),
                resolve_handler(str(handler_path)),
                description=tool_config.get("description", ""),
                parameters=None if schema is not None else _parse_parameters(
                    tool_name, tool_config.get("parameters")
                ),
                input_schema=schema,
            )
        except (ValueError, InvalidToolSchemaError) as e:
            raise ToolConfigurationError(f"Provider '{name}': {e}") from e

    return DeclaredProvider(provider=provider, enabled=bool(config.get("enabled", True)))


def load_tool_providers(path: Path | str) -> list[DeclaredProvider]:
    """Load providers declared in a YAML file.

    Raises:
        ToolConfigurationError: The file is missing, unreadable or malformed.
    """
    config_path = Path(path)
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ToolConfigurationError(f"Failed to load tool config {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ToolConfigurationError(f"Tool config {config_path} must be a mapping")
    providers_data = data.get("providers") or {}
    if not isinstance(providers_data, dict):
        raise ToolConfigurationError("'providers' must be a mapping")

    declared = [_parse_provider(name, config) for name, config in providers_data.items()]
    logger.info("Loaded %d tool provider(s) from %s", len(declared), config_path)
    return declared


def register_tool_providers(registry: ToolRegistry, path: Path | str) -> list[str]:
    """Load providers from ``path`` into ``registry`` and return their names."""
    names = []
    for item in load_tool_providers(path):
        registry.register_provider(item.provider, enabled=item.enabled)
        names.append(item.provider.name)
    return names


__all__ = [
    "DeclaredProvider",
    "load_tool_providers",
    "register_tool_providers",
    "resolve_handler",
]
