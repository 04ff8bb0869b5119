"""
Tool registry.

Owns a set of tool providers and their enabled flags, aggregates the tools of
enabled providers, and routes execution to the owning provider.

The provider table is copy-on-write: registration and enable/disable swap in a
new immutable mapping under a lock, while ``get_enabled_tools`` and
``execute_tool`` read whatever mapping is current without locking. A run that
snapshotted tools before a disable may still see the old table for calls it
has already started.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any

from llm_agent.protocol.types import (
    ExecutionContext,
    ToolDefinition,
    ToolErrorKind,
    ToolExecutionResult,
)
from llm_agent.tools.base import (
    DuplicateProviderError,
    ProviderNotFoundError,
    RepeatedToolNameError,
    ToolNameConflictError,
    ToolNotSupportedError,
    ToolProvider,
    check_tool_schema,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    provider: ToolProvider
    enabled: bool


def _key(name: str) -> str:
    return name.strip().casefold()


class ToolRegistry:
    """Registry of tool providers with per-provider enabled state.

    Instances are independent; pass one explicitly to each run.
    """

    def __init__(self, providers: Iterable[ToolProvider] | None = None) -> None:
        self._lock = threading.Lock()
        self._entries: Mapping[str, _Entry] = MappingProxyType({})
        for provider in providers or ():
            self.register_provider(provider)

    def register_provider(self, provider: ToolProvider, enabled: bool = True) -> None:
        """Add a provider.

        Raises:
            DuplicateProviderError: A provider with the same name exists.
            ToolNameConflictError: ``enabled`` is true and a tool name clashes
                with an enabled provider.
            RepeatedToolNameError: The provider declares a tool name twice.
            InvalidToolSchemaError: A tool input schema is malformed.
        """
        name = getattr(provider, "name", "") or ""
        if not name.strip():
            raise ValueError("Provider name must be a non-empty string.")

        tools = provider.get_tools()
        seen: set[str] = set()
        for tool in tools:
            check_tool_schema(tool)
            if tool.name.casefold() in seen:
                raise RepeatedToolNameError(tool.name, name)
            seen.add(tool.name.casefold())

        key = _key(name)
        with self._lock:
            entries = self._entries
            if key in entries:
                raise DuplicateProviderError(f"Provider '{name}' is already registered")
            if enabled:
                self._check_conflicts(provider, entries)
            updated = dict(entries)
            updated[key] = _Entry(provider=provider, enabled=enabled)
            self._entries = MappingProxyType(updated)

        logger.info(
            "Registered tool provider %s with %d tool(s) (enabled=%s)", name, len(tools), enabled
        )

    def enable_provider(self, name: str) -> None:
        """Enable a provider by name.

        Raises:
            ProviderNotFoundError: No provider with that name is registered.
            ToolNameConflictError: Enabling would expose a duplicate tool name.
        """
        key = _key(name)
        with self._lock:
            entries = self._entries
            entry = entries.get(key)
            if entry is None:
                raise ProviderNotFoundError(name)
            if entry.enabled:
                return
            self._check_conflicts(entry.provider, entries)
            self._swap(entries, key, replace(entry, enabled=True))
        logger.info("Enabled tool provider %s", name)

    def disable_provider(self, name: str) -> None:
        """Disable a provider by name.

        Raises:
            ProviderNotFoundError: No provider with that name is registered.
        """
        key = _key(name)
        with self._lock:
            entries = self._entries
            entry = entries.get(key)
            if entry is None:
                raise ProviderNotFoundError(name)
            if not entry.enabled:
                return
            self._swap(entries, key, replace(entry, enabled=False))
        logger.info("Disabled tool provider %s", name)

    def _swap(self, entries: Mapping[str, _Entry], key: str, entry: _Entry) -> None:
        updated = dict(entries)
        updated[key] = entry
        self._entries = MappingProxyType(updated)

    @staticmethod
    def _check_conflicts(provider: ToolProvider, entries: Mapping[str, _Entry]) -> None:
        own = {tool.name.casefold(): tool.name for tool in provider.get_tools()}
        for entry in entries.values():
            if not entry.enabled or entry.provider is provider:
                continue
            for tool in entry.provider.get_tools():
                if tool.name.casefold() in own:
                    raise ToolNameConflictError(tool.name, [entry.provider.name, provider.name])

    def get_enabled_tools(self) -> list[ToolDefinition]:
        """Return the tools of every enabled provider.

        Raises:
            ToolNameConflictError: Two enabled providers expose the same tool name.
            Exception: Whatever an enabled provider's ``get_tools`` raises.
        """
        owners: dict[str, str] = {}
        tools: list[ToolDefinition] = []
        for entry in self._entries.values():
            if not entry.enabled:
                continue
            for tool in entry.provider.get_tools():
                folded = tool.name.casefold()
                if folded in owners:
                    raise ToolNameConflictError(tool.name, [owners[folded], entry.provider.name])
                owners[folded] = entry.provider.name
                tools.append(tool)
        return tools

    def _find_owner(self, tool_name: str) -> tuple[ToolProvider, ToolDefinition] | None:
        """Return the enabled provider owning ``tool_name`` and its definition.

        A provider whose listing raises is skipped so it cannot hide tools of
        other providers; if nothing else owns the tool, its error is re-raised.
        """
        listing_error: Exception | None = None
        for entry in self._entries.values():
            if not entry.enabled:
                continue
            try:
                tool = entry.provider.get_tool(tool_name)
            except Exception as e:
                logger.warning("Provider %s failed to list its tools: %s", entry.provider.name, e)
                listing_error = e
                continue
            if tool is not None:
                return entry.provider, tool
        if listing_error is not None:
            raise listing_error
        return None

    async def execute_tool(
        self,
        tool_name: str,
        tool_input: Any,
        context: ExecutionContext,
    ) -> ToolExecutionResult:
        """Route a tool call to the enabled provider that owns it.

        Never raises for tool failures: an unknown or disabled tool gives a
        ``not_supported`` result without running provider code, and an
        exception from provider code, including its tool listing, gives an
        ``exception`` result. Only ``asyncio.CancelledError`` propagates.
        """
        provider_name = None
        try:
            owner = self._find_owner(tool_name)
            if owner is None:
                logger.warning("Tool %s not found in any enabled provider", tool_name)
                return ToolExecutionResult.not_supported(tool_name)

            provider, tool = owner
            provider_name = provider.name
            return await provider.execute_tool(tool.name, tool_input, context)
        except asyncio.CancelledError:
            raise
        except ToolNotSupportedError:
            logger.error("Provider %s refused its own tool %s", provider_name, tool_name)
            return ToolExecutionResult.not_supported(tool_name)
        except Exception as e:
            logger.exception("Tool %s (provider %s) raised", tool_name, provider_name or "unknown")
            return ToolExecutionResult.error(
                f"Tool execution failed: {e}", kind=ToolErrorKind.EXCEPTION
            )

    def provider_names(self) -> list[str]:
        """Return registered provider names in registration order."""
        return [entry.provider.name for entry in self._entries.values()]

    def get_provider(self, name: str) -> ToolProvider:
        entry = self._entries.get(_key(name))
        if entry is None:
            raise ProviderNotFoundError(name)
        return entry.provider

    def is_registered(self, name: str) -> bool:
        return _key(name) in self._entries

    def is_enabled(self, name: str) -> bool:
        entry = self._entries.get(_key(name))
        return entry is not None and entry.enabled

    def describe(self) -> list[dict[str, Any]]:
        """Summarize providers and their tools for display."""
        return [
            {
                "name": entry.provider.name,
                "description": entry.provider.description,
                "enabled": entry.enabled,
                "tools": [tool.name for tool in entry.provider.get_tools()],
            }
            for entry in self._entries.values()
        ]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_registered(name)


__all__ = ["ToolRegistry"]
