"""
Agent - Main facade class for llm-agent.

Provides a simple interface for running tool-using conversations.
"""

from __future__ import annotations

import logging
from typing import Any

from llm_agent.clients.base import CompletionClient, DoctorResult
from llm_agent.clients.registry import get_client
from llm_agent.config.settings import AgentSettings, get_settings
from llm_agent.engine.runner import AgentRunner
from llm_agent.protocol.types import ExecutionContext, RunResult
from llm_agent.tools.base import ProviderNotFoundError
from llm_agent.tools.declarative import register_tool_providers
from llm_agent.tools.documentation import DocumentationToolProvider
from llm_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def build_registry(settings: AgentSettings) -> ToolRegistry:
    """Build a tool registry from settings.

    Registers the documentation provider when ``docs_path`` is set and any
    providers declared in ``tools_config``, then disables the providers named
    in ``disabled_providers``.
    """
    registry = ToolRegistry()
    if settings.docs_path is not None:
        registry.register_provider(
            DocumentationToolProvider(settings.docs_path, base_url=settings.base_url)
        )
    if settings.tools_config is not None:
        register_tool_providers(registry, settings.tools_config)

    for name in settings.disabled_providers:
        try:
            registry.disable_provider(name)
        except ProviderNotFoundError:
            logger.warning("Cannot disable unknown tool provider '%s'", name)
    return registry


class Agent:
    """Tool-using LLM agent.

    Wires a completion client, a tool registry and settings into an
    :class:`~llm_agent.engine.runner.AgentRunner`.

    Example:
        ```python
        agent = Agent(client="anthropic", registry=my_registry)
        result = await agent.run(
            "How do I set a reminder?",
            context=ExecutionContext(user_id="42", scope_id="guild-1"),
        )
        print(result.text)
        ```
    """

    def __init__(
        self,
        client: CompletionClient | str | None = None,
        registry: ToolRegistry | None = None,
        settings: AgentSettings | None = None,
        system_prompt: str | None = None,
    ) -> None:
        """Initialize the Agent.

        Args:
            client: A client instance or registered client name. Defaults to
                ``settings.client``.
            registry: Tool registry to use. Defaults to one built from settings.
            settings: Settings override. Defaults to :func:`get_settings`.
            system_prompt: System prompt override.
        """
        self.settings = settings or get_settings()
        if client is None or isinstance(client, str):
            client = get_client(
                client or self.settings.client,
                default_model=self.settings.model,
                timeout=self.settings.request_timeout,
                retry_policy=self.settings.retry_policy(),
            )
        self._client = client
        self._registry = registry if registry is not None else build_registry(self.settings)
        self._system_prompt = system_prompt
        self._runner = AgentRunner(client)

    @property
    def client(self) -> CompletionClient:
        return self._client

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def run(
        self,
        message: str,
        context: ExecutionContext | None = None,
        **overrides: Any,
    ) -> RunResult:
        """Run the agent for one user message.

        Args:
            message: The user's message.
            context: Caller environment handed to tools.
            **overrides: RunConfiguration fields overriding the settings.

        Returns:
            RunResult for the run.
        """
        overrides.setdefault("system_prompt", self._system_prompt or self.settings.system_prompt)
        config = self.settings.run_configuration(
            tool_registry=self._registry,
            execution_context=context,
            **overrides,
        )
        return await self._runner.run(message, config)

    async def doctor(self) -> DoctorResult:
        """Check the completion backend's health."""
        return await self._client.doctor()
