"""Agent runner for tool-using conversations.

Drives one multi-turn conversation with a completion client:

1) Send the conversation plus the currently enabled tools to the client
2) If the model asks for tools, execute every call through the tool registry
   and append one tool message answering all of them
3) Repeat until the model gives a final answer, the iteration cap is hit,
   or the backend fails

Each run owns its conversation; the tool registry is shared read-mostly across
concurrent runs. Cancelling the task running :meth:`AgentRunner.run` stops the
loop at the next await and re-raises :class:`asyncio.CancelledError`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from llm_agent.protocol.types import (
    CompletionRequest,
    ExecutionContext,
    Message,
    RunOutcome,
    RunResult,
    StopReason,
    TokenPricing,
    ToolCall,
    ToolErrorKind,
    ToolExecutionResult,
    ToolResult,
    ToolTraceEntry,
    Usage,
)
from llm_agent.tools.base import ToolNameConflictError
from llm_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class RunConfiguration(BaseModel):
    """Configuration for one agent run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    system_prompt: str | None = Field(default=None)
    tool_registry: ToolRegistry | None = Field(
        default=None, description="Registry to offer tools from; None disables tool use."
    )
    execution_context: ExecutionContext = Field(
        default_factory=lambda: ExecutionContext(user_id="anonymous"),
        description="Caller environment passed to every tool execution.",
    )
    model: str | None = Field(default=None, description="Model override for the client.")
    max_tokens: int = Field(default=1024, ge=1)
    temperature: float | None = Field(default=0.7, ge=0.0, le=2.0)
    max_tool_call_iterations: int = Field(default=10, ge=1)
    enable_prompt_caching: bool = Field(default=True)
    parallel_tool_calls: bool = Field(
        default=False, description="Run the tool calls of one turn concurrently."
    )
    tool_timeout: float | None = Field(
        default=None, gt=0, description="Seconds allowed per tool call."
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Wall-clock seconds allowed for the whole run."
    )
    pricing: TokenPricing | None = Field(default=None, description="Enables cost estimates.")


@dataclass
class _RunState:
    messages: list[Message]
    started: float = field(default_factory=time.monotonic)
    usage: Usage = field(default_factory=Usage)
    iteration_count: int = 0
    trace: list[ToolTraceEntry] = field(default_factory=list)
    last_text: str | None = None


class AgentRunner:
    """Runs the tool-use loop against a completion client.

    The client is anything with an async ``complete(request)`` returning a
    :class:`~llm_agent.protocol.types.CompletionResponse`, normally a
    :class:`~llm_agent.clients.base.CompletionClient`.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        return self._client

    async def run(self, user_message: str, config: RunConfiguration | None = None) -> RunResult:
        """Run the agent loop for one user message.

        Raises:
            ValueError: If ``user_message`` is blank.
            asyncio.CancelledError: If the calling task is cancelled.
        """
        if not user_message or not user_message.strip():
            raise ValueError("user_message must be a non-empty string")
        config = config or RunConfiguration()
        state = _RunState(messages=[Message.user(user_message)])

        if config.timeout is None:
            return await self._loop(state, config)

        try:
            return await asyncio.wait_for(self._loop(state, config), timeout=config.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Agent run timed out after %ss (%d iteration(s))",
                config.timeout,
                state.iteration_count,
            )
            return self._finish(
                state,
                config,
                RunOutcome.CANCELLED,
                text=state.last_text,
                error_message=f"Run timed out after {config.timeout}s",
            )

    async def _loop(self, state: _RunState, config: RunConfiguration) -> RunResult:
        registry = config.tool_registry
        try:
            while True:
                try:
                    tools = registry.get_enabled_tools() if registry is not None else []
                except ToolNameConflictError as e:
                    logger.error("Tool configuration conflict: %s", e)
                    return self._finish(state, config, RunOutcome.FAILED, error_message=str(e))
                except Exception as e:
                    logger.exception("Listing enabled tools failed")
                    return self._finish(
                        state,
                        config,
                        RunOutcome.FAILED,
                        error_message=f"Failed to list enabled tools: {e}",
                    )

                request = CompletionRequest(
                    system_prompt=config.system_prompt,
                    messages=list(state.messages),
                    tools=tools or None,
                    model=config.model,
                    max_tokens=config.max_tokens,
                    temperature=config.temperature,
                    enable_prompt_caching=config.enable_prompt_caching,
                )

                state.iteration_count += 1
                logger.debug(
                    "Agent iteration %d: %d message(s), %d tool(s)",
                    state.iteration_count,
                    len(request.messages),
                    len(tools),
                )
                response = await self._client.complete(request)
                state.usage = state.usage + response.usage

                if not response.success:
                    logger.error(
                        "Completion failed on iteration %d: %s",
                        state.iteration_count,
                        response.error_message,
                    )
                    return self._finish(
                        state, config, RunOutcome.FAILED, error_message=response.error_message
                    )

                if response.stop_reason is StopReason.END_TURN:
                    text = response.content or ""
                    state.messages.append(Message.assistant(text))
                    return self._finish(state, config, RunOutcome.COMPLETED, text=text)

                if response.stop_reason is StopReason.MAX_TOKENS:
                    text = response.content or ""
                    state.messages.append(Message.assistant(text))
                    logger.warning("Response truncated at max_tokens=%d", config.max_tokens)
                    return self._finish(
                        state, config, RunOutcome.COMPLETED, text=text, truncated=True
                    )

                if response.stop_reason is not StopReason.TOOL_USE:
                    logger.error("Unexpected stop reason: %s", response.stop_reason.value)
                    return self._finish(
                        state,
                        config,
                        RunOutcome.FAILED,
                        error_message=f"Unexpected stop reason: {response.stop_reason.value}",
                    )

                calls = response.tool_calls or []
                if not calls:
                    logger.error("Tool use requested without any tool calls")
                    return self._finish(
                        state,
                        config,
                        RunOutcome.FAILED,
                        error_message="Tool use requested but no tool calls were returned",
                    )
                if registry is None:
                    logger.error("Tool use requested but no tool registry is configured")
                    return self._finish(
                        state,
                        config,
                        RunOutcome.FAILED,
                        error_message="Tool use requested but no tool registry is configured",
                    )

                if response.content:
                    state.last_text = response.content
                state.messages.append(Message.assistant(response.content or "", calls))
                results = await self._execute_tools(calls, registry, config, state)
                state.messages.append(Message.tool(results))

                if state.iteration_count >= config.max_tool_call_iterations:
                    logger.warning(
                        "Exceeded maximum tool call iterations (%d)",
                        config.max_tool_call_iterations,
                    )
                    return self._finish(
                        state,
                        config,
                        RunOutcome.ITERATION_CAP,
                        text=state.last_text,
                        error_message=(
                            "Exceeded maximum tool call iterations "
                            f"({config.max_tool_call_iterations})"
                        ),
                    )
        except asyncio.CancelledError:
            logger.info("Agent run cancelled after %d iteration(s)", state.iteration_count)
            raise

    async def _execute_tools(
        self,
        calls: Sequence[ToolCall],
        registry: ToolRegistry,
        config: RunConfiguration,
        state: _RunState,
    ) -> list[ToolResult]:
        if config.parallel_tool_calls and len(calls) > 1:
            pairs = await asyncio.gather(
                *(self._execute_one(call, registry, config, state.iteration_count) for call in calls)
            )
        else:
            pairs = [
                await self._execute_one(call, registry, config, state.iteration_count)
                for call in calls
            ]

        results = []
        for result, entry in pairs:
            results.append(result)
            state.trace.append(entry)
        return results

    async def _execute_one(
        self,
        call: ToolCall,
        registry: ToolRegistry,
        config: RunConfiguration,
        iteration: int,
    ) -> tuple[ToolResult, ToolTraceEntry]:
        start = time.monotonic()
        context = config.execution_context
        try:
            if config.tool_timeout is None:
                outcome = await registry.execute_tool(call.name, call.input, context)
            else:
                outcome = await asyncio.wait_for(
                    registry.execute_tool(call.name, call.input, context),
                    timeout=config.tool_timeout,
                )
        except asyncio.TimeoutError:
            outcome = ToolExecutionResult.error(
                f"Tool '{call.name}' timed out after {config.tool_timeout}s",
                kind=ToolErrorKind.TIMEOUT,
            )
        duration_ms = int((time.monotonic() - start) * 1000)

        if outcome.success:
            logger.debug("Tool %s succeeded in %d ms", call.name, duration_ms)
        else:
            logger.warning(
                "Tool %s failed (%s): %s", call.name, outcome.error_kind.value, outcome.error_message
            )

        content = outcome.to_content()
        result = ToolResult(tool_call_id=call.id, content=content, is_error=not outcome.success)
        entry = ToolTraceEntry(
            iteration=iteration,
            tool_call_id=call.id,
            name=call.name,
            input=call.input,
            result=content,
            is_error=not outcome.success,
            error_kind=outcome.error_kind,
            duration_ms=duration_ms,
        )
        return result, entry

    def _finish(
        self,
        state: _RunState,
        config: RunConfiguration,
        outcome: RunOutcome,
        text: str | None = None,
        error_message: str | None = None,
        truncated: bool = False,
    ) -> RunResult:
        duration_ms = int((time.monotonic() - state.started) * 1000)
        cost = config.pricing.estimate(state.usage) if config.pricing is not None else None
        logger.info(
            "Agent run %s: %d iteration(s), %d tool call(s), %d tokens in %d ms",
            outcome.value,
            state.iteration_count,
            len(state.trace),
            state.usage.total_tokens,
            duration_ms,
        )
        return RunResult(
            outcome=outcome,
            text=text,
            error_message=error_message,
            usage=state.usage,
            iteration_count=state.iteration_count,
            tool_calls=list(state.trace),
            messages=list(state.messages),
            truncated=truncated,
            estimated_cost_usd=cost,
            duration_ms=duration_ms,
        )


__all__ = ["AgentRunner", "RunConfiguration"]
