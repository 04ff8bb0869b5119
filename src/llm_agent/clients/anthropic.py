"""
Anthropic completion client.

Direct integration with the Anthropic Messages API for Claude models,
including tool use and prompt caching.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import time
from collections.abc import Sequence
from typing import Any, ClassVar

from llm_agent.clients.base import (
    ClientCapabilities,
    CompletionClient,
    CompletionError,
    DoctorResult,
    ErrorType,
)
from llm_agent.protocol.types import (
    CompletionRequest,
    CompletionResponse,
    Message,
    Role,
    StopReason,
    ToolCall,
    ToolDefinition,
    Usage,
)

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DOCTOR_MODEL = "claude-3-haiku-20240307"

_EPHEMERAL = {"type": "ephemeral"}

_STOP_REASONS = {
    "end_turn": StopReason.END_TURN,
    "stop_sequence": StopReason.END_TURN,
    "tool_use": StopReason.TOOL_USE,
    "max_tokens": StopReason.MAX_TOKENS,
}

logger = logging.getLogger(__name__)


def _tool_result_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, default=str)


def build_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert conversation messages to Anthropic message params.

    Raises:
        ValueError: If a system-role message appears in the conversation.
    """
    result: list[dict[str, Any]] = []
    for message in messages:
        if message.role is Role.SYSTEM:
            raise ValueError(
                "System messages are not allowed in the conversation; use system_prompt."
            )

        if message.role is Role.TOOL:
            result.append(
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": tool_result.tool_call_id,
                            "content": _tool_result_content(tool_result.content),
                            "is_error": tool_result.is_error,
                        }
                        for tool_result in message.tool_results or []
                    ],
                }
            )
        elif message.role is Role.ASSISTANT and message.tool_calls:
            blocks: list[dict[str, Any]] = []
            if message.content:
                blocks.append({"type": "text", "text": message.content})
            for call in message.tool_calls:
                blocks.append(
                    {"type": "tool_use", "id": call.id, "name": call.name, "input": call.input}
                )
            result.append({"role": "assistant", "content": blocks})
        else:
            result.append({"role": message.role.value, "content": message.content})
    return result


def build_tools(tools: Sequence[ToolDefinition], cache: bool) -> list[dict[str, Any]]:
    """Convert tool definitions to Anthropic tool params.

    With caching on, the last definition carries the cache breakpoint so the
    whole tool block is cached together with the system prompt.
    """
    params: list[dict[str, Any]] = [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": dict(tool.input_schema),
        }
        for tool in tools
    ]
    if cache and params:
        params[-1]["cache_control"] = dict(_EPHEMERAL)
    return params


class AnthropicClient(CompletionClient):
    """Completion client for Claude models on the Anthropic Messages API.

    The key comes from ``ANTHROPIC_API_KEY`` unless passed in. This is the
    only built-in client that places cache breakpoints, on the system
    prompt and on the last tool definition. Needs the ``anthropic`` extra.
    """

    name: ClassVar[str] = "anthropic"
    capabilities: ClassVar[ClientCapabilities] = ClientCapabilities(
        tool_use=True,
        prompt_caching=True,
        max_tokens=8192,
    )

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str | None = None,
        timeout: float | None = 30.0,
        retry_policy: Any | None = None,
    ) -> None:
        super().__init__(timeout=timeout, retry_policy=retry_policy)
        self._key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self._default_model = default_model or DEFAULT_MODEL
        self._client: Any = None

    def _sdk(self) -> Any:
        if self._client is not None:
            return self._client
        if not self._key:
            raise CompletionError(
                "No Anthropic credentials: set ANTHROPIC_API_KEY or pass api_key",
                ErrorType.AUTH,
            )
        try:
            from anthropic import AsyncAnthropic
        except ImportError as e:
            raise ImportError(
                "AnthropicClient needs the 'anthropic' package: pip install llm-agent[anthropic]"
            ) from e

        # Retries are driven by RetryPolicy, not the SDK.
        self._client = AsyncAnthropic(api_key=self._key, max_retries=0)
        return self._client

    def build_params(self, request: CompletionRequest) -> dict[str, Any]:
        """Keyword arguments for ``messages.create``."""
        cache = request.enable_prompt_caching and self.supports_prompt_caching
        params: dict[str, Any] = {
            "model": request.model or self._default_model,
            "messages": build_messages(request.messages),
            "max_tokens": request.max_tokens,
        }
        if request.system_prompt and cache:
            params["system"] = [
                {"type": "text", "text": request.system_prompt, "cache_control": dict(_EPHEMERAL)}
            ]
        elif request.system_prompt:
            params["system"] = request.system_prompt
        if request.tools:
            params["tools"] = build_tools(request.tools, cache)
        if request.temperature is not None:
            params["temperature"] = request.temperature
        return params

    async def _complete_once(self, request: CompletionRequest) -> CompletionResponse:
        sdk = self._sdk()
        params = self.build_params(request)
        logger.debug(
            "messages.create model=%s messages=%d tools=%d",
            params["model"],
            len(params["messages"]),
            len(params.get("tools", ())),
        )
        message = await sdk.messages.create(**params)
        return self._to_response(message)

    def _to_response(self, message: Any) -> CompletionResponse:
        text: list[str] = []
        calls: list[ToolCall] = []
        for block in message.content:
            kind = getattr(block, "type", None)
            if kind == "text":
                text.append(block.text)
            elif kind == "tool_use":
                calls.append(ToolCall(id=block.id, name=block.name, input=block.input))

        stop_reason = _STOP_REASONS.get(message.stop_reason or "", StopReason.OTHER)
        if calls and stop_reason is not StopReason.TOOL_USE:
            logger.debug("Dropping tool_use blocks on stop reason %s", message.stop_reason)
            calls = []

        return CompletionResponse(
            success=True,
            content="".join(text) or None,
            stop_reason=stop_reason,
            tool_calls=calls or None,
            usage=_usage(getattr(message, "usage", None)),
            model=getattr(message, "model", None),
            raw=message,
        )

    async def doctor(self) -> DoctorResult:
        """Send a one-token request to a small model."""
        if not self._key:
            return DoctorResult(
                ok=False,
                message="ANTHROPIC_API_KEY is not set",
                details={"error": "missing_api_key"},
            )
        try:
            sdk = self._sdk()
        except ImportError:
            return DoctorResult(
                ok=False,
                message="anthropic package missing; pip install llm-agent[anthropic]",
                details={"error": "missing_package"},
            )

        started = time.perf_counter()
        try:
            await sdk.messages.create(
                model=DOCTOR_MODEL,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
        except Exception as exc:
            return DoctorResult(
                ok=False,
                message=f"Anthropic request failed: {exc}",
                latency_ms=(time.perf_counter() - started) * 1000,
                details={"error": str(exc)},
            )
        return DoctorResult(
            ok=True,
            message="Anthropic reachable",
            latency_ms=(time.perf_counter() - started) * 1000,
        )


def _usage(raw: Any) -> Usage:
    if raw is None:
        return Usage()
    return Usage(
        input_tokens=raw.input_tokens or 0,
        output_tokens=raw.output_tokens or 0,
        cache_read_tokens=getattr(raw, "cache_read_input_tokens", None) or 0,
        cache_write_tokens=getattr(raw, "cache_creation_input_tokens", None) or 0,
    )


def _register() -> None:
    from llm_agent.clients.registry import get_registry

    with contextlib.suppress(ValueError):
        get_registry().register_client(AnthropicClient.name, AnthropicClient)


_register()
