"""
Chat-completions wire format shared by OpenAI-compatible clients.

Both the OpenAI SDK client and the OpenRouter HTTP client speak this format,
so request building and response parsing live here once.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from llm_agent.clients.base import CompletionError, ErrorType, classify_error
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

logger = logging.getLogger(__name__)

_FINISH_REASONS = {
    "stop": StopReason.END_TURN,
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "length": StopReason.MAX_TOKENS,
}


def _encode_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, default=str)


def to_chat_messages(request: CompletionRequest) -> list[dict[str, Any]]:
    """Convert a request's system prompt and messages to chat-completions messages."""
    messages: list[dict[str, Any]] = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})

    for message in request.messages:
        messages.extend(_convert_message(message))
    return messages


def _convert_message(message: Message) -> list[dict[str, Any]]:
    if message.role is Role.TOOL:
        # One tool message per result, matched by tool_call_id
        return [
            {
                "role": "tool",
                "tool_call_id": result.tool_call_id,
                "content": _encode_content(result.content),
            }
            for result in message.tool_results or []
        ]

    if message.role is Role.ASSISTANT and message.tool_calls:
        return [
            {
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": _encode_content(call.input),
                        },
                    }
                    for call in message.tool_calls
                ],
            }
        ]

    return [{"role": message.role.value, "content": message.content}]


def to_chat_tools(tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
    """Convert tool definitions to chat-completions function tools."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": dict(tool.input_schema),
            },
        }
        for tool in tools
    ]


def _decode_arguments(arguments: Any) -> Any:
    """Decode a JSON arguments string; undecodable strings are passed through."""
    if not isinstance(arguments, str):
        return arguments if arguments is not None else {}
    if not arguments.strip():
        return {}
    try:
        return json.loads(arguments)
    except json.JSONDecodeError:
        logger.debug("Tool call arguments are not valid JSON; passing through as-is")
        return arguments


def _parse_usage(usage: dict[str, Any] | None) -> Usage:
    if not usage:
        return Usage()
    prompt_tokens = usage.get("prompt_tokens") or 0
    details = usage.get("prompt_tokens_details") or {}
    cached = details.get("cached_tokens") or 0
    return Usage(
        input_tokens=max(prompt_tokens - cached, 0),
        output_tokens=usage.get("completion_tokens") or 0,
        cache_read_tokens=cached,
    )


def parse_chat_completion(data: dict[str, Any]) -> CompletionResponse:
    """Parse a chat-completions response body into a CompletionResponse.

    Raises:
        CompletionError: If the body carries an error object or no choices.
    """
    error = data.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        message = message or "Unknown backend error"
        raise CompletionError(message, classify_error(message))

    choices = data.get("choices") or []
    if not choices:
        raise CompletionError("Backend returned no choices", ErrorType.UNKNOWN)

    choice = choices[0]
    message = choice.get("message") or {}
    finish_reason = choice.get("finish_reason")

    tool_calls = [
        ToolCall(
            id=raw_call.get("id") or f"call_{index}",
            name=(raw_call.get("function") or {}).get("name", ""),
            input=_decode_arguments((raw_call.get("function") or {}).get("arguments")),
        )
        for index, raw_call in enumerate(message.get("tool_calls") or [])
    ]

    stop_reason = _FINISH_REASONS.get(finish_reason or "", StopReason.OTHER)
    if tool_calls and stop_reason is not StopReason.TOOL_USE:
        # Some routed models report "stop" alongside tool calls
        stop_reason = StopReason.TOOL_USE

    return CompletionResponse(
        success=True,
        content=message.get("content"),
        stop_reason=stop_reason,
        tool_calls=tool_calls or None,
        usage=_parse_usage(data.get("usage")),
        model=data.get("model"),
        raw=data,
    )


__all__ = ["parse_chat_completion", "to_chat_messages", "to_chat_tools"]
