"""
OpenAI completion client.

Talks to the Chat Completions API through the official ``openai`` SDK.
Install with ``pip install llm-agent[openai]``.
"""

from __future__ import annotations

import contextlib
import logging
import os
import time
from typing import Any, ClassVar

from llm_agent.clients.base import (
    ClientCapabilities,
    CompletionClient,
    CompletionError,
    DoctorResult,
    ErrorType,
)
from llm_agent.clients.openai_format import (
    parse_chat_completion,
    to_chat_messages,
    to_chat_tools,
)
from llm_agent.protocol.types import CompletionRequest, CompletionResponse

DEFAULT_MODEL = "gpt-4o"

# Reasoning model families reject max_tokens.
COMPLETION_TOKEN_FAMILIES = ("gpt-5", "o1", "o3", "o4")

logger = logging.getLogger(__name__)


def _token_limit_key(model: str) -> str:
    if model.startswith(COMPLETION_TOKEN_FAMILIES):
        return "max_completion_tokens"
    return "max_tokens"


class OpenAIClient(CompletionClient):
    """Completion client for OpenAI chat models.

    The key comes from ``OPENAI_API_KEY`` unless passed in. OpenAI caches
    long prompt prefixes on its own, so there is nothing to mark up and
    ``prompt_caching`` stays off.
    """

    name: ClassVar[str] = "openai"
    capabilities: ClassVar[ClientCapabilities] = ClientCapabilities(
        tool_use=True,
        prompt_caching=False,
        max_tokens=16384,
    )

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str | None = None,
        timeout: float | None = 30.0,
        retry_policy: Any | None = None,
    ) -> None:
        super().__init__(timeout=timeout, retry_policy=retry_policy)
        self._key = api_key or os.environ.get("OPENAI_API_KEY")
        self._default_model = default_model or DEFAULT_MODEL
        self._client: Any = None

    def _sdk(self) -> Any:
        if self._client is not None:
            return self._client
        if not self._key:
            raise CompletionError(
                "No OpenAI credentials: set OPENAI_API_KEY or pass api_key",
                ErrorType.AUTH,
            )
        try:
            from openai import AsyncOpenAI
        except ImportError as e:
            raise ImportError(
                "OpenAIClient needs the 'openai' package: pip install llm-agent[openai]"
            ) from e

        # Retries are driven by RetryPolicy, not the SDK.
        self._client = AsyncOpenAI(api_key=self._key, max_retries=0)
        return self._client

    def build_params(self, request: CompletionRequest) -> dict[str, Any]:
        """Keyword arguments for ``chat.completions.create``."""
        model = request.model or self._default_model
        params: dict[str, Any] = {
            "model": model,
            "messages": to_chat_messages(request),
            _token_limit_key(model): request.max_tokens,
        }
        if request.tools:
            params["tools"] = to_chat_tools(request.tools)
        if request.temperature is not None:
            params["temperature"] = request.temperature
        return params

    async def _complete_once(self, request: CompletionRequest) -> CompletionResponse:
        sdk = self._sdk()
        params = self.build_params(request)
        logger.debug(
            "chat.completions.create model=%s messages=%d tools=%d",
            params["model"],
            len(params["messages"]),
            len(params.get("tools", ())),
        )
        completion = await sdk.chat.completions.create(**params)
        return parse_chat_completion(completion.model_dump())

    async def doctor(self) -> DoctorResult:
        """Verify credentials by listing models."""
        if not self._key:
            return DoctorResult(
                ok=False,
                message="OPENAI_API_KEY is not set",
                details={"error": "missing_api_key"},
            )
        try:
            sdk = self._sdk()
        except ImportError:
            return DoctorResult(
                ok=False,
                message="openai package missing; pip install llm-agent[openai]",
                details={"error": "missing_package"},
            )

        started = time.perf_counter()
        try:
            await sdk.models.list()
        except Exception as exc:
            return DoctorResult(
                ok=False,
                message=f"OpenAI request failed: {exc}",
                latency_ms=(time.perf_counter() - started) * 1000,
                details={"error": str(exc)},
            )
        return DoctorResult(
            ok=True,
            message="OpenAI reachable",
            latency_ms=(time.perf_counter() - started) * 1000,
        )


def _register() -> None:
    from llm_agent.clients.registry import get_registry

    with contextlib.suppress(ValueError):
        get_registry().register_client(OpenAIClient.name, OpenAIClient)


_register()
