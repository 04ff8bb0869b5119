"""
OpenRouter completion client.

OpenRouter fronts many vendors' models with one OpenAI-compatible chat
endpoint, so requests go straight over httpx and reuse the shared chat
format helpers.

Docs: https://openrouter.ai/docs
"""

from __future__ import annotations

import contextlib
import logging
import os
import time
from typing import Any, ClassVar

import httpx

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

DEFAULT_MODEL = "anthropic/claude-3.5-sonnet"
OPENROUTER_URL = "https://openrouter.ai/api/v1"
APP_REFERER = "https://pypi.org/project/llm-agent/"
APP_TITLE = "llm-agent"

logger = logging.getLogger(__name__)


class OpenRouterClient(CompletionClient):
    """Completion client for the OpenRouter chat completions endpoint.

    The key is read from ``OPENROUTER_API_KEY`` when not passed in.
    ``OPENROUTER_BASE_URL`` points the client at another deployment, and
    ``OPENROUTER_HTTP_REFERER`` / ``OPENROUTER_APP_TITLE`` change the
    attribution headers OpenRouter shows on its dashboard.

    An ``http_client`` passed in is borrowed and never closed here.
    """

    name: ClassVar[str] = "openrouter"
    capabilities: ClassVar[ClientCapabilities] = ClientCapabilities(
        tool_use=True,
        prompt_caching=False,
        max_tokens=None,
    )

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = 30.0,
        retry_policy: Any | None = None,
    ) -> None:
        super().__init__(timeout=timeout, retry_policy=retry_policy)
        self._key = api_key or os.environ.get("OPENROUTER_API_KEY")
        self._endpoint = (base_url or os.environ.get("OPENROUTER_BASE_URL") or OPENROUTER_URL).rstrip("/")
        self._default_model = default_model or DEFAULT_MODEL
        self._http = http_client
        self._borrowed = http_client is not None

    def _session(self) -> httpx.AsyncClient:
        if self._http is None:
            # Per-attempt deadlines come from the base class; these only bound a stuck socket.
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=10.0))
        return self._http

    async def aclose(self) -> None:
        """Release the connection pool unless it was supplied by the caller."""
        if self._http is None or self._borrowed:
            return
        await self._http.aclose()
        self._http = None

    def _auth_headers(self) -> dict[str, str]:
        if not self._key:
            raise CompletionError(
                "No OpenRouter credentials: set OPENROUTER_API_KEY or pass api_key",
                ErrorType.AUTH,
            )
        return {
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
            "HTTP-Referer": os.environ.get("OPENROUTER_HTTP_REFERER", APP_REFERER),
            "X-Title": os.environ.get("OPENROUTER_APP_TITLE", APP_TITLE),
        }

    def build_request_body(self, request: CompletionRequest) -> dict[str, Any]:
        """Translate a CompletionRequest into a chat completions payload."""
        body: dict[str, Any] = {
            "model": request.model or self._default_model,
            "messages": to_chat_messages(request),
            "max_tokens": request.max_tokens,
        }
        if request.tools:
            body["tools"] = to_chat_tools(request.tools)
        if request.temperature is not None:
            body["temperature"] = request.temperature
        return body

    async def _complete_once(self, request: CompletionRequest) -> CompletionResponse:
        headers = self._auth_headers()
        body = self.build_request_body(request)
        logger.debug("POST chat/completions model=%s (%d messages)", body["model"], len(body["messages"]))

        reply = await self._session().post(f"{self._endpoint}/chat/completions", headers=headers, json=body)
        reply.raise_for_status()
        return parse_chat_completion(reply.json())

    async def doctor(self) -> DoctorResult:
        """Check the key is set and the model listing endpoint answers."""
        if not self._key:
            return DoctorResult(
                ok=False,
                message="OPENROUTER_API_KEY is not set",
                details={"error": "missing_api_key"},
            )

        started = time.perf_counter()
        try:
            reply = await self._session().get(f"{self._endpoint}/models", headers=self._auth_headers())
        except httpx.HTTPError as exc:
            return DoctorResult(
                ok=False,
                message=f"Could not reach OpenRouter: {exc}",
                latency_ms=_elapsed_ms(started),
                details={"error": str(exc)},
            )

        if reply.is_error:
            return DoctorResult(
                ok=False,
                message=f"OpenRouter answered HTTP {reply.status_code}",
                latency_ms=_elapsed_ms(started),
                details={"status_code": reply.status_code},
            )
        return DoctorResult(
            ok=True,
            message="OpenRouter reachable",
            latency_ms=_elapsed_ms(started),
        )


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _register() -> None:
    from llm_agent.clients.registry import get_registry

    with contextlib.suppress(ValueError):
        get_registry().register_client(OpenRouterClient.name, OpenRouterClient)


_register()
