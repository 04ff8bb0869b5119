"""Base completion client definitions for llm-agent."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from llm_agent.protocol.types import CompletionRequest, CompletionResponse, StopReason

logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    """Classification of backend invocation errors.

    Used to determine retry behavior and provide actionable error messages.
    Non-retryable errors (BILLING, AUTH, INVALID_REQUEST) should fail fast.
    """

    NONE = "none"
    TIMEOUT = "timeout"
    BILLING = "billing"  # Credits exhausted, payment required
    RATE_LIMIT = "rate_limit"  # Too many requests (429)
    AUTH = "auth"  # API key invalid or missing
    INVALID_REQUEST = "invalid_request"  # Malformed request (400/422)
    MODEL_UNAVAILABLE = "model_unavailable"
    SERVER = "server"  # 5xx from the backend
    NETWORK = "network"
    UNKNOWN = "unknown"


# Error types that should NOT be retried (permanent failures)
NON_RETRYABLE_ERRORS = frozenset(
    {
        ErrorType.BILLING,
        ErrorType.AUTH,
        ErrorType.INVALID_REQUEST,
    }
)

# Patterns to detect specific error types from error messages
_BILLING_PATTERNS = (
    "insufficient_quota",
    "billing",
    "credit balance",
    "payment required",
    "exceeded your current quota",
    "insufficient credits",
)

_RATE_LIMIT_PATTERNS = (
    "rate_limit",
    "rate limit",
    "too many requests",
    "429",
    "throttl",
)

_AUTH_PATTERNS = (
    "invalid_api_key",
    "invalid api key",
    "invalid x-api-key",
    "unauthorized",
    "authentication",
    "api key not configured",
    "401",
)

_MODEL_UNAVAILABLE_PATTERNS = (
    "model not found",
    "model_not_found",
    "does not exist",
    "overloaded",
)

_SERVER_PATTERNS = (
    "internal server error",
    "bad gateway",
    "service unavailable",
    "500",
    "502",
    "503",
    "504",
)

_NETWORK_PATTERNS = (
    "connection",
    "network",
    "dns",
    "socket",
    "econnrefused",
    "econnreset",
    "timed out",
    "timeout",
)


def classify_error(error_text: str) -> ErrorType:
    """Classify an error based on its message text.

    Args:
        error_text: Error message

    Returns:
        ErrorType classification for the error
    """
    if not error_text:
        return ErrorType.UNKNOWN

    error_lower = error_text.lower()

    # Check billing errors first (don't waste money retrying)
    for pattern in _BILLING_PATTERNS:
        if pattern in error_lower:
            return ErrorType.BILLING

    for pattern in _RATE_LIMIT_PATTERNS:
        if pattern in error_lower:
            return ErrorType.RATE_LIMIT

    for pattern in _AUTH_PATTERNS:
        if pattern in error_lower:
            return ErrorType.AUTH

    for pattern in _MODEL_UNAVAILABLE_PATTERNS:
        if pattern in error_lower:
            return ErrorType.MODEL_UNAVAILABLE

    for pattern in _SERVER_PATTERNS:
        if pattern in error_lower:
            return ErrorType.SERVER

    for pattern in _NETWORK_PATTERNS:
        if pattern in error_lower:
            return ErrorType.NETWORK

    return ErrorType.UNKNOWN


def _status_code_of(exc: BaseException) -> int | None:
    """Extract an HTTP status code from SDK or httpx exceptions, if present."""
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_exception(exc: BaseException) -> ErrorType:
    """Classify an exception raised while calling a backend."""
    if isinstance(exc, CompletionError):
        return exc.error_type
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorType.TIMEOUT

    status = _status_code_of(exc)
    if status is not None:
        if status == 429:
            return ErrorType.RATE_LIMIT
        if status in (401, 403):
            return ErrorType.AUTH
        if status == 402:
            return ErrorType.BILLING
        if status == 404:
            return ErrorType.MODEL_UNAVAILABLE
        if status in (400, 413, 422):
            # Anthropic reports exhausted credits as a 400
            by_text = classify_error(str(exc))
            return by_text if by_text is ErrorType.BILLING else ErrorType.INVALID_REQUEST
        if status >= 500:
            return ErrorType.SERVER

    return classify_error(str(exc))


def get_billing_help_url(provider: str) -> str:
    """Get the billing help URL for a provider."""
    urls = {
        "openai": "https://platform.openai.com/account/billing",
        "anthropic": "https://console.anthropic.com/settings/billing",
        "openrouter": "https://openrouter.ai/account/credits",
    }
    return urls.get(provider.lower(), "Check your provider's billing page")


class CompletionError(Exception):
    """Raised inside a client when a backend call fails with a known classification."""

    def __init__(self, message: str, error_type: ErrorType = ErrorType.UNKNOWN) -> None:
        super().__init__(message)
        self.error_type = error_type


class ClientCapabilities(BaseModel):
    """Capability flags and limits for a completion client."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tool_use: bool = Field(default=False, description="Supports tool/function calling.")
    prompt_caching: bool = Field(
        default=False, description="Honors the prompt-caching hint with explicit cache markers."
    )
    max_tokens: int | None = Field(
        default=None, description="Maximum tokens per response if enforced by the backend."
    )


class DoctorResult(BaseModel):
    """Health check result for completion clients."""

    model_config = ConfigDict(extra="allow", frozen=True)

    ok: bool = Field(..., description="Whether the backend is reachable and configured.")
    message: str | None = Field(default=None, description="Optional status message.")
    latency_ms: float | None = Field(
        default=None, description="Measured latency in milliseconds for the health check."
    )
    details: Mapping[str, Any] | None = Field(
        default=None, description="Additional diagnostic details."
    )


class CompletionClient(ABC):
    """Abstract base class for LLM completion clients.

    Implementations should:
    - set :attr:`name` to a stable, unique backend identifier (e.g. "anthropic", "openai")
    - set :attr:`capabilities` to a :class:`ClientCapabilities` instance
    - implement async :meth:`_complete_once` (one attempt, raising on failure) and :meth:`doctor`

    :meth:`complete` wraps each attempt with a timeout and the retry policy and never
    raises for ordinary backend failures; those come back as ``success=False``.
    Only ``asyncio.CancelledError`` propagates.
    """

    name: ClassVar[str]
    capabilities: ClassVar[ClientCapabilities]

    def __init__(
        self,
        timeout: float | None = 30.0,
        retry_policy: Any | None = None,
    ) -> None:
        """Initialize shared client state.

        Args:
            timeout: Per-attempt timeout in seconds, or None to wait indefinitely.
            retry_policy: A :class:`llm_agent.clients.retry.RetryPolicy`; a default
                policy is created when omitted.
        """
        from llm_agent.clients.retry import RetryPolicy

        self._timeout = timeout
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def provider_name(self) -> str:
        return self.name

    @property
    def supports_tool_use(self) -> bool:
        return self.capabilities.tool_use

    @property
    def supports_prompt_caching(self) -> bool:
        return self.capabilities.prompt_caching

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Run one completion round trip and normalize the outcome."""
        if request.tools and not self.supports_tool_use:
            logger.debug("Client %s does not support tool use; omitting tools", self.name)
            request = request.model_copy(update={"tools": None})

        try:
            response = await self._retry_policy.call(
                lambda: self._attempt(request),
                provider=self.name,
            )
        except asyncio.CancelledError:
            logger.info("Completion request to %s was cancelled", self.name)
            raise
        except Exception as exc:
            logger.error("Completion request to %s failed: %s", self.name, exc)
            return CompletionResponse.failure(str(exc) or exc.__class__.__name__)

        if response.stop_reason is StopReason.TOOL_USE and not request.tools:
            logger.warning("Client %s returned tool calls for a request without tools", self.name)
            return CompletionResponse.failure(
                "Backend requested tool use but no tools were offered",
                usage=response.usage,
            )
        return response

    async def _attempt(self, request: CompletionRequest) -> CompletionResponse:
        if self._timeout is None:
            return await self._complete_once(request)
        try:
            return await asyncio.wait_for(self._complete_once(request), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise CompletionError(
                f"Request to {self.name} timed out after {self._timeout}s", ErrorType.TIMEOUT
            ) from exc

    @abstractmethod
    async def _complete_once(self, request: CompletionRequest) -> CompletionResponse:
        """Perform one backend call; raise on failure so the retry policy can decide."""

    @abstractmethod
    async def doctor(self) -> DoctorResult:
        """Perform a backend health check and return the result."""
