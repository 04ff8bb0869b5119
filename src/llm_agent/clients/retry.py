"""
Retry policy for completion clients.

Transient backend failures (rate limits, timeouts, network and server errors)
are retried with exponential backoff. Permanent failures (billing, auth,
invalid request) fail on the first attempt. Retry belongs to the client;
the agent runner never retries a failed completion.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from llm_agent.clients.base import (
    NON_RETRYABLE_ERRORS,
    ErrorType,
    classify_exception,
    get_billing_help_url,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = frozenset(
    {
        ErrorType.RATE_LIMIT,
        ErrorType.TIMEOUT,
        ErrorType.NETWORK,
        ErrorType.SERVER,
    }
)


class RetryAction(str, Enum):
    """What to do after a failed attempt."""

    RETRY = "retry"
    FAIL = "fail"


@dataclass
class RetryDecision:
    """Decision made by the retry policy for one failed attempt."""

    action: RetryAction
    reason: str
    error_type: ErrorType
    delay_ms: int = 0
    billing_url: str | None = None


class RetryPolicy:
    """Exponential backoff policy for backend calls."""

    # Default retry limits
    MAX_RETRIES = 2
    BASE_RETRY_DELAY_MS = 1000  # 1 second
    MAX_RETRY_DELAY_MS = 10000  # 10 seconds

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        base_delay_ms: int = BASE_RETRY_DELAY_MS,
        max_delay_ms: int = MAX_RETRY_DELAY_MS,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize the retry policy.

        Args:
            max_retries: Retries after the first attempt (0 disables retry)
            base_delay_ms: Delay before the first retry
            max_delay_ms: Upper bound for any single delay
            sleep: Awaitable sleep function, replaceable in tests
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, retry_index: int) -> int:
        """Backoff delay in milliseconds before retry number ``retry_index`` (0-based)."""
        return min(self.base_delay_ms * (2**retry_index), self.max_delay_ms)

    def decide(self, provider: str, error: BaseException, retries_so_far: int) -> RetryDecision:
        """Decide whether a failed attempt should be retried."""
        error_type = classify_exception(error)

        if error_type in NON_RETRYABLE_ERRORS:
            billing_url = None
            if error_type == ErrorType.BILLING:
                billing_url = get_billing_help_url(provider)
                reason = f"Billing error: check {billing_url}"
            elif error_type == ErrorType.AUTH:
                reason = f"Authentication error: check API key for {provider}"
            else:
                reason = f"Non-retryable error: {error_type.value}"
            return RetryDecision(
                action=RetryAction.FAIL,
                reason=reason,
                error_type=error_type,
                billing_url=billing_url,
            )

        if error_type in RETRYABLE_ERRORS and retries_so_far < self.max_retries:
            return RetryDecision(
                action=RetryAction.RETRY,
                reason=f"Retryable error ({error_type.value}), attempt {retries_so_far + 2}",
                error_type=error_type,
                delay_ms=self.delay_for(retries_so_far),
            )

        if error_type in RETRYABLE_ERRORS:
            reason = f"Max retries ({self.max_retries}) exceeded"
        else:
            reason = f"Unrecoverable error: {error_type.value}"
        return RetryDecision(action=RetryAction.FAIL, reason=reason, error_type=error_type)

    async def call(self, operation: Callable[[], Awaitable[T]], provider: str = "unknown") -> T:
        """Run ``operation`` until it succeeds or the policy gives up.

        The last exception is re-raised when the policy gives up.
        ``asyncio.CancelledError`` is never retried.
        """
        retries = 0
        while True:
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                decision = self.decide(provider, exc, retries)
                if decision.action is RetryAction.FAIL:
                    logger.warning(
                        "Provider %s failed: %s (%s)", provider, decision.error_type.value, decision.reason
                    )
                    raise
                logger.info(
                    "Provider %s failed with %s; retrying in %d ms",
                    provider,
                    decision.error_type.value,
                    decision.delay_ms,
                )
                await self._sleep(decision.delay_ms / 1000)
                retries += 1


def create_default_policy(max_retries: int = 2, base_delay_ms: int = 1000) -> RetryPolicy:
    """Create a retry policy with sensible defaults."""
    return RetryPolicy(max_retries=max_retries, base_delay_ms=base_delay_ms)


__all__ = [
    "RETRYABLE_ERRORS",
    "RetryAction",
    "RetryDecision",
    "RetryPolicy",
    "create_default_policy",
]
