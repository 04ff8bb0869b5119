"""Completion clients and registry utilities."""

from .base import (
    NON_RETRYABLE_ERRORS,
    ClientCapabilities,
    CompletionClient,
    CompletionError,
    DoctorResult,
    ErrorType,
    classify_error,
    classify_exception,
)
from .registry import ClientRegistry, get_client, get_registry
from .retry import RetryPolicy

# Built-in clients register themselves on import
from . import anthropic as _anthropic  # noqa: E402,F401
from . import openai as _openai  # noqa: E402,F401
from . import openrouter as _openrouter  # noqa: E402,F401

__all__ = [
    "NON_RETRYABLE_ERRORS",
    "ClientCapabilities",
    "ClientRegistry",
    "CompletionClient",
    "CompletionError",
    "DoctorResult",
    "ErrorType",
    "RetryPolicy",
    "classify_error",
    "classify_exception",
    "get_client",
    "get_registry",
]
