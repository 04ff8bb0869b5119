"""
Secret-safe logging for llm-agent.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers. Applications (and the CLI) call :func:`configure_logging`,
which installs a rich console handler behind a redaction filter so API keys
and bearer tokens never reach log output.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

REDACTED = "[REDACTED]"

_SECRET_PATTERNS = (
    re.compile(r"sk-ant-[A-Za-z0-9_\-]{8,}"),  # Anthropic
    re.compile(r"sk-or-[A-Za-z0-9_\-]{8,}"),  # OpenRouter
    re.compile(r"sk-[A-Za-z0-9_\-]{16,}"),  # OpenAI
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._\-]{8,}"),
    re.compile(r"(?i)((?:api[_-]?key|x-api-key|authorization)[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]{8,}"),
)


def redact(text: str) -> str:
    """Mask API keys and bearer tokens in ``text``."""
    for pattern in _SECRET_PATTERNS:
        if pattern.groups:
            text = pattern.sub(lambda m: f"{m.group(1)}{REDACTED}", text)
        else:
            text = pattern.sub(REDACTED, text)
    return text


class RedactingFilter(logging.Filter):
    """Logging filter that redacts secrets from the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def configure_logging(verbose: bool = False, console: Console | None = None, **kwargs: Any) -> None:
    """Configure the ``llm_agent`` logger with a redacting rich handler.

    Args:
        verbose: Log at DEBUG instead of WARNING.
        console: Rich console to write to; defaults to stderr.
        **kwargs: Extra keyword arguments for :class:`rich.logging.RichHandler`.
    """
    logger = logging.getLogger("llm_agent")
    for handler in list(logger.handlers):
        if getattr(handler, "_llm_agent_handler", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
        **kwargs,
    )
    handler._llm_agent_handler = True  # type: ignore[attr-defined]
    handler.addFilter(RedactingFilter())
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


__all__ = ["REDACTED", "RedactingFilter", "configure_logging", "redact"]
