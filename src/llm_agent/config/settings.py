"""
Settings for llm-agent.

Settings are layered: built-in defaults, then the ``defaults:`` section of the
YAML config file, then environment variables.

Environment Variables:
    LLM_AGENT_CONFIG: Path to the YAML config file
        (default: ~/.config/llm-agent/config.yaml)
    LLM_AGENT_<FIELD>: Override any scalar setting, e.g.
        LLM_AGENT_CLIENT=openrouter
        LLM_AGENT_MAX_TOOL_CALL_ITERATIONS=5
        LLM_AGENT_DISABLED_PROVIDERS=documentation,roles   (comma-separated)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from llm_agent.protocol.types import ExecutionContext, TokenPricing

logger = logging.getLogger(__name__)

ENV_PREFIX = "LLM_AGENT_"
ENV_CONFIG_FILE = "LLM_AGENT_CONFIG"


def get_config_file() -> Path:
    """Get the config file path. Computed at runtime for test compatibility."""
    override = os.environ.get(ENV_CONFIG_FILE)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "llm-agent" / "config.yaml"


class AgentSettings(BaseModel):
    """Resolved settings for building clients, registries and runs."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    client: str = Field(default="anthropic", description="Registered client name.")
    model: str | None = Field(default=None, description="Model override; client default if unset.")
    max_tokens: int = Field(default=1024, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tool_call_iterations: int = Field(default=10, ge=1)
    request_timeout: float = Field(default=30.0, gt=0, description="Seconds per backend attempt.")
    tool_timeout: float | None = Field(default=5.0, gt=0, description="Seconds per tool call.")
    run_timeout: float | None = Field(default=None, gt=0, description="Seconds per run.")
    max_retries: int = Field(default=2, ge=0, le=10)
    retry_base_delay_ms: int = Field(default=1000, ge=0)
    enable_prompt_caching: bool = Field(default=True)
    parallel_tool_calls: bool = Field(default=False)
    pricing: TokenPricing = Field(default_factory=TokenPricing)
    disabled_providers: list[str] = Field(default_factory=list)
    docs_path: Path | None = Field(default=None, description="Markdown documentation directory.")
    base_url: str | None = Field(default=None, description="Public site URL for doc links.")
    tools_config: Path | None = Field(default=None, description="YAML tool provider file.")
    system_prompt: str | None = Field(default=None)

    @field_validator("disabled_providers", mode="before")
    @classmethod
    def _split_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("docs_path", "tools_config", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Path(value).expanduser() if value else None
        return value

    def run_configuration(
        self,
        tool_registry: Any = None,
        execution_context: ExecutionContext | None = None,
        **overrides: Any,
    ) -> Any:
        """Build a :class:`~llm_agent.engine.runner.RunConfiguration` from these settings."""
        from llm_agent.engine.runner import RunConfiguration

        values: dict[str, Any] = {
            "system_prompt": self.system_prompt,
            "tool_registry": tool_registry,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "max_tool_call_iterations": self.max_tool_call_iterations,
            "enable_prompt_caching": self.enable_prompt_caching,
            "parallel_tool_calls": self.parallel_tool_calls,
            "tool_timeout": self.tool_timeout,
            "timeout": self.run_timeout,
            "pricing": self.pricing,
        }
        if execution_context is not None:
            values["execution_context"] = execution_context
        values.update(overrides)
        return RunConfiguration(**values)

    def retry_policy(self) -> Any:
        """Build the retry policy these settings describe."""
        from llm_agent.clients.retry import RetryPolicy

        return RetryPolicy(max_retries=self.max_retries, base_delay_ms=self.retry_base_delay_ms)


def _load_config_defaults(config_file: Path) -> dict[str, Any]:
    """Load the ``defaults:`` section of the config file, or {} if absent."""
    if not config_file.exists():
        return {}

    try:
        config = yaml.safe_load(config_file.read_text()) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", config_file, e)
        return {}

    defaults = config.get("defaults", {}) if isinstance(config, dict) else {}
    if not isinstance(defaults, dict):
        logger.warning("Ignoring non-mapping 'defaults' section in %s", config_file)
        return {}
    return defaults


def _load_from_env(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect LLM_AGENT_<FIELD> overrides for scalar settings."""
    values: dict[str, Any] = {}
    for field_name in AgentSettings.model_fields:
        if field_name == "pricing":
            continue
        raw = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw is not None and raw.strip():
            values[field_name] = raw.strip()
    return values


def load_settings(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> AgentSettings:
    """Load settings from defaults, the config file and the environment.

    Args:
        config_file: Config file path; defaults to :func:`get_config_file`.
        environ: Environment mapping; defaults to ``os.environ``.
        **overrides: Final values that win over every other layer (None is ignored).

    Raises:
        pydantic.ValidationError: A layer supplies an invalid value.
    """
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    values.update(_load_config_defaults(config_file or get_config_file()))
    values.update(_load_from_env(environ))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return AgentSettings(**values)


_settings: AgentSettings | None = None


def get_settings() -> AgentSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (for testing)."""
    global _settings
    _settings = None


__all__ = [
    "AgentSettings",
    "get_config_file",
    "get_settings",
    "load_settings",
    "reset_settings",
]
