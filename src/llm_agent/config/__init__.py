"""Configuration module for llm-agent."""

from llm_agent.config.settings import (
    AgentSettings,
    get_config_file,
    get_settings,
    load_settings,
    reset_settings,
)

__all__ = [
    "AgentSettings",
    "get_config_file",
    "get_settings",
    "load_settings",
    "reset_settings",
]
