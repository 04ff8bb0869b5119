"""
Agent engine - the tool-use loop.

The engine coordinates:
1. Completion calls with the currently enabled tools
2. Tool execution through the tool registry
3. Iteration caps, timeouts and cancellation
"""

from llm_agent.engine.runner import AgentRunner, RunConfiguration

__all__ = [
    "AgentRunner",
    "RunConfiguration",
]
