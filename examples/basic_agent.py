#!/usr/bin/env python3
"""
Basic Agent Usage Example

This example demonstrates the core functionality of llm-agent:
- Creating an Agent backed by OpenRouter
- Serving a directory of Markdown guides through the documentation tools
- Reading the run outcome, tool trace and token usage
- Checking client health

Prerequisites:
    export OPENROUTER_API_KEY="your-key-here"

Usage:
    python examples/basic_agent.py
"""

import asyncio
import os
import tempfile
from pathlib import Path

from llm_agent import Agent, AgentSettings, ExecutionContext

REMINDERS_DOC = """\
# Reminders

Use `/remind <when> <what>` to schedule a reminder.
Manage your reminders at {BASE_URL}/dashboard/{SCOPE_ID}/reminders.
"""

MODERATION_DOC = """\
# Moderation

Moderators can use `/warn @member <reason>` and `/timeout @member <minutes>`.
"""


async def main():
    """Run basic agent examples."""

    if not os.getenv("OPENROUTER_API_KEY"):
        print("Error: OPENROUTER_API_KEY environment variable not set")
        print("Get your key at: https://openrouter.ai/keys")
        return

    print("=" * 70)
    print("llm-agent - Basic Usage Example")
    print("=" * 70)

    with tempfile.TemporaryDirectory() as tmp:
        docs = Path(tmp)
        (docs / "reminders.md").write_text(REMINDERS_DOC)
        (docs / "moderation.md").write_text(MODERATION_DOC)

        settings = AgentSettings(
            client="openrouter",
            docs_path=docs,
            base_url="https://bot.example.com",
            max_tool_call_iterations=5,
            system_prompt=(
                "You are a helpful community bot. Answer questions about bot features "
                "using the documentation tools. Keep answers short."
            ),
        )
        agent = Agent(settings=settings)
        context = ExecutionContext(user_id="1234", scope_id="guild-42", roles=("Member",))

        # Example 1: A question answered from the documentation
        print("\n[Example 1] Question answered with documentation tools")
        print("-" * 70)

        result = await agent.run("How do I set a reminder?", context=context)

        if result.success:
            print("✓ Agent completed!")
            print(f"\n{result.text}")
        else:
            print(f"✗ Agent stopped ({result.outcome.value}): {result.error_message}")

        print("\nTool calls:")
        for entry in result.tool_calls:
            status = "error" if entry.is_error else "ok"
            print(f"  [{entry.iteration}] {entry.name}({entry.input}) -> {status}")

        print(f"\nIterations: {result.iteration_count}")
        print(f"Tokens: {result.usage.total_tokens}")
        if result.estimated_cost_usd is not None:
            print(f"Estimated cost: ${result.estimated_cost_usd:.4f}")

        # Example 2: Same agent with the documentation provider disabled
        print("\n\n[Example 2] Documentation provider disabled")
        print("-" * 70)

        agent.registry.disable_provider("documentation")
        result = await agent.run("What moderation commands exist?", context=context)
        print(f"Outcome: {result.outcome.value}, tool calls: {result.total_tool_calls}")
        agent.registry.enable_provider("documentation")

    # Example 3: Health check
    print("\n\n[Example 3] Client health check")
    print("-" * 70)

    health = await agent.doctor()
    status_icon = "✓" if health.ok else "✗"
    print(f"  {status_icon} {agent.client.provider_name}: {health.message}")
    if health.ok and health.latency_ms:
        print(f"    Latency: {health.latency_ms:.0f}ms")

    print("\n" + "=" * 70)
    print("Examples complete!")
    print("=" * 70)


if __name__ == "__main__":
    asyncio.run(main())
