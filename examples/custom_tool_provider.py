#!/usr/bin/env python3
"""
Custom Tool Provider Example

This example demonstrates how to:
- Build a tool provider from plain functions with FunctionToolProvider
- Use the caller's ExecutionContext inside a tool
- Report expected failures to the model with ToolError
- Run tool calls concurrently and cap the number of iterations

The example exposes a small "roles" provider backed by an in-memory
guild directory.

Prerequisites:
    export ANTHROPIC_API_KEY="your-key-here"

Usage:
    python examples/custom_tool_provider.py
"""

import asyncio
import os

from llm_agent import (
    Agent,
    AgentSettings,
    ExecutionContext,
    FunctionToolProvider,
    ToolError,
    ToolParameter,
    ToolRegistry,
)

GUILD_ROLES = {
    "guild-42": {
        "moderator": ["ana", "bo"],
        "admin": ["cy"],
    }
}


def create_roles_provider() -> FunctionToolProvider:
    """Create the roles provider.

    Returns:
        A provider with ``list_roles`` and ``lookup_role`` tools
    """
    roles = FunctionToolProvider("roles", "Guild role lookups")

    @roles.tool()
    def list_roles(tool_input, context):
        """List the roles defined in the caller's guild."""
        guild = GUILD_ROLES.get(context.scope_id or "", {})
        return {"roles": sorted(guild)}

    @roles.tool(
        parameters=[
            ToolParameter("role_name", "string", description="Role to look up"),
            ToolParameter(
                "include_members",
                "boolean",
                required=False,
                default=True,
                description="Include member names",
            ),
        ]
    )
    async def lookup_role(tool_input, context):
        """Look up a guild role and its members."""
        await asyncio.sleep(0.1)  # Simulated directory call
        guild = GUILD_ROLES.get(context.scope_id or "", {})
        name = tool_input["role_name"].lower()
        if name not in guild:
            raise ToolError(f"Role '{tool_input['role_name']}' does not exist")
        result = {"role": name, "member_count": len(guild[name])}
        if tool_input.get("include_members", True):
            result["members"] = guild[name]
        return result

    return roles


async def main():
    """Run the custom provider example."""

    if not os.getenv("ANTHROPIC_API_KEY"):
        print("Error: ANTHROPIC_API_KEY environment variable not set")
        return

    registry = ToolRegistry([create_roles_provider()])
    print("Registered tools:")
    for tool in registry.get_enabled_tools():
        print(f"  - {tool.name}: {tool.description}")

    settings = AgentSettings(
        client="anthropic",
        max_tool_call_iterations=4,
        parallel_tool_calls=True,
        tool_timeout=2.0,
    )
    agent = Agent(
        registry=registry,
        settings=settings,
        system_prompt="You help moderators understand their guild's roles.",
    )
    context = ExecutionContext(user_id="99", scope_id="guild-42", roles=("Moderator",))

    result = await agent.run(
        "Who are the moderators and admins? Also, is there a 'helper' role?",
        context=context,
    )

    print(f"\nOutcome: {result.outcome.value}")
    if result.text:
        print(f"\n{result.text}")
    for entry in result.tool_calls:
        print(f"  [{entry.iteration}] {entry.name} -> {entry.result}")


if __name__ == "__main__":
    asyncio.run(main())
