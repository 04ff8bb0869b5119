"""
Documentation tool provider.

Serves Markdown feature guides from a directory so the model can answer
"how do I ..." questions from the project's own documentation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from llm_agent.protocol.types import ExecutionContext, ToolDefinition, ToolExecutionResult
from llm_agent.tools.base import (
    ToolNotSupportedError,
    ToolParameter,
    ToolProvider,
    build_input_schema,
)

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 50

_TOOLS = (
    ToolDefinition(
        name="list_features",
        description="List every documented feature with its title and documentation link.",
        input_schema=build_input_schema([]),
    ),
    ToolDefinition(
        name="get_feature_documentation",
        description=(
            "Get the full documentation for a feature. Use list_features to find valid names."
        ),
        input_schema=build_input_schema(
            [
                ToolParameter(
                    "feature_name",
                    "string",
                    description="Feature name or alias, e.g. 'reminders'.",
                )
            ]
        ),
    ),
    ToolDefinition(
        name="search_documentation",
        description="Search all feature documentation for a word or phrase.",
        input_schema=build_input_schema(
            [
                ToolParameter("query", "string", description="Text to search for."),
                ToolParameter(
                    "limit",
                    "integer",
                    required=False,
                    default=DEFAULT_SEARCH_LIMIT,
                    description=f"Maximum results (1-{MAX_SEARCH_LIMIT}).",
                ),
            ]
        ),
    ),
)


def _title_of(text: str, fallback: str) -> str:
    for line in text.splitlines():
        if line.startswith("# "):
            return line[2:].strip()
    return fallback


class DocumentationToolProvider(ToolProvider):
    """Read-only access to a directory of Markdown feature guides.

    Args:
        base_path: Directory holding ``<feature>.md`` files.
        aliases: Extra feature names mapped to file names, e.g.
            ``{"reminders": "reminder-system.md"}``. Matched case-insensitively.
        base_url: Public site URL; substituted for ``{BASE_URL}`` in documents
            and used to build documentation links.
    """

    name = "documentation"
    description = "Access feature documentation and guides"

    def __init__(
        self,
        base_path: Path | str,
        aliases: Mapping[str, str] | None = None,
        base_url: str | None = None,
    ) -> None:
        self._base_path = Path(base_path).resolve()
        self._aliases = {k.casefold(): v for k, v in (aliases or {}).items()}
        self._base_url = base_url.rstrip("/") if base_url else None
        self._handlers = {
            "list_features": self._list_features,
            "get_feature_documentation": self._get_feature_documentation,
            "search_documentation": self._search_documentation,
        }

    def get_tools(self) -> list[ToolDefinition]:
        return list(_TOOLS)

    async def execute_tool(
        self,
        tool_name: str,
        tool_input: Any,
        context: ExecutionContext,
    ) -> ToolExecutionResult:
        handler = self._handlers.get(tool_name.casefold())
        if handler is None:
            raise ToolNotSupportedError(tool_name, self.name)

        logger.debug("Executing documentation tool %s", tool_name)
        arguments = tool_input if isinstance(tool_input, dict) else {}
        try:
            return await handler(arguments, context)
        except (OSError, ValueError) as e:
            logger.error("Error reading documentation for %s: %s", tool_name, e)
            return ToolExecutionResult.error(f"Error reading documentation: {e}")

    def _resolve(self, feature_name: str) -> Path | None:
        """Map a feature name to a file inside the base directory, or None."""
        file_name = self._aliases.get(feature_name.casefold(), f"{feature_name}.md")
        candidate = (self._base_path / file_name).resolve()
        if not candidate.is_relative_to(self._base_path):
            return None
        return candidate

    def _doc_url(self, stem: str) -> str | None:
        return f"{self._base_url}/docs/articles/{stem}" if self._base_url else None

    def _scan(self) -> list[tuple[Path, str]]:
        """Read every guide; files that cannot be read or decoded are skipped."""
        if not self._base_path.is_dir():
            return []
        documents = []
        for path in sorted(self._base_path.glob("*.md")):
            try:
                documents.append((path, path.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable documentation file %s: %s", path.name, e)
        return documents

    async def _list_features(
        self, arguments: dict[str, Any], context: ExecutionContext
    ) -> ToolExecutionResult:
        documents = await asyncio.to_thread(self._scan)
        features = [
            {
                "name": path.stem,
                "title": _title_of(text, path.stem),
                "documentation_url": self._doc_url(path.stem),
            }
            for path, text in documents
        ]
        return ToolExecutionResult.ok({"features": features, "total_count": len(features)})

    async def _get_feature_documentation(
        self, arguments: dict[str, Any], context: ExecutionContext
    ) -> ToolExecutionResult:
        feature_name = arguments.get("feature_name")
        if not isinstance(feature_name, str) or not feature_name.strip():
            return ToolExecutionResult.error("Missing required parameter: feature_name")
        feature_name = feature_name.strip()

        path = self._resolve(feature_name)
        if path is None:
            logger.warning("Rejected documentation path outside base directory: %s", feature_name)
            return ToolExecutionResult.error(f"Invalid feature name '{feature_name}'")

        if not await asyncio.to_thread(path.is_file):
            logger.warning("Documentation file not found: %s", path)
            return ToolExecutionResult.error(
                f"Documentation for feature '{feature_name}' not found. "
                "Available features can be listed using list_features tool."
            )

        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning("Documentation file %s is not valid UTF-8: %s", path.name, e)
            return ToolExecutionResult.error(
                f"Documentation for feature '{feature_name}' is not valid UTF-8 text"
            )
        if self._base_url and context.scope_id:
            content = content.replace("{BASE_URL}", self._base_url).replace(
                "{SCOPE_ID}", context.scope_id
            )
        modified = await asyncio.to_thread(lambda: path.stat().st_mtime)

        logger.debug("Loaded documentation for %s (%d chars)", feature_name, len(content))
        return ToolExecutionResult.ok(
            {
                "feature": feature_name,
                "content": content,
                "available": True,
                "last_updated": datetime.fromtimestamp(modified, tz=timezone.utc).isoformat(),
            }
        )

    async def _search_documentation(
        self, arguments: dict[str, Any], context: ExecutionContext
    ) -> ToolExecutionResult:
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            return ToolExecutionResult.error("Missing required parameter: query")
        limit = arguments.get("limit", DEFAULT_SEARCH_LIMIT)
        if not isinstance(limit, int) or isinstance(limit, bool):
            limit = DEFAULT_SEARCH_LIMIT
        limit = max(1, min(limit, MAX_SEARCH_LIMIT))

        needle = query.strip().casefold()
        matches = []
        for path, text in await asyncio.to_thread(self._scan):
            for line in text.splitlines():
                if needle in line.casefold():
                    matches.append(
                        {
                            "feature": path.stem,
                            "title": _title_of(text, path.stem),
                            "snippet": line.strip(),
                        }
                    )
                    break

        return ToolExecutionResult.ok(
            {"results": matches[:limit], "total_matches": len(matches), "limited_to": limit}
        )


__all__ = ["DocumentationToolProvider"]
