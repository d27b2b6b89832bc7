"""Tool registry: name lookup, schema export and guarded dispatch."""

from __future__ import annotations

from typing import Any

from loguru import logger

from sqlgate.tools.base import Tool


class ToolRegistry:
    """Holds the tools exposed to the tool-call layer."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def get_definitions(self) -> list[dict[str, Any]]:
        """OpenAI-style function schemas for every registered tool."""
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, params: dict[str, Any]) -> str:
        """Validate ``params`` and run tool ``name``.

        Never raises: unknown tools, invalid parameters and tool exceptions
        all come back as error text for the caller.
        """
        tool = self._tools.get(name)
        if tool is None:
            return f"Error: Tool '{name}' not found"

        errors = tool.validate_params(params)
        if errors:
            return f"Error: Invalid parameters for tool '{name}': {'; '.join(errors)}"

        try:
            return await tool.execute(**params)
        except Exception as e:
            logger.exception("Tool {} raised", name)
            return f"Error executing {name}: {e}"

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
