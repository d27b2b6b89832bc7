"""Gated SQL execution tool."""

from __future__ import annotations

from typing import Any

from sqlgate.tools.base import GatewayTool


class ExecuteQueryTool(GatewayTool):
    """Run any SQL statement through the safety gate.

    Reads run immediately; writes are blocked or parked for confirmation.
    """

    @property
    def name(self) -> str:
        return "execute_query"

    @property
    def description(self) -> str:
        return (
            "Execute a SQL statement. Read-only statements (SELECT, WITH, SHOW, "
            "DESCRIBE, EXPLAIN) run immediately. Statements that modify data or "
            "schema are NOT executed: they return a risk assessment and a "
            "confirmation token that must be passed to confirm_and_execute. "
            f"Results are limited to {self._max_rows} rows."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The SQL statement to execute.",
                },
            },
            "required": ["query"],
        }

    async def execute(self, query: str, **kwargs: Any) -> str:
        result = await self._gateway.propose_query(query)
        return self.render(result)
