"""Gated stored-procedure execution tool."""

from __future__ import annotations

from typing import Any

from sqlgate.tools.base import GatewayTool


class ExecuteProcedureTool(GatewayTool):
    """Call a stored procedure through the safety gate."""

    @property
    def name(self) -> str:
        return "execute_procedure"

    @property
    def description(self) -> str:
        return (
            "Execute a stored procedure with named parameters. Requires stored "
            "procedures to be enabled. Procedures whose names start with Get, "
            "Select, Search, Find, List or View run immediately; any other "
            "procedure returns a confirmation token for confirm_and_execute."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "sp_name": {
                    "type": "string",
                    "description": "Procedure name, optionally schema-qualified (e.g. dbo.usp_GetUsers).",
                },
                "params": {
                    "type": "object",
                    "description": "Parameter name to value map.",
                },
            },
            "required": ["sp_name"],
        }

    async def execute(self, sp_name: str, params: dict[str, Any] | None = None, **kwargs: Any) -> str:
        result = await self._gateway.propose_procedure(sp_name, params)
        return self.render(result)
