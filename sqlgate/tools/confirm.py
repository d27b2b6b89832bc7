"""Confirmation tool: executes an operation parked by the gate."""

from __future__ import annotations

from typing import Any

from sqlgate.tools.base import GatewayTool


class ConfirmAndExecuteTool(GatewayTool):
    """Run a parked operation once its confirmation token is presented."""

    @property
    def name(self) -> str:
        return "confirm_and_execute"

    @property
    def description(self) -> str:
        return (
            "Execute an operation previously returned with "
            "SECURITY_CONFIRMATION_REQUIRED. Only call this after the user has "
            "explicitly approved the operation. Tokens are single-use and expire "
            "after a few minutes; on an expired token, propose the operation again."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "confirmation_token": {
                    "type": "string",
                    "description": "The token from the confirmation message (CONF_...).",
                },
            },
            "required": ["confirmation_token"],
        }

    async def execute(self, confirmation_token: str, **kwargs: Any) -> str:
        result = await self._gateway.confirm_and_execute(confirmation_token)
        return self.render(result)
