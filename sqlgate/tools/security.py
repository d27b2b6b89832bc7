"""Security status tool."""

from __future__ import annotations

import json
import os
from dataclasses import asdict
from typing import Any

from sqlgate.gateway import ExecutionGateway
from sqlgate.safety.policy import MODIFICATIONS_ENV, STORED_PROCEDURES_ENV
from sqlgate.tools.base import Tool

_BEST_PRACTICES = [
    "Keep modifications disabled in production environments",
    "Only enable stored procedures when necessary",
    "Review all queries before execution in production",
    "Use read-only database users when possible",
]


class SecurityStatusTool(Tool):
    """Report which operation categories the gate currently allows."""

    def __init__(self, gateway: ExecutionGateway) -> None:
        self._gateway = gateway

    @property
    def name(self) -> str:
        return "get_security_status"

    @property
    def description(self) -> str:
        return (
            "Show the current security configuration: whether modifications and "
            "stored procedures are enabled, the resulting security level, and "
            "recommendations."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs: Any) -> str:
        status = self._gateway.get_security_status()
        payload = {
            "security_configuration": asdict(status),
            "environment_variables": {
                env: os.environ.get(env) or "not set (defaults to false)"
                for env in (MODIFICATIONS_ENV, STORED_PROCEDURES_ENV)
            },
            "configuration_guide": {
                "enable_modifications": f"Set {MODIFICATIONS_ENV}=true in your environment",
                "enable_stored_procedures": f"Set {STORED_PROCEDURES_ENV}=true in your environment",
                "security_best_practices": _BEST_PRACTICES,
            },
        }
        return json.dumps(payload, indent=2)
