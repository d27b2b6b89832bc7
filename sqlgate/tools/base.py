"""Tool base classes: parameter checking and gateway result rendering."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from sqlgate.gateway import ExecutionGateway, GatewayResult, GatewayStatus

# JSON-schema type -> accepted Python types. bool is rejected for numbers separately.
_JSON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


def check_value(name: str, value: Any, spec: dict[str, Any]) -> list[str]:
    """Check one argument against its property schema."""
    expected = spec.get("type")
    accepted = _JSON_TYPES.get(expected)
    if accepted is not None:
        is_bool_number = isinstance(value, bool) and expected in ("integer", "number")
        if is_bool_number or not isinstance(value, accepted):
            return [f"{name} should be {expected}"]

    errors: list[str] = []
    if expected in ("integer", "number"):
        if "minimum" in spec and value < spec["minimum"]:
            errors.append(f"{name} must be >= {spec['minimum']}")
        if "maximum" in spec and value > spec["maximum"]:
            errors.append(f"{name} must be <= {spec['maximum']}")
    return errors


def render_result(result: GatewayResult, max_rows: int = 100) -> str:
    """Turn a gateway result into tool output text.

    Executed results carry a JSON payload; parked operations are prefixed with
    ``SECURITY_CONFIRMATION_REQUIRED``; everything else is an ``Error:`` line.
    """
    if result.status is GatewayStatus.EXECUTED:
        rows = result.rows
        payload = {
            "rows_affected": result.rows_affected,
            "row_count": len(rows),
            "rows": rows[:max_rows],
        }
        text = f"{result.message}\n\n{json.dumps(payload, default=str, indent=2, ensure_ascii=False)}"
        if len(rows) > max_rows:
            text += f"\n... ({len(rows) - max_rows} more rows)"
        return text
    if result.status is GatewayStatus.AWAITING_CONFIRMATION:
        return f"SECURITY_CONFIRMATION_REQUIRED: {result.message}"
    return f"Error: {result.message}"


class Tool(ABC):
    """A named operation with a flat JSON-schema parameter object.

    Tools return text. Errors the caller should see come back as
    ``"Error: ..."`` strings rather than exceptions.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name used in function calls."""

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema of the tool's arguments (an object with properties)."""

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        ...

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Return a list of problems with ``params``; empty when they are usable.

        Optional arguments may be null. Arguments the schema does not
        describe are left to the tool.
        """
        schema = self.parameters or {}
        properties: dict[str, Any] = schema.get("properties", {})
        required: list[str] = schema.get("required", [])

        errors = [f"missing required {key}" for key in required if params.get(key) is None]
        for key, value in params.items():
            if key not in properties or value is None:
                continue
            errors.extend(check_value(key, value, properties[key]))
        return errors

    def to_schema(self) -> dict[str, Any]:
        """OpenAI function-calling schema for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class GatewayTool(Tool):
    """A tool that forwards to an :class:`ExecutionGateway` and renders its result."""

    def __init__(self, gateway: ExecutionGateway, max_rows: int = 100) -> None:
        self._gateway = gateway
        self._max_rows = max_rows

    def render(self, result: GatewayResult) -> str:
        return render_result(result, self._max_rows)
