"""Tools exposed to the tool-call layer."""

from __future__ import annotations

from sqlgate.db.base import DatabaseAdapter
from sqlgate.gateway import ExecutionGateway
from sqlgate.tools.base import Tool
from sqlgate.tools.confirm import ConfirmAndExecuteTool
from sqlgate.tools.preview import PreviewDataTool
from sqlgate.tools.procedure import ExecuteProcedureTool
from sqlgate.tools.query import ExecuteQueryTool
from sqlgate.tools.registry import ToolRegistry
from sqlgate.tools.security import SecurityStatusTool


def build_default_registry(
    gateway: ExecutionGateway, db: DatabaseAdapter, max_rows: int = 100
) -> ToolRegistry:
    """Register every gate tool against one gateway and adapter."""
    registry = ToolRegistry()
    registry.register(ExecuteQueryTool(gateway, max_rows=max_rows))
    registry.register(ExecuteProcedureTool(gateway, max_rows=max_rows))
    registry.register(ConfirmAndExecuteTool(gateway, max_rows=max_rows))
    registry.register(SecurityStatusTool(gateway))
    registry.register(PreviewDataTool(db, max_rows=max_rows))
    return registry


__all__ = [
    "ConfirmAndExecuteTool",
    "ExecuteProcedureTool",
    "ExecuteQueryTool",
    "PreviewDataTool",
    "SecurityStatusTool",
    "Tool",
    "ToolRegistry",
    "build_default_registry",
]
