"""Read-only table preview tool."""

from __future__ import annotations

import json
from typing import Any

from sqlgate.db.base import DatabaseAdapter
from sqlgate.tools.base import Tool


class PreviewDataTool(Tool):
    """Return the first rows of a table, optionally filtered by column equality.

    Filter values are bound as parameters; table and column names are quoted
    for the adapter's dialect. ``None`` filters become ``IS NULL``.
    """

    def __init__(self, db: DatabaseAdapter, max_rows: int = 100) -> None:
        self._db = db
        self._max_rows = max_rows

    @property
    def name(self) -> str:
        return "preview_data"

    @property
    def description(self) -> str:
        return (
            "Preview rows from a table with optional equality filters. "
            f"Returns at most {self._max_rows} rows."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "table_name": {
                    "type": "string",
                    "description": "Table name, optionally schema-qualified.",
                },
                "filters": {
                    "type": "object",
                    "description": "Column name to value map; rows must match all of them.",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum rows to return.",
                    "minimum": 1,
                },
            },
            "required": ["table_name"],
        }

    def build_query(
        self, table_name: str, filters: dict[str, Any] | None, limit: int
    ) -> tuple[str, tuple]:
        sql = f"SELECT * FROM {self._db.quote_identifier(table_name)}"
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (filters or {}).items():
            quoted = self._db.quote_identifier(column)
            if value is None:
                clauses.append(f"{quoted} IS NULL")
            else:
                params.append(value)
                clauses.append(f"{quoted} = {self._db.placeholder(len(params))}")
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" LIMIT {int(limit)}"
        return sql, tuple(params)

    async def execute(
        self,
        table_name: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        **kwargs: Any,
    ) -> str:
        limit = min(limit or self._max_rows, self._max_rows)
        try:
            sql, params = self.build_query(table_name, filters, limit)
            result = await self._db.execute(sql, params or None)
        except Exception as e:
            return f"Error: {e}"
        if result.row_count == 0:
            return f"Preview of {table_name}: (no rows)"
        rows = json.dumps(result.records(), default=str, indent=2, ensure_ascii=False)
        return f"Preview of {table_name}: {result.row_count} row(s)\n\n{rows}"
