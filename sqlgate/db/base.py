"""Database adapter abstract base classes and data types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class QueryResult:
    """Result of a database query or procedure call."""

    columns: list[str] = field(default_factory=list)
    rows: list[tuple] = field(default_factory=list)
    affected_rows: int = 0
    execution_time_ms: float = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def records(self) -> list[dict[str, Any]]:
        """Rows as column-name dicts (the recordset shape tools return)."""
        return [dict(zip(self.columns, row)) for row in self.rows]

    def to_text(self, max_rows: int = 100) -> str:
        """Format as a readable text table."""
        if not self.columns:
            return f"(no columns, {self.affected_rows} rows affected)"
        lines = [" | ".join(self.columns)]
        lines.append("-+-".join("-" * max(len(c), 4) for c in self.columns))
        for row in self.rows[:max_rows]:
            lines.append(" | ".join(str(v) for v in row))
        if len(self.rows) > max_rows:
            lines.append(f"... ({len(self.rows) - max_rows} more rows)")
        return "\n".join(lines)


class DatabaseAdapter(ABC):
    """Base adapter interface for all database types."""

    #: Placeholder style used by ``execute`` params: "qmark", "format" or "numeric".
    paramstyle: str = "qmark"

    @abstractmethod
    async def connect(self, **kwargs: Any) -> None:
        """Establish connection to the database."""

    @abstractmethod
    async def close(self) -> None:
        """Close the database connection."""

    @abstractmethod
    async def execute(self, sql: str, params: tuple | None = None) -> QueryResult:
        """Execute a SQL statement and return results."""

    @abstractmethod
    async def call_procedure(self, name: str, params: dict[str, Any] | None = None) -> QueryResult:
        """Invoke a stored procedure with named parameters."""

    @property
    @abstractmethod
    def db_type(self) -> str:
        """Return the database type identifier (e.g. 'mysql', 'sqlite')."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the adapter currently has an active connection."""

    def placeholder(self, index: int) -> str:
        """Return the bind placeholder for the 1-based parameter ``index``."""
        if self.paramstyle == "numeric":
            return f"${index}"
        if self.paramstyle == "format":
            return "%s"
        return "?"

    def quote_identifier(self, name: str) -> str:
        """Quote a possibly schema-qualified identifier for this dialect.

        Existing brackets, backticks and double quotes are stripped first so
        ``[dbo].[Users]`` and ``dbo.Users`` quote the same way.
        """
        parts = [p.strip().strip("[]`\"") for p in name.split(".") if p.strip()]
        if not parts:
            raise ValueError(f"Invalid identifier: {name!r}")
        if self.db_type == "mysql":
            return ".".join("`" + p.replace("`", "``") + "`" for p in parts)
        return ".".join('"' + p.replace('"', '""') + '"' for p in parts)
