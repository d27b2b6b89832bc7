"""SQLite database adapter."""

from __future__ import annotations

import time
from typing import Any

import aiosqlite

from sqlgate.db.base import DatabaseAdapter, QueryResult


class SQLiteAdapter(DatabaseAdapter):
    """Async SQLite adapter using aiosqlite."""

    paramstyle = "qmark"

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._db_path: str = ""

    @property
    def db_type(self) -> str:
        return "sqlite"

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self, **kwargs: Any) -> None:
        database = kwargs.get("database", "")
        if not database:
            raise ValueError("SQLite requires a 'database' path")
        self._db_path = database
        self._conn = await aiosqlite.connect(database)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA foreign_keys = ON")

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def execute(self, sql: str, params: tuple | None = None) -> QueryResult:
        if not self._conn:
            raise RuntimeError("Not connected")
        start = time.monotonic()
        cursor = await self._conn.execute(sql, params or ())
        description = cursor.description
        columns = [d[0] for d in description] if description else []
        rows = [tuple(r) for r in await cursor.fetchall()]
        await self._conn.commit()
        elapsed = (time.monotonic() - start) * 1000
        return QueryResult(
            columns=columns,
            rows=rows,
            affected_rows=cursor.rowcount if cursor.rowcount >= 0 else 0,
            execution_time_ms=round(elapsed, 2),
        )

    async def call_procedure(self, name: str, params: dict[str, Any] | None = None) -> QueryResult:
        raise NotImplementedError("SQLite does not support stored procedures")
