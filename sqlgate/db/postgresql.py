"""PostgreSQL database adapter."""

from __future__ import annotations

import time
from typing import Any

from sqlgate.db.base import DatabaseAdapter, QueryResult


class PostgreSQLAdapter(DatabaseAdapter):
    """Async PostgreSQL adapter using asyncpg."""

    paramstyle = "numeric"

    def __init__(self) -> None:
        self._conn: Any = None
        self._database: str = ""

    @property
    def db_type(self) -> str:
        return "postgresql"

    @property
    def is_connected(self) -> bool:
        return self._conn is not None and not self._conn.is_closed()

    async def connect(self, **kwargs: Any) -> None:
        import asyncpg

        self._database = kwargs.get("database", "")
        self._conn = await asyncpg.connect(
            host=kwargs.get("host", "localhost"),
            port=kwargs.get("port") or 5432,
            user=kwargs.get("user", "postgres"),
            password=kwargs.get("password", ""),
            database=self._database,
        )

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def execute(self, sql: str, params: tuple | None = None) -> QueryResult:
        if not self._conn:
            raise RuntimeError("Not connected")
        start = time.monotonic()
        stmt = await self._conn.prepare(sql)
        columns = [attr.name for attr in stmt.get_attributes()] if stmt.get_attributes() else []

        if columns:
            records = await stmt.fetch(*(params or ()))
            rows = [tuple(r) for r in records]
            affected_rows = len(rows)
        else:
            result_status = await self._conn.execute(sql, *(params or ()))
            rows = []
            try:
                affected_rows = int(result_status.split()[-1])
            except (ValueError, IndexError, AttributeError):
                affected_rows = 0

        elapsed = (time.monotonic() - start) * 1000
        return QueryResult(
            columns=columns,
            rows=rows,
            affected_rows=affected_rows,
            execution_time_ms=round(elapsed, 2),
        )

    async def call_procedure(self, name: str, params: dict[str, Any] | None = None) -> QueryResult:
        params = params or {}
        # Named notation: CALL proc(p_id => $1, p_name => $2)
        args = ", ".join(
            f"{self.quote_identifier(key)} => ${i}" for i, key in enumerate(params, start=1)
        )
        return await self.execute(
            f"CALL {self.quote_identifier(name)}({args})",
            tuple(params.values()),
        )
