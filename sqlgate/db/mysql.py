"""MySQL database adapter."""

from __future__ import annotations

import time
from typing import Any

from loguru import logger

from sqlgate.db.base import DatabaseAdapter, QueryResult

# MySQL CR_* error codes that indicate the TCP connection is broken.
_MYSQL_CONNECTION_ERROR_CODES = frozenset({
    2006,  # CR_SERVER_GONE_ERROR
    2013,  # CR_SERVER_LOST
    2014,  # CR_COMMANDS_OUT_OF_SYNC
    2055,  # CR_SERVER_LOST_EXTENDED
})


def _is_connection_error(exc: BaseException) -> bool:
    """Return True only if *exc* signals a broken TCP/MySQL connection."""
    errno = exc.args[0] if exc.args else None
    if isinstance(errno, int) and errno in _MYSQL_CONNECTION_ERROR_CODES:
        return True
    cause = exc.__cause__ or exc.__context__
    if cause is not None:
        return _is_connection_error(cause)
    return False


class MySQLAdapter(DatabaseAdapter):
    """Async MySQL adapter using aiomysql.

    Statements are never retried: a broken connection is dropped and the
    error propagates, so the next call reconnects. Replaying a mutation
    after a lost connection could apply it twice.
    """

    paramstyle = "format"

    def __init__(self) -> None:
        self._conn: Any = None
        self._database: str = ""
        self._connect_kwargs: dict[str, Any] = {}

    @property
    def db_type(self) -> str:
        return "mysql"

    @property
    def is_connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    async def connect(self, **kwargs: Any) -> None:
        import aiomysql

        self._connect_kwargs = kwargs.copy()
        self._database = kwargs.get("database", "")
        self._conn = await aiomysql.connect(
            host=kwargs.get("host", "localhost"),
            port=kwargs.get("port") or 3306,
            user=kwargs.get("user", "root"),
            password=kwargs.get("password", ""),
            db=self._database,
            autocommit=True,
            charset="utf8mb4",
        )

    async def _ensure_connected(self) -> None:
        if self.is_connected:
            return
        if not self._connect_kwargs:
            raise RuntimeError("Not connected")
        logger.info("Reconnecting to MySQL...")
        await self.connect(**self._connect_kwargs)

    async def close(self) -> None:
        self._close_conn()

    def _close_conn(self) -> None:
        if self._conn:
            try:
                self._conn.close()
            except Exception as e:
                logger.debug("Ignoring error while closing MySQL connection: {}", e)
            self._conn = None

    async def execute(self, sql: str, params: tuple | None = None) -> QueryResult:
        await self._ensure_connected()
        # Without params the driver still treats % as a format marker (LIKE '%x%').
        if not params:
            sql = sql.replace("%", "%%")
        start = time.monotonic()
        try:
            async with self._conn.cursor() as cur:
                await cur.execute(sql, params or ())
                return await self._collect(cur, start)
        except Exception as e:
            if _is_connection_error(e):
                logger.warning("MySQL connection lost: {}", e)
                self._close_conn()
            raise

    async def call_procedure(self, name: str, params: dict[str, Any] | None = None) -> QueryResult:
        await self._ensure_connected()
        values = tuple((params or {}).values())
        placeholders = ", ".join(["%s"] * len(values))
        sql = f"CALL {self.quote_identifier(name)}({placeholders})"
        start = time.monotonic()
        try:
            async with self._conn.cursor() as cur:
                await cur.execute(sql, values)
                return await self._collect(cur, start)
        except Exception as e:
            if _is_connection_error(e):
                logger.warning("MySQL connection lost: {}", e)
                self._close_conn()
            raise

    @staticmethod
    async def _collect(cur: Any, start: float) -> QueryResult:
        description = cur.description
        columns = [d[0] for d in description] if description else []
        rows = [tuple(r) for r in await cur.fetchall()] if description else []
        elapsed = (time.monotonic() - start) * 1000
        return QueryResult(
            columns=columns,
            rows=rows,
            affected_rows=cur.rowcount if cur.rowcount >= 0 else 0,
            execution_time_ms=round(elapsed, 2),
        )
