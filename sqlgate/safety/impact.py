"""Impact estimator: approximate the footprint of a mutation without running it."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from loguru import logger

from sqlgate.db.base import DatabaseAdapter
from sqlgate.errors import EstimationFailedError
from sqlgate.safety.classifier import leading_keyword

PROCEDURE_TABLE_PLACEHOLDER = "Unknown - Stored Procedure"
DEFAULT_LARGE_IMPACT_THRESHOLD = 1000

# [dbo].[Users], dbo.Users, "public"."users", `db`.`t`, users
_NAME = r"(?:\[[^\]]+\]|\"[^\"]+\"|`[^`]+`|\w+)"
_QUALIFIED = rf"{_NAME}(?:\s*\.\s*{_NAME})*"
_TABLE_PATTERN = re.compile(rf"\b(?:FROM|UPDATE|INTO|JOIN)\s+({_QUALIFIED})", re.IGNORECASE)

# opening quote -> closing quote
_QUOTES = {"'": "'", "\"": "\"", "`": "`", "[": "]"}

_DELETE_PATTERN = re.compile(r"^\s*DELETE\s+(?:FROM\s+)?(.*)$", re.IGNORECASE | re.DOTALL)
_UPDATE_PATTERN = re.compile(
    rf"^\s*UPDATE\s+(?:TOP\s*\(\s*\d+\s*\)\s+)?({_QUALIFIED})\s+SET\s+.*?(\s+(?:FROM|WHERE)\s+.*)?$",
    re.IGNORECASE | re.DOTALL,
)


@dataclass
class ImpactEstimate:
    """Approximate row/table footprint of a pending mutation."""

    estimated_rows: int = 0
    affected_tables: list[str] = field(default_factory=list)
    warning: str | None = None


def extract_tables(sql: str) -> list[str]:
    """Best-effort table names after FROM/UPDATE/INTO/JOIN, deduplicated in order.

    Subqueries and CTEs can produce extra or missing names.
    """
    tables: list[str] = []
    for match in _TABLE_PATTERN.finditer(sql):
        name = re.sub(r"\s*\.\s*", ".", match.group(1))
        if name not in tables:
            tables.append(name)
    return tables


def _scan(sql: str, start: int) -> tuple[str, int | None]:
    """Copy ``sql`` from ``start`` up to the next top-level ``;``, dropping comments.

    Returns the copied text and the index of that ``;`` (None at end of input).
    Quoted strings and identifiers are copied verbatim; a doubled closing
    quote stays inside the quote.
    """
    out: list[str] = []
    closing: str | None = None
    i, n = start, len(sql)
    while i < n:
        ch = sql[i]
        if closing is not None:
            out.append(ch)
            if ch == closing:
                if i + 1 < n and sql[i + 1] == closing:
                    out.append(ch)
                    i += 2
                    continue
                closing = None
            i += 1
        elif ch in _QUOTES:
            closing = _QUOTES[ch]
            out.append(ch)
            i += 1
        elif sql.startswith("--", i):
            newline = sql.find("\n", i)
            i = n if newline == -1 else newline
            out.append(" ")
        elif sql.startswith("/*", i):
            close = sql.find("*/", i + 2)
            i = n if close == -1 else close + 2
            out.append(" ")
        elif ch == ";":
            return "".join(out), i
        else:
            out.append(ch)
            i += 1
    return "".join(out), None


def first_statement(sql: str) -> str | None:
    """Return the only statement in ``sql`` with comments removed.

    Trailing semicolons, whitespace and comments are allowed. Returns None
    when anything else follows the first top-level ``;``, or when a ``;``
    survives inside the statement (a quoted literal, or quoting this scanner
    read differently), so the text handed back never holds a second statement.
    """
    statement, end = _scan(sql, 0)
    while end is not None:
        trailing, end = _scan(sql, end + 1)
        if trailing.strip():
            return None
    if ";" in statement:
        return None
    return statement.strip()


def delete_to_count(sql: str) -> str | None:
    """``DELETE FROM t WHERE ...`` to ``SELECT COUNT(*) ... FROM t WHERE ...``."""
    statement = first_statement(sql)
    match = _DELETE_PATTERN.match(statement) if statement else None
    if not match or not match.group(1).strip():
        return None
    return f"SELECT COUNT(*) AS estimated_rows FROM {match.group(1).strip()}"


def update_to_count(sql: str) -> str | None:
    """``UPDATE t SET ... [FROM ...] [WHERE ...]`` to row-count query on the same rows.

    With an ``UPDATE ... FROM`` join the FROM clause is kept as written; the
    target table is assumed to appear in it.
    """
    statement = first_statement(sql)
    match = _UPDATE_PATTERN.match(statement) if statement else None
    if not match:
        return None
    table, tail = match.group(1), (match.group(2) or "").strip()
    if tail.upper().startswith("FROM"):
        return f"SELECT COUNT(*) AS estimated_rows {tail}"
    return f"SELECT COUNT(*) AS estimated_rows FROM {table} {tail}".rstrip()


class ImpactEstimator:
    """Estimates affected rows by rewriting UPDATE/DELETE into a COUNT(*) query.

    The mutating statement itself is never sent to the database. Any failure
    of the count query degrades to ``estimated_rows=0`` with a warning.
    """

    def __init__(self, db: DatabaseAdapter, large_impact_threshold: int = DEFAULT_LARGE_IMPACT_THRESHOLD) -> None:
        self._db = db
        self._threshold = large_impact_threshold

    async def estimate(self, sql: str) -> ImpactEstimate:
        result = ImpactEstimate(affected_tables=extract_tables(sql))
        keyword = leading_keyword(sql)
        if keyword not in ("DELETE", "UPDATE"):
            return result

        count_sql = delete_to_count(sql) if keyword == "DELETE" else update_to_count(sql)
        if count_sql is None:
            result.warning = "Could not estimate the number of affected rows"
            return result

        try:
            result.estimated_rows = await self._count(count_sql)
        except EstimationFailedError as e:
            logger.warning("Impact estimation failed: {}", e)
            result.warning = "Could not estimate the number of affected rows"
            return result

        if result.estimated_rows > self._threshold:
            result.warning = (
                f"Large number of rows may be affected "
                f"({result.estimated_rows} > {self._threshold})"
            )
        return result

    @staticmethod
    def for_procedure() -> ImpactEstimate:
        return ImpactEstimate(estimated_rows=0, affected_tables=[PROCEDURE_TABLE_PLACEHOLDER])

    async def _count(self, count_sql: str) -> int:
        logger.debug("Estimating impact with: {}", count_sql)
        try:
            query = await self._db.execute(count_sql)
        except Exception as e:
            raise EstimationFailedError(str(e)) from e
        if not query.rows or query.rows[0][0] is None:
            return 0
        try:
            return max(int(query.rows[0][0]), 0)
        except (TypeError, ValueError) as e:
            raise EstimationFailedError(f"Unexpected count value: {query.rows[0][0]!r}") from e
