"""Operation classifier: leading-keyword risk heuristic.

This is not a SQL parser. The first keyword of the normalized
statement decides everything, so:

* only the first statement of a multi-statement batch is classified;
* a keyword inside a string literal or identifier can still match.

Anything that is not a recognized keyword is treated as HIGH risk.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class OperationCategory(str, Enum):
    """Coarse category used to pick the governing feature flag."""

    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RiskClassification:
    """Outcome of classifying one statement or procedure call."""

    operation: str
    risk_level: RiskLevel
    requires_confirmation: bool
    reason: str
    category: OperationCategory


WRITE_KEYWORDS = frozenset({
    "INSERT", "UPDATE", "DELETE", "ALTER", "DROP", "TRUNCATE",
    "CREATE", "MERGE", "BULK", "EXEC", "EXECUTE",
})

READ_KEYWORDS = frozenset({"SELECT", "SHOW", "DESCRIBE", "DESC", "EXPLAIN", "WITH"})

_EXECUTE_KEYWORDS = frozenset({"EXEC", "EXECUTE"})

_RISK_TABLE: dict[str, tuple[RiskLevel, str]] = {
    "DELETE": (RiskLevel.HIGH, "High-risk DELETE operation that can permanently remove data"),
    "DROP": (RiskLevel.HIGH, "High-risk DROP operation that can permanently remove data or structure"),
    "TRUNCATE": (RiskLevel.HIGH, "High-risk TRUNCATE operation that can permanently remove data"),
    "ALTER": (RiskLevel.HIGH, "Schema modification operation that can affect database structure"),
    "UPDATE": (RiskLevel.MEDIUM, "Data modification operation that updates existing records"),
    "INSERT": (RiskLevel.LOW, "Data insertion operation that adds new records"),
}

DEFAULT_READ_PROCEDURE_PREFIXES = ("Get", "Select", "Search", "Find", "List", "View")

PROCEDURE_OPERATION = "EXECUTE"

_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")
_LEADING_WORD = re.compile(r"[A-Z_]+")


def normalize_sql(sql: str) -> str:
    """Strip comments, collapse whitespace and upper-case."""
    text = _BLOCK_COMMENT.sub(" ", sql or "")
    text = _LINE_COMMENT.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip().upper()


def leading_keyword(sql: str) -> str:
    """Return the first keyword of ``sql`` or ``""`` for an empty statement.

    A leading ``(`` or trailing ``;`` does not hide the keyword:
    ``(SELECT 1)`` and ``DELETE;`` both resolve.
    """
    normalized = normalize_sql(sql).lstrip("(")
    match = _LEADING_WORD.match(normalized)
    return match.group(0) if match else ""


def classify_statement(sql: str) -> RiskClassification:
    """Classify a raw SQL statement by its leading keyword."""
    keyword = leading_keyword(sql)

    if keyword in READ_KEYWORDS:
        return RiskClassification(
            operation=keyword,
            risk_level=RiskLevel.LOW,
            requires_confirmation=False,
            reason=f"Read-only {keyword} operation",
            category=OperationCategory.READ,
        )

    if keyword in WRITE_KEYWORDS:
        level, reason = _RISK_TABLE.get(
            keyword,
            (RiskLevel.MEDIUM, f"Detected {keyword} operation which modifies data"),
        )
        category = OperationCategory.EXECUTE if keyword in _EXECUTE_KEYWORDS else OperationCategory.WRITE
        return RiskClassification(
            operation=keyword,
            risk_level=level,
            requires_confirmation=True,
            reason=reason,
            category=category,
        )

    return RiskClassification(
        operation=keyword or "UNKNOWN",
        risk_level=RiskLevel.HIGH,
        requires_confirmation=True,
        reason="Unknown SQL operation - requires confirmation for safety",
        category=OperationCategory.UNKNOWN,
    )


def _unqualified_name(name: str) -> str:
    last = name.strip().split(".")[-1]
    return last.strip().strip("[]`\"")


def _read_prefix_pattern(prefixes: Iterable[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(p) for p in prefixes)
    return re.compile(rf"^(?:usp_)?(?:{alternatives})", re.IGNORECASE)


class OperationClassifier:
    """Classifies statements and stored-procedure calls.

    Procedure bodies are never inspected: a name matching one of the read
    prefixes (optionally after ``usp_``) runs without confirmation, any
    other name is MEDIUM and must be confirmed.
    """

    def __init__(self, read_procedure_prefixes: Iterable[str] | None = None) -> None:
        if read_procedure_prefixes is None:
            read_procedure_prefixes = DEFAULT_READ_PROCEDURE_PREFIXES
        prefixes = tuple(read_procedure_prefixes)
        self._read_procedure = _read_prefix_pattern(prefixes) if prefixes else None

    def classify(self, sql: str) -> RiskClassification:
        return classify_statement(sql)

    def classify_procedure(self, name: str) -> RiskClassification:
        bare = _unqualified_name(name)
        if self._read_procedure is not None and self._read_procedure.match(bare):
            return RiskClassification(
                operation=PROCEDURE_OPERATION,
                risk_level=RiskLevel.LOW,
                requires_confirmation=False,
                reason=f"Read-only stored procedure {bare}",
                category=OperationCategory.EXECUTE,
            )
        return RiskClassification(
            operation=PROCEDURE_OPERATION,
            risk_level=RiskLevel.MEDIUM,
            requires_confirmation=True,
            reason="Stored procedure execution may modify data",
            category=OperationCategory.EXECUTE,
        )
