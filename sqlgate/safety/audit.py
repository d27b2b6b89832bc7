"""Security audit logger: one JSON object per line, append-only."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger

from sqlgate.errors import AuditWriteFailedError

MAX_SQL_LENGTH = 500
PENDING_CONFIRMATION = "Pending user confirmation"


class AuditResult(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass
class SecurityAuditEvent:
    """One security-relevant decision."""

    operation: str
    sql: str
    risk_level: str
    result: AuditResult
    user_confirmed: bool = False
    estimated_rows: int | None = None
    affected_tables: list[str] | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["timestamp"] = self.timestamp.isoformat()
        record["sql"] = self.sql[:MAX_SQL_LENGTH]
        record["result"] = self.result.value
        return record


def get_default_audit_path() -> Path:
    return Path.home() / ".sqlgate" / "security_audit.log"


class AuditLogger:
    """Appends :class:`SecurityAuditEvent` records to a local file.

    Logging is best effort: a failed write is reported through loguru and
    never reaches the caller, so the gated operation is unaffected.
    """

    def __init__(self, path: Path | str | None = None, enabled: bool = True) -> None:
        self._path = Path(path) if path else get_default_audit_path()
        self._enabled = enabled
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def enabled(self) -> bool:
        return self._enabled

    def log(self, event: SecurityAuditEvent) -> None:
        if not self._enabled:
            return
        try:
            self._append(event)
        except AuditWriteFailedError as e:
            logger.warning("Failed to write security audit log: {}", e)

    def _append(self, event: SecurityAuditEvent) -> None:
        try:
            line = json.dumps(event.to_record(), default=str, ensure_ascii=False)
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with open(self._path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except (OSError, TypeError, ValueError) as e:
            raise AuditWriteFailedError(f"{self._path}: {e}") from e
