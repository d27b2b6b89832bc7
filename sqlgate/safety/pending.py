"""Pending operation store: TTL-keyed, single-use confirmation slots."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlgate.safety.classifier import RiskClassification
from sqlgate.safety.impact import ImpactEstimate

DEFAULT_TOKEN_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class OperationRequest:
    """A statement or a stored-procedure call as submitted by a tool."""

    sql: str = ""
    procedure: str | None = None
    params: dict[str, Any] = field(default_factory=dict)
    submitted_at: float = 0.0

    @property
    def is_procedure(self) -> bool:
        return self.procedure is not None

    def describe(self) -> str:
        """Statement text used for messages and audit records."""
        if self.procedure is not None:
            return f"EXEC {self.procedure}"
        return self.sql


@dataclass(frozen=True)
class PendingOperation:
    token: str
    request: OperationRequest
    classification: RiskClassification
    impact: ImpactEstimate
    created_at: float


class PendingOperationStore:
    """In-memory map from token to :class:`PendingOperation`.

    Expiry is lazy: an entry older than ``ttl`` is never returned, is
    deleted when looked up, and is swept on the next ``put``. There is no
    background timer. All access is serialized by one lock so ``pop`` is a
    single atomic fetch-and-invalidate.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, PendingOperation] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def _expired(self, entry: PendingOperation, now: float) -> bool:
        return now - entry.created_at > self._ttl

    def put(self, token: str, operation: PendingOperation) -> None:
        with self._lock:
            self._entries[token] = operation
            now = self._clock()
            for key in [k for k, v in self._entries.items() if self._expired(v, now)]:
                del self._entries[key]

    def get(self, token: str) -> PendingOperation | None:
        with self._lock:
            return self._lookup(token)

    def pop(self, token: str) -> PendingOperation | None:
        """Return the live entry for ``token`` and remove it, in one step."""
        with self._lock:
            entry = self._lookup(token)
            if entry is not None:
                del self._entries[token]
            return entry

    def remove(self, token: str) -> None:
        with self._lock:
            self._entries.pop(token, None)

    def _lookup(self, token: str) -> PendingOperation | None:
        entry = self._entries.get(token)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[token]
            return None
        return entry

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return isinstance(token, str) and self._lookup(token) is not None
