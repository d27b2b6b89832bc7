"""Exceptions raised inside the safety gate.

None of these reach the tool-call layer: the gateway turns them into a
``GatewayResult`` and tools turn results into text.
"""

from __future__ import annotations


class SQLGateError(Exception):
    """Base class for gate errors."""


class ConfigurationBlockedError(SQLGateError):
    """A feature flag disables this category of operation."""

    def __init__(self, flag: str, env_var: str, operation: str) -> None:
        self.flag = flag
        self.env_var = env_var
        self.operation = operation
        super().__init__(f"{operation} blocked: {flag} is disabled (set {env_var}=true to enable)")


class TokenNotFoundError(SQLGateError):
    """Confirmation token is unknown, already used, or expired."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__("Invalid or expired confirmation token. Please propose the operation again.")


class EstimationFailedError(SQLGateError):
    """The read-only row-count query used for impact estimation failed."""


class ExecutionFailedError(SQLGateError):
    """The database rejected the statement or procedure call."""


class AuditWriteFailedError(SQLGateError):
    """An audit record could not be appended."""
