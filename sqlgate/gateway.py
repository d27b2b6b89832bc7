"""Execution gateway: the propose, confirm and execute state machine.

Every statement or procedure call from the tool layer enters here::

    RECEIVED -> CLASSIFIED -> BLOCKED                      (flag disabled)
                           -> DIRECT_EXECUTE -> EXECUTED   (read-only)
                           -> AWAITING_CONFIRMATION -> EXECUTED | EXPIRED

A blocked request never touches the database. An awaiting request is only
estimated (read-only COUNT query) and parked under a single-use token until
``confirm_and_execute`` is called with that token inside the TTL.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from loguru import logger

from sqlgate.config.schema import SecurityConfig
from sqlgate.db.base import DatabaseAdapter, QueryResult
from sqlgate.errors import ConfigurationBlockedError, ExecutionFailedError, TokenNotFoundError
from sqlgate.safety.audit import (
    PENDING_CONFIRMATION,
    AuditLogger,
    AuditResult,
    SecurityAuditEvent,
)
from sqlgate.safety.classifier import OperationClassifier, RiskClassification
from sqlgate.safety.impact import DEFAULT_LARGE_IMPACT_THRESHOLD, ImpactEstimate, ImpactEstimator
from sqlgate.safety.pending import (
    DEFAULT_TOKEN_TTL_SECONDS,
    OperationRequest,
    PendingOperation,
    PendingOperationStore,
)
from sqlgate.safety.policy import SecurityPolicy, SecurityStatus
from sqlgate.safety.tokens import TokenIssuer


class GatewayStatus(str, Enum):
    EXECUTED = "EXECUTED"
    BLOCKED = "BLOCKED"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"


@dataclass
class GatewayResult:
    """What the gateway hands back to a tool."""

    status: GatewayStatus
    message: str = ""
    rows: list[dict[str, Any]] = field(default_factory=list)
    rows_affected: int = 0
    token: str | None = None
    classification: RiskClassification | None = None
    impact: ImpactEstimate | None = None


class ExecutionGateway:
    """Owns the pending-operation store and drives every gated call.

    ``clock`` and ``token_factory`` are injectable so tests can control
    expiry and token values. One instance per process.
    """

    def __init__(
        self,
        db: DatabaseAdapter,
        policy: SecurityPolicy | None = None,
        audit: AuditLogger | None = None,
        classifier: OperationClassifier | None = None,
        clock: Callable[[], float] = time.monotonic,
        token_factory: Callable[[], str] | None = None,
        token_ttl: float = DEFAULT_TOKEN_TTL_SECONDS,
        large_impact_threshold: int = DEFAULT_LARGE_IMPACT_THRESHOLD,
    ) -> None:
        self._db = db
        self._policy = policy or SecurityPolicy()
        self._audit = audit or AuditLogger()
        self._classifier = classifier or OperationClassifier()
        self._estimator = ImpactEstimator(db, large_impact_threshold=large_impact_threshold)
        self._clock = clock
        self._new_token = token_factory or TokenIssuer(clock=clock)
        self._store = PendingOperationStore(ttl=token_ttl, clock=clock)

    @property
    def policy(self) -> SecurityPolicy:
        return self._policy

    @property
    def pending(self) -> PendingOperationStore:
        return self._store

    # -- Entry points ---------------------------------------------------------

    async def propose_query(self, sql: str) -> GatewayResult:
        sql_stripped = (sql or "").strip()
        if not sql_stripped:
            return GatewayResult(status=GatewayStatus.FAILED, message="Empty or invalid query")
        request = OperationRequest(sql=sql_stripped, submitted_at=self._clock())
        classification = self._classifier.classify(sql_stripped)
        logger.debug(
            "Classified {} as {} (confirmation={})",
            classification.operation, classification.risk_level.value,
            classification.requires_confirmation,
        )
        return await self._dispatch(request, classification)

    async def propose_procedure(self, name: str, params: dict[str, Any] | None = None) -> GatewayResult:
        name = (name or "").strip()
        if not name:
            return GatewayResult(status=GatewayStatus.FAILED, message="Stored procedure name is required")
        request = OperationRequest(procedure=name, params=dict(params or {}), submitted_at=self._clock())
        classification = self._classifier.classify_procedure(name)
        return await self._dispatch(request, classification)

    async def confirm_and_execute(self, token: str) -> GatewayResult:
        pending = self._store.pop((token or "").strip())
        if pending is None:
            err = TokenNotFoundError(token)
            logger.info("Confirmation rejected: unknown or expired token {}", token)
            return GatewayResult(status=GatewayStatus.EXPIRED, message=str(err))

        request, classification = pending.request, pending.classification
        try:
            result = await self._run(request)
        except ExecutionFailedError as e:
            self._audit_event(request, classification, AuditResult.FAILED,
                              confirmed=True, impact=pending.impact, error=str(e))
            return GatewayResult(
                status=GatewayStatus.FAILED,
                message=str(e),
                classification=classification,
                impact=pending.impact,
            )

        self._audit_event(request, classification, AuditResult.SUCCESS,
                          confirmed=True, impact=pending.impact)
        logger.info("Confirmed {} executed: {} row(s) affected",
                    classification.operation, result.affected_rows)
        return GatewayResult(
            status=GatewayStatus.EXECUTED,
            message=f"Operation executed successfully. {result.affected_rows} rows affected.",
            rows=result.records(),
            rows_affected=result.affected_rows,
            classification=classification,
            impact=pending.impact,
        )

    def get_security_status(self) -> SecurityStatus:
        return self._policy.status()

    # -- State transitions ----------------------------------------------------

    async def _dispatch(self, request: OperationRequest, classification: RiskClassification) -> GatewayResult:
        if not self._policy.allows(classification.category):
            return self._block(request, classification)
        if not classification.requires_confirmation:
            return await self._execute_direct(request, classification)
        return await self._await_confirmation(request, classification)

    def _block(self, request: OperationRequest, classification: RiskClassification) -> GatewayResult:
        flag, env_var = self._policy.governing_flag(classification.category)
        err = ConfigurationBlockedError(flag, env_var, request.describe()[:100])
        self._audit_event(request, classification, AuditResult.CANCELLED, error=str(err))
        logger.info("Blocked {}: {} is disabled", classification.operation, flag)
        return GatewayResult(
            status=GatewayStatus.BLOCKED,
            message=self._blocked_message(err, request),
            classification=classification,
        )

    async def _execute_direct(self, request: OperationRequest, classification: RiskClassification) -> GatewayResult:
        try:
            result = await self._run(request)
        except ExecutionFailedError as e:
            self._audit_event(request, classification, AuditResult.FAILED, error=str(e))
            return GatewayResult(status=GatewayStatus.FAILED, message=str(e), classification=classification)

        self._audit_event(request, classification, AuditResult.SUCCESS)
        return GatewayResult(
            status=GatewayStatus.EXECUTED,
            message=f"Returned {result.row_count} row(s) in {result.execution_time_ms:.1f}ms",
            rows=result.records(),
            rows_affected=result.affected_rows,
            classification=classification,
        )

    async def _await_confirmation(
        self, request: OperationRequest, classification: RiskClassification
    ) -> GatewayResult:
        if request.is_procedure:
            impact = self._estimator.for_procedure()
        else:
            impact = await self._estimator.estimate(request.sql)

        token = self._new_token()
        self._store.put(token, PendingOperation(
            token=token,
            request=request,
            classification=classification,
            impact=impact,
            created_at=self._clock(),
        ))
        self._audit_event(request, classification, AuditResult.CANCELLED,
                          impact=impact, error=PENDING_CONFIRMATION)
        logger.info("{} awaiting confirmation ({} risk)",
                    classification.operation, classification.risk_level.value)
        return GatewayResult(
            status=GatewayStatus.AWAITING_CONFIRMATION,
            message=self._confirmation_message(request, classification, impact, token),
            token=token,
            classification=classification,
            impact=impact,
        )

    async def _run(self, request: OperationRequest) -> QueryResult:
        try:
            if request.is_procedure:
                return await self._db.call_procedure(request.procedure, request.params)
            return await self._db.execute(request.sql)
        except Exception as e:
            raise ExecutionFailedError(str(e) or e.__class__.__name__) from e

    # -- Helpers --------------------------------------------------------------

    def _audit_event(
        self,
        request: OperationRequest,
        classification: RiskClassification,
        result: AuditResult,
        confirmed: bool = False,
        impact: ImpactEstimate | None = None,
        error: str | None = None,
    ) -> None:
        self._audit.log(SecurityAuditEvent(
            operation=classification.operation,
            sql=request.describe(),
            risk_level=classification.risk_level.value,
            result=result,
            user_confirmed=confirmed,
            estimated_rows=impact.estimated_rows if impact else None,
            affected_tables=list(impact.affected_tables) if impact else None,
            error=error,
        ))

    def _blocked_message(self, err: ConfigurationBlockedError, request: OperationRequest) -> str:
        what = "Stored procedure execution" if err.flag == "allow_stored_procedures" else "Database modifications"
        lines = [
            f"[X] OPERATION BLOCKED: {what} are disabled for security.",
            "",
            f"[*] REQUESTED OPERATION: {err.operation}",
            "",
            f"[+] TO ENABLE: set {err.env_var}=true (or security.{err.flag} in config).",
            "",
            "[#] CURRENT CONFIGURATION:",
            f"- allow_modifications: {self._policy.allow_modifications}",
            f"- allow_stored_procedures: {self._policy.allow_stored_procedures}",
        ]
        if request.is_procedure:
            lines += ["", "[i] The procedure was not executed."]
        return "\n".join(lines)

    def _confirmation_message(
        self,
        request: OperationRequest,
        classification: RiskClassification,
        impact: ImpactEstimate,
        token: str,
    ) -> str:
        lines = [
            "SECURITY CONFIRMATION REQUIRED",
            "",
            f"Operation: {classification.operation}",
            f"Risk Level: {classification.risk_level.value}",
            f"Reason: {classification.reason}",
            "",
        ]
        if request.is_procedure:
            lines.append(f"Procedure: {request.procedure}")
            if request.params:
                lines.append(f"Parameters: {json.dumps(request.params, default=str)}")
        else:
            sql = request.sql
            lines.append(f"SQL: {sql[:200]}{'...' if len(sql) > 200 else ''}")
        lines.append(f"Estimated affected rows: {impact.estimated_rows}")
        if impact.affected_tables:
            lines.append(f"Affected tables: {', '.join(impact.affected_tables)}")
        if impact.warning:
            lines.append(f"Warning: {impact.warning}")
        minutes = self._store.ttl / 60
        lines += [
            "",
            "TO CONFIRM AND EXECUTE:",
            "Use the confirm_and_execute tool",
            f"With token: {token}",
            "",
            f"This token expires in {minutes:g} minutes.",
            "The operation has NOT been executed yet.",
        ]
        return "\n".join(lines)


def build_gateway(db: DatabaseAdapter, security: SecurityConfig, **kwargs: Any) -> ExecutionGateway:
    """Wire a gateway from the ``security`` config section."""
    return ExecutionGateway(
        db,
        policy=SecurityPolicy(
            allow_modifications=security.allow_modifications,
            allow_stored_procedures=security.allow_stored_procedures,
        ),
        audit=AuditLogger(security.audit_log_path or None, enabled=security.audit_enabled),
        classifier=OperationClassifier(security.read_procedure_prefixes),
        token_ttl=security.token_ttl_seconds,
        large_impact_threshold=security.large_impact_threshold,
        **kwargs,
    )
