"""Security policy: the feature-flag pair and the status derived from it."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlgate.safety.classifier import OperationCategory

MODIFICATIONS_ENV = "DB_ALLOW_MODIFICATIONS"
STORED_PROCEDURES_ENV = "DB_ALLOW_STORED_PROCEDURES"


@dataclass
class SecurityStatus:
    modifications_enabled: bool
    stored_procedures_enabled: bool
    security_level: str
    recommendations: list[str] = field(default_factory=list)


@dataclass
class SecurityPolicy:
    """Which categories of operation are allowed at all.

    Both flags default to False: out of the box only reads run.
    """

    allow_modifications: bool = False
    allow_stored_procedures: bool = False

    def governing_flag(self, category: OperationCategory) -> tuple[str, str] | None:
        """Return ``(flag, env_var)`` gating ``category``, or None for reads."""
        if category is OperationCategory.READ:
            return None
        if category is OperationCategory.EXECUTE:
            return "allow_stored_procedures", STORED_PROCEDURES_ENV
        return "allow_modifications", MODIFICATIONS_ENV

    def allows(self, category: OperationCategory) -> bool:
        flag = self.governing_flag(category)
        if flag is None:
            return True
        return bool(getattr(self, flag[0]))

    def status(self) -> SecurityStatus:
        modifications = self.allow_modifications
        procedures = self.allow_stored_procedures
        recommendations: list[str] = []

        if modifications and procedures:
            level = "LOW"
            recommendations.append("[!] Consider disabling modifications in production")
            recommendations.append("[!] Consider disabling stored procedures in production")
        elif modifications or procedures:
            level = "MEDIUM"
            if modifications:
                recommendations.append("[!] Modifications are enabled - use with caution")
            if procedures:
                recommendations.append("[!] Stored procedures are enabled - use with caution")
        else:
            level = "MAXIMUM"
            recommendations.append("[OK] Optimal security configuration for production")

        return SecurityStatus(
            modifications_enabled=modifications,
            stored_procedures_enabled=procedures,
            security_level=level,
            recommendations=recommendations,
        )
