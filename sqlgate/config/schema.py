"""Configuration schema using Pydantic."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from sqlgate.safety.classifier import DEFAULT_READ_PROCEDURE_PREFIXES


class Base(BaseModel):
    """Base model with convenient defaults."""

    model_config = ConfigDict(populate_by_name=True)


class DatabaseConfig(Base):
    """Database connection configuration."""

    type: Literal["mysql", "sqlite", "postgresql"] = "sqlite"
    host: str = "localhost"
    port: int | None = None
    database: str = ""
    user: str = ""
    password: str = ""


class SecurityConfig(Base):
    """Safety gate configuration. Both feature flags default to off."""

    allow_modifications: bool = False
    allow_stored_procedures: bool = False
    token_ttl_seconds: float = Field(default=300.0, gt=0)
    large_impact_threshold: int = Field(default=1000, ge=0)
    read_procedure_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_READ_PROCEDURE_PREFIXES)
    )
    audit_enabled: bool = True
    audit_log_path: str = ""  # empty: ~/.sqlgate/security_audit.log


class ToolsConfig(Base):
    """Tool-call surface configuration."""

    max_rows: int = Field(default=100, ge=1)


class Config(BaseSettings):
    """Root configuration for SQLGate."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    model_config = ConfigDict(env_prefix="SQLGATE_", env_nested_delimiter="__")
