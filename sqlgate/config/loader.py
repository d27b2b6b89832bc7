"""Configuration loading utilities."""

from __future__ import annotations

import json
import os
from pathlib import Path

from loguru import logger

from sqlgate.config.schema import Config
from sqlgate.safety.policy import MODIFICATIONS_ENV, STORED_PROCEDURES_ENV

_TRUTHY = {"true", "yes", "1", "on"}


def get_config_dir() -> Path:
    """Get the SQLGate configuration directory."""
    return Path.home() / ".sqlgate"


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return get_config_dir() / "config.json"


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a true/yes/1/on style flag; unset or empty gives ``default``."""
    if not value:
        return default
    return value.strip().lower() in _TRUTHY


def apply_env_overrides(config: Config) -> Config:
    """Apply ``DB_ALLOW_MODIFICATIONS`` / ``DB_ALLOW_STORED_PROCEDURES`` when set."""
    security = config.security
    if os.environ.get(MODIFICATIONS_ENV):
        security.allow_modifications = parse_bool(os.environ[MODIFICATIONS_ENV])
    if os.environ.get(STORED_PROCEDURES_ENV):
        security.allow_stored_procedures = parse_bool(os.environ[STORED_PROCEDURES_ENV])
    return config


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object, with flag environment overrides applied.
    """
    path = config_path or get_config_path()
    config: Config | None = None

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            config = Config.model_validate(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to load config from {}: {}. Using default configuration.", path, e)

    return apply_env_overrides(config or Config())


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump()

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
