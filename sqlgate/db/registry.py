"""Pick and connect the adapter named by ``DatabaseConfig.type``."""

from __future__ import annotations

from loguru import logger

from sqlgate.config.schema import DatabaseConfig
from sqlgate.db.base import DatabaseAdapter
from sqlgate.db.mysql import MySQLAdapter
from sqlgate.db.postgresql import PostgreSQLAdapter
from sqlgate.db.sqlite import SQLiteAdapter

ADAPTERS: dict[str, type[DatabaseAdapter]] = {
    "mysql": MySQLAdapter,
    "postgresql": PostgreSQLAdapter,
    "sqlite": SQLiteAdapter,
}


def create_adapter(db_type: str) -> DatabaseAdapter:
    """New, unconnected adapter for ``db_type``.

    Raises:
        ValueError: If no adapter handles ``db_type``.
    """
    adapter_cls = ADAPTERS.get(db_type)
    if adapter_cls is None:
        raise ValueError(
            f"Unsupported database type: {db_type!r}. Available: {', '.join(sorted(ADAPTERS))}"
        )
    return adapter_cls()


async def connect_database(config: DatabaseConfig) -> DatabaseAdapter:
    """Create the configured adapter and connect it.

    Unset settings (such as ``port``) are not passed on, so each adapter
    falls back to its own default.
    """
    adapter = create_adapter(config.type)
    params = config.model_dump(exclude={"type"}, exclude_none=True)
    logger.debug("Connecting {} adapter to {}", config.type, params.get("database") or params.get("host"))
    await adapter.connect(**params)
    return adapter
