"""
Startup wiring (``inventory_config.factory``).

Responsibility
--------------
Turns ``LedgerSettings`` into a ready ``InventoryLedger``: configures
logging, selects the storage strategy once, and for the SQL strategy
initializes the engine and creates the schema.

Failure modes
-------------
* ``StorageUnavailableError`` if the database cannot be reached while the
  schema is created.
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from inventory_config.settings import LedgerSettings, load_settings
from inventory_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from inventory_kernel.domain.clock import Clock
from inventory_kernel.exceptions import StorageUnavailableError
from inventory_kernel.logging_config import configure_logging, get_logger
from inventory_kernel.services.retry_policy import RetryPolicy
from inventory_kernel.storage.base import LedgerStorage
from inventory_kernel.storage.memory import MemoryStorage
from inventory_kernel.storage.sql import SqlStorage
from inventory_services.ledger import InventoryLedger

logger = get_logger("config")


def build_storage(settings: LedgerSettings, *, create_schema: bool = True) -> LedgerStorage:
    """Construct the storage strategy named by ``settings.storage_backend``."""
    if settings.storage_backend == "memory":
        return MemoryStorage()

    init_engine_from_url(
        settings.database_url,
        echo=settings.database_echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )
    if create_schema:
        try:
            create_tables()
        except OperationalError as exc:
            raise StorageUnavailableError("sql", str(exc.orig)) from exc
    return SqlStorage(get_session_factory())


def build_ledger(
    settings: LedgerSettings | None = None,
    *,
    clock: Clock | None = None,
    create_schema: bool = True,
) -> InventoryLedger:
    """
    Build the application's InventoryLedger.

    ``settings`` defaults to ``load_settings()``.
    """
    settings = settings or load_settings()
    configure_logging(level=settings.log_level_number)

    storage = build_storage(settings, create_schema=create_schema)
    ledger = InventoryLedger(
        storage,
        clock=clock,
        retry_policy=RetryPolicy(
            max_retries=settings.max_transfer_retries,
            backoff_seconds=settings.retry_backoff_seconds,
        ),
    )
    logger.info(
        "ledger_configured",
        extra={
            "storage_backend": settings.storage_backend,
            "max_transfer_retries": settings.max_transfer_retries,
            "settings_checksum": settings.checksum(),
        },
    )
    return ledger
