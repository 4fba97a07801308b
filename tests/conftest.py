"""
Pytest fixtures for the inventory ledger test suite.

Provides:
- Storage strategies: in-process memory, SQLite (in-memory and file backed)
  and, when DATABASE_URL points at one, PostgreSQL
- A deterministic clock and a ready InventoryLedger over each strategy
- Captured structured logs

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL. Tests marked ``postgres`` are
  skipped unless it is set to a postgresql:// URL.
"""

import json
import logging
import os
from io import StringIO

import pytest

from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from inventory_kernel.db.immutability import unregister_immutability_listeners
from inventory_kernel.domain.capabilities import Role
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.dtos import Actor
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.services.retry_policy import RetryPolicy
from inventory_kernel.storage.memory import MemoryStorage
from inventory_kernel.storage.sql import SqlStorage
from inventory_services.ledger import InventoryLedger

# User ids used across the suite
KEEPER_ID = 1
REP_A_ID = 10
REP_B_ID = 11
REP_C_ID = 12


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.transfer(...)
            logs = captured_logs()
            assert any(r["message"] == "transfer_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


def get_postgres_url() -> str | None:
    """DATABASE_URL when it names a PostgreSQL database, else None."""
    url = os.environ.get("DATABASE_URL", "")
    return url if url.startswith("postgresql") else None


# =============================================================================
# Storage fixtures
# =============================================================================


def _sql_storage(database_url: str):
    init_engine_from_url(database_url)
    create_tables()
    storage = SqlStorage(get_session_factory())
    try:
        yield storage
    finally:
        drop_tables()
        reset_engine()
        unregister_immutability_listeners()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def sqlite_storage():
    """SQL strategy over a single-connection in-memory SQLite database."""
    yield from _sql_storage("sqlite://")


@pytest.fixture
def file_sqlite_storage(tmp_path):
    """SQL strategy over a SQLite file; safe to share between threads."""
    yield from _sql_storage(f"sqlite:///{tmp_path / 'ledger.db'}")


@pytest.fixture
def postgres_storage():
    url = get_postgres_url()
    if url is None:
        pytest.skip("DATABASE_URL does not point at PostgreSQL")
    yield from _sql_storage(url)


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    """Every test using this fixture runs once per storage strategy."""
    if request.param == "memory":
        return request.getfixturevalue("memory_storage")
    return request.getfixturevalue("sqlite_storage")


@pytest.fixture(params=["memory", "file_sqlite"])
def threaded_storage(request):
    """Storage strategies that tolerate concurrent worker threads."""
    if request.param == "memory":
        return request.getfixturevalue("memory_storage")
    return request.getfixturevalue("file_sqlite_storage")


# =============================================================================
# Clock, actors and ledger
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def no_wait_retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, backoff_seconds=0)


@pytest.fixture
def keeper() -> Actor:
    """A stock keeper: may create, restock, write off and move stock."""
    return Actor(id=KEEPER_ID, role=Role.STOCK_KEEPER)


@pytest.fixture
def medical_rep() -> Actor:
    """A medical rep: holds no capabilities."""
    return Actor(id=REP_A_ID, role=Role.MEDICAL_REP)


@pytest.fixture
def ledger(storage, deterministic_clock, no_wait_retry_policy) -> InventoryLedger:
    return InventoryLedger(
        storage, clock=deterministic_clock, retry_policy=no_wait_retry_policy
    )


@pytest.fixture
def create_item(ledger, keeper):
    """Factory fixture to create a stock item with ``quantity`` in central."""

    def _create(quantity: int = 100, name: str = "Aspirin 500mg", category_id: int = 1):
        return ledger.create_stock_item(name, category_id, quantity, keeper)

    return _create
