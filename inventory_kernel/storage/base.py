"""
Module: inventory_kernel.storage.base
Responsibility: The storage strategy interface. A ``LedgerStorage`` opens
    ``UnitOfWork`` instances; a unit of work exposes row-level primitives over
    the three ledger tables plus explicit ``commit()`` / ``rollback()``.
Architecture position: Kernel > Storage. Implemented by storage/memory.py and
    storage/sql.py; consumed by kernel services and selectors. One strategy
    is selected at startup (inventory_config.factory) and passed in; there is
    no ambient transaction state.

Invariants enforced:
    - Reads taken with ``lock=True`` hold the item (and its allocation rows)
      against concurrent writers until commit or rollback.
    - Writes are invisible to other units of work until ``commit()``.
    - Leaving the ``with`` block without ``commit()`` rolls back.

Failure modes:
    - TransientConflictError: a concurrent writer won a race on the same
      rows (retryable).
    - StorageUnavailableError: the backend cannot be reached (fatal).

Business rules (availability, non-negativity errors, movement typing) live in
the kernel services, not here, so both strategies behave identically.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from types import TracebackType

from inventory_kernel.domain.dtos import (
    AllocationRecord,
    MovementDraft,
    MovementRecord,
    StockItemRecord,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("storage")


class UnitOfWork(ABC):
    """
    One begin/commit/rollback scope over a storage strategy.

    Contract:
        Opened by ``LedgerStorage.begin()``; used as a context manager by a
        single thread. The caller commits explicitly.
    """

    backend: str = "abstract"

    def __init__(self) -> None:
        self._finished = False

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._finished:
            self.rollback()
            if exc is not None:
                logger.debug(
                    "transaction_rolled_back",
                    extra={"backend": self.backend, "reason": type(exc).__name__},
                )

    @property
    def finished(self) -> bool:
        return self._finished

    # -- stock items --------------------------------------------------------

    @abstractmethod
    def get_item(self, item_id: int, *, lock: bool = False) -> StockItemRecord | None:
        """Load a stock item; ``lock`` holds it until the unit of work ends."""

    @abstractmethod
    def add_item(
        self,
        *,
        name: str,
        category_id: int,
        quantity: int,
        created_by: int,
        created_at: datetime,
        price: int = 0,
        expiry: datetime | None = None,
        unique_number: str | None = None,
        notes: str | None = None,
    ) -> StockItemRecord:
        """Insert a stock item and return it with its assigned id."""

    @abstractmethod
    def set_item_quantity(self, item_id: int, quantity: int) -> StockItemRecord:
        """Overwrite the central quantity of a previously loaded item."""

    # -- allocations --------------------------------------------------------

    @abstractmethod
    def get_allocation(
        self, user_id: int, item_id: int, *, lock: bool = False
    ) -> AllocationRecord | None:
        """Load the (user, item) allocation row if it exists."""

    @abstractmethod
    def add_allocation(
        self,
        *,
        user_id: int,
        item_id: int,
        quantity: int,
        allocated_by: int,
        allocated_at: datetime,
    ) -> AllocationRecord:
        """Insert the (user, item) allocation row."""

    @abstractmethod
    def update_allocation(
        self,
        user_id: int,
        item_id: int,
        *,
        quantity: int,
        allocated_by: int | None = None,
        allocated_at: datetime | None = None,
    ) -> AllocationRecord:
        """Update a previously loaded allocation row."""

    @abstractmethod
    def list_allocations(
        self, user_id: int | None = None, item_id: int | None = None
    ) -> list[AllocationRecord]:
        """Allocation rows, optionally filtered, ordered by id."""

    # -- movements ----------------------------------------------------------

    @abstractmethod
    def add_movement(self, draft: MovementDraft) -> MovementRecord:
        """Append a movement. ``draft.moved_at`` must be set."""

    @abstractmethod
    def list_movements(self, item_id: int | None = None) -> list[MovementRecord]:
        """Movements, optionally for one item, ordered by moved_at then id."""

    # -- transaction control ------------------------------------------------

    @abstractmethod
    def commit(self) -> None:
        """Make every write of this unit of work visible atomically."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard every write of this unit of work."""


class LedgerStorage(ABC):
    """A storage strategy. Selected once at startup."""

    backend: str = "abstract"

    @abstractmethod
    def begin(self) -> UnitOfWork:
        """Open a new unit of work."""
