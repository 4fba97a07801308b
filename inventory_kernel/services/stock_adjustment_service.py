"""
StockAdjustmentService -- changes to an item's total quantity.

Responsibility:
    Creates stock items and moves stock into (restock) or out of (write-off)
    the central pool. These are the only operations that change an item's
    total; transfers only redistribute it.

Architecture position:
    Kernel > Services. Called by the InventoryLedger facade after the
    authorization gate has passed. Each call is one unit of work, retried
    on TransientConflictError like a transfer.

Invariants enforced:
    NON_NEGATIVITY -- a write-off larger than the central pool is rejected.
    Restock and write-off do not append movements; a movement always has a
    user endpoint.

Failure modes:
    - InvalidQuantityError: non-int, bool, or out-of-range quantity.
    - ItemNotFoundError: restock/write-off of an unknown item.
    - InsufficientStockError: write-off exceeds the central pool.
"""

from __future__ import annotations

from datetime import datetime

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import StockItemRecord
from inventory_kernel.exceptions import InvalidQuantityError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.retry_policy import RetryPolicy, run_with_retry
from inventory_kernel.services.stock_item_store import StockItemStore
from inventory_kernel.storage.base import LedgerStorage, UnitOfWork

logger = get_logger("services.stock_adjustment")


def _check_quantity(quantity: object, *, allow_zero: bool = False) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(quantity)
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise InvalidQuantityError(quantity)


class StockAdjustmentService:
    """Create, restock and write off stock items."""

    def __init__(
        self,
        storage: LedgerStorage,
        clock: Clock,
        retry_policy: RetryPolicy | None = None,
    ):
        self._storage = storage
        self._clock = clock
        self._retry_policy = retry_policy or RetryPolicy()

    def create_stock_item(
        self,
        name: str,
        category_id: int,
        quantity: int,
        created_by: int,
        *,
        price: int = 0,
        expiry: datetime | None = None,
        unique_number: str | None = None,
        notes: str | None = None,
    ) -> StockItemRecord:
        """
        Insert a new item with ``quantity`` units in the central pool.

        A zero initial quantity is allowed.
        """
        _check_quantity(quantity, allow_zero=True)
        if not name or not name.strip():
            raise ValueError("Stock item name must not be empty")

        def work(uow: UnitOfWork) -> StockItemRecord:
            record = uow.add_item(
                name=name,
                category_id=category_id,
                quantity=quantity,
                created_by=created_by,
                created_at=self._clock.now(),
                price=price,
                expiry=expiry,
                unique_number=unique_number,
                notes=notes,
            )
            uow.commit()
            return record

        record = run_with_retry(
            self._storage, work, policy=self._retry_policy, operation="create_stock_item"
        )
        logger.info(
            "stock_item_created",
            extra={"item_id": record.id, "quantity": quantity, "created_by": created_by},
        )
        return record

    def restock(self, item_id: int, quantity: int) -> StockItemRecord:
        """Add ``quantity`` units to the central pool of ``item_id``."""
        _check_quantity(quantity)
        record = self._adjust(item_id, quantity, operation="restock")
        with LogContext.bind(item_id=item_id):
            logger.info(
                "stock_restocked",
                extra={"quantity": quantity, "central_after": record.quantity},
            )
        return record

    def write_off(self, item_id: int, quantity: int) -> StockItemRecord:
        """
        Remove ``quantity`` units from the central pool of ``item_id``.

        Only central stock can be written off; allocated units must be
        returned first.

        Raises:
            InsufficientStockError: If the central pool holds fewer units.
        """
        _check_quantity(quantity)
        record = self._adjust(item_id, -quantity, operation="write_off")
        with LogContext.bind(item_id=item_id):
            logger.info(
                "stock_written_off",
                extra={"quantity": quantity, "central_after": record.quantity},
            )
        return record

    def _adjust(self, item_id: int, delta: int, *, operation: str) -> StockItemRecord:
        def work(uow: UnitOfWork) -> StockItemRecord:
            record = StockItemStore(uow).adjust_central_quantity(item_id, delta)
            uow.commit()
            return record

        return run_with_retry(
            self._storage, work, policy=self._retry_policy, operation=operation
        )
