"""
TransferEngine -- the atomic transfer between two ledger endpoints.

Responsibility:
    Validates and executes one transfer of a stock item's quantity between
    the central pool and/or users: debit the source, credit the destination,
    append the movement, all inside one unit of work.

Architecture position:
    Kernel > Services -- imperative shell. Called by the InventoryLedger
    facade after the authorization gate has passed.

Invariants enforced:
    CONSERVATION   -- debit and credit use the same quantity in the same
                      unit of work.
    NON_NEGATIVITY -- debit is an exact availability check; never clamps.
    ATOMICITY      -- debit runs before credit; if the debit, the credit or
                      the append fails, the unit of work rolls back and no
                      movement is written.

Failure modes:
    - InvalidQuantityError: quantity is not a positive int.
    - InvalidTransferError: both endpoints central, or source == destination.
    - ItemNotFoundError, InsufficientStockError, InsufficientAllocationError.
    - TransientConflictError: retries exhausted (see RetryPolicy).
    - StorageUnavailableError: propagated unchanged, never retried.

Usage:
    engine = TransferEngine(storage, SystemClock())
    movement = engine.transfer(item_id=1, quantity=30, from_user_id=None,
                               to_user_id=7, moved_by=2)
"""

from __future__ import annotations

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import MovementDraft, MovementRecord, MovementType
from inventory_kernel.exceptions import (
    InventoryKernelError,
    InvalidQuantityError,
    InvalidTransferError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.allocation_store import AllocationStore
from inventory_kernel.services.movement_ledger import MovementLedger
from inventory_kernel.services.retry_policy import RetryPolicy, run_with_retry
from inventory_kernel.services.stock_item_store import StockItemStore
from inventory_kernel.storage.base import LedgerStorage, UnitOfWork

logger = get_logger("services.transfer_engine")


def validate_transfer_request(
    quantity: object,
    from_user_id: int | None,
    to_user_id: int | None,
) -> None:
    """
    Reject malformed requests before any store is touched.

    Raises:
        InvalidQuantityError: quantity is not an int > 0 (bool is rejected).
        InvalidTransferError: no user endpoint, or both endpoints equal.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity)
    if from_user_id is None and to_user_id is None:
        raise InvalidTransferError(
            from_user_id, to_user_id, "transfer must have at least one user endpoint"
        )
    if from_user_id == to_user_id:
        raise InvalidTransferError(
            from_user_id, to_user_id, "source and destination are the same user"
        )


class TransferEngine:
    """
    Executes transfers as single atomic units of work.

    Guarantees:
        - A returned MovementRecord means debit, credit and append committed.
        - A raised error means nothing was committed.
        - No balances are cached between calls; every attempt re-reads.
    """

    def __init__(
        self,
        storage: LedgerStorage,
        clock: Clock,
        retry_policy: RetryPolicy | None = None,
    ):
        self._storage = storage
        self._clock = clock
        self._retry_policy = retry_policy or RetryPolicy()

    def transfer(
        self,
        item_id: int,
        quantity: int,
        from_user_id: int | None,
        to_user_id: int | None,
        moved_by: int,
        notes: str | None = None,
    ) -> MovementRecord:
        """
        Move ``quantity`` of ``item_id`` from one endpoint to another.

        ``None`` as an endpoint means the central pool.

        Returns:
            The appended movement.
        """
        validate_transfer_request(quantity, from_user_id, to_user_id)

        movement_type = MovementType.for_endpoints(from_user_id, to_user_id)
        with LogContext.transfer(item_id, from_user_id, to_user_id, movement_type.value):
            logger.debug("transfer_started", extra={"quantity": quantity})
            try:
                movement = run_with_retry(
                    self._storage,
                    lambda uow: self._execute(
                        uow, item_id, quantity, from_user_id, to_user_id, moved_by, notes
                    ),
                    policy=self._retry_policy,
                    operation="transfer",
                )
            except InventoryKernelError as exc:
                logger.info(
                    "transfer_rejected",
                    extra={"error_code": exc.code, "quantity": quantity},
                )
                raise

            logger.info(
                "transfer_committed",
                extra={"movement_id": movement.id, "quantity": quantity},
            )
            return movement

    def _execute(
        self,
        uow: UnitOfWork,
        item_id: int,
        quantity: int,
        from_user_id: int | None,
        to_user_id: int | None,
        moved_by: int,
        notes: str | None,
    ) -> MovementRecord:
        items = StockItemStore(uow)
        allocations = AllocationStore(uow, self._clock)
        ledger = MovementLedger(uow, self._clock)

        items.get(item_id, lock=True)

        self._debit(items, allocations, item_id, quantity, from_user_id, moved_by)
        self._credit(items, allocations, item_id, quantity, to_user_id, moved_by)

        movement = ledger.append(
            MovementDraft(
                stock_item_id=item_id,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                quantity=quantity,
                moved_by=moved_by,
                notes=notes,
                moved_at=self._clock.now(),
            )
        )
        uow.commit()
        return movement

    def _debit(
        self,
        items: StockItemStore,
        allocations: AllocationStore,
        item_id: int,
        quantity: int,
        from_user_id: int | None,
        moved_by: int,
    ) -> None:
        if from_user_id is None:
            items.adjust_central_quantity(item_id, -quantity)
        else:
            allocations.adjust(from_user_id, item_id, -quantity, moved_by)

    def _credit(
        self,
        items: StockItemStore,
        allocations: AllocationStore,
        item_id: int,
        quantity: int,
        to_user_id: int | None,
        moved_by: int,
    ) -> None:
        if to_user_id is None:
            items.adjust_central_quantity(item_id, quantity)
        else:
            allocations.adjust(to_user_id, item_id, quantity, moved_by)
