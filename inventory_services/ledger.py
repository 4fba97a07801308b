"""
inventory_services.ledger -- The InventoryLedger facade.

Responsibility:
    The single entry point the HTTP layer calls. Authorizes the actor, then
    delegates to the kernel: TransferEngine for transfers,
    StockAdjustmentService for create/restock/write-off, LedgerSelector for
    reads.

Architecture position:
    Services layer. Constructs every kernel service exactly once from the
    storage strategy and clock it is given; all wiring is visible in
    ``__init__``. Built by ``inventory_config.build_ledger`` at startup.

Invariants enforced:
    - Authorization runs before any store is touched; a ForbiddenError
      leaves the ledger unchanged.
    - Every mutating call binds ``actor_id`` / ``actor_role`` into the
      LogContext for the duration of the call.

Usage:
    ledger = InventoryLedger(MemoryStorage())
    item = ledger.create_stock_item("Aspirin", 1, 100, actor=keeper)
    ledger.transfer(item.id, 30, None, rep_id, actor=keeper)
    ledger.get_allocations(user_id=rep_id)
"""

from __future__ import annotations

from datetime import datetime

from inventory_kernel.domain.capabilities import Capability, Role, has_capability
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    Actor,
    AllocationRecord,
    ItemBalance,
    MovementRecord,
    StockItemRecord,
)
from inventory_kernel.logging_config import LogContext
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.retry_policy import RetryPolicy
from inventory_kernel.services.stock_adjustment_service import StockAdjustmentService
from inventory_kernel.services.transfer_engine import (
    TransferEngine,
    validate_transfer_request,
)
from inventory_kernel.storage.base import LedgerStorage
from inventory_services.authorization import AuthorizationGate


def _actor_context(actor: Actor):
    return LogContext.bind(actor_id=actor.id, actor_role=actor.role_name)


class InventoryLedger:
    """Authorized operations over one storage strategy."""

    def __init__(
        self,
        storage: LedgerStorage,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        gate: AuthorizationGate | None = None,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._retry_policy = retry_policy or RetryPolicy()
        self._gate = gate or AuthorizationGate()

        self._transfers = TransferEngine(storage, self._clock, self._retry_policy)
        self._adjustments = StockAdjustmentService(storage, self._clock, self._retry_policy)
        self._selector = LedgerSelector(storage)

    @property
    def storage(self) -> LedgerStorage:
        return self._storage

    # -- transfers ----------------------------------------------------------

    def transfer(
        self,
        item_id: int,
        quantity: int,
        from_user_id: int | None,
        to_user_id: int | None,
        actor: Actor,
        notes: str | None = None,
    ) -> MovementRecord:
        """
        Move ``quantity`` units of an item between endpoints.

        ``None`` means the central pool. The actor is recorded as
        ``moved_by``.

        Raises:
            InvalidQuantityError, InvalidTransferError: malformed request.
            ForbiddenError: the actor may not move stock.
            ItemNotFoundError, InsufficientStockError,
            InsufficientAllocationError: the ledger cannot satisfy it.
            TransientConflictError: concurrent writers, retries exhausted.
        """
        validate_transfer_request(quantity, from_user_id, to_user_id)
        with _actor_context(actor):
            self._gate.authorize_transfer(actor, from_user_id, to_user_id)
            return self._transfers.transfer(
                item_id,
                quantity,
                from_user_id,
                to_user_id,
                moved_by=actor.id,
                notes=notes,
            )

    # -- stock adjustments --------------------------------------------------

    def create_stock_item(
        self,
        name: str,
        category_id: int,
        quantity: int,
        actor: Actor,
        *,
        price: int = 0,
        expiry: datetime | None = None,
        unique_number: str | None = None,
        notes: str | None = None,
    ) -> StockItemRecord:
        with _actor_context(actor):
            self._gate.authorize_adjustment(actor, "create_stock_item")
            return self._adjustments.create_stock_item(
                name,
                category_id,
                quantity,
                created_by=actor.id,
                price=price,
                expiry=expiry,
                unique_number=unique_number,
                notes=notes,
            )

    def restock(self, item_id: int, quantity: int, actor: Actor) -> StockItemRecord:
        with _actor_context(actor):
            self._gate.authorize_adjustment(actor, "restock")
            return self._adjustments.restock(item_id, quantity)

    def write_off(self, item_id: int, quantity: int, actor: Actor) -> StockItemRecord:
        with _actor_context(actor):
            self._gate.authorize_adjustment(actor, "write_off")
            return self._adjustments.write_off(item_id, quantity)

    # -- reads --------------------------------------------------------------

    def get_stock_item(self, item_id: int) -> StockItemRecord:
        return self._selector.get_stock_item(item_id)

    def get_allocations(self, user_id: int | None = None) -> list[AllocationRecord]:
        """Allocation rows for one user, or for everyone when ``user_id`` is None."""
        return self._selector.list_allocations(user_id=user_id)

    def get_movements(self, item_id: int | None = None) -> list[MovementRecord]:
        """Movement history for one item, or for all items, oldest first."""
        return self._selector.list_movements(item_id=item_id)

    def item_balance(self, item_id: int) -> ItemBalance:
        return self._selector.item_balance(item_id)

    @staticmethod
    def has_capability(role: Role | str | None, capability: Capability | str) -> bool:
        """
        Pure capability lookup.

        Raises:
            UnknownCapabilityError: ``capability`` is not a known name.
        """
        return has_capability(role, capability)
