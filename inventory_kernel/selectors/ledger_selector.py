"""
Module: inventory_kernel.selectors.ledger_selector
Responsibility: Read-only queries over allocations, movements and item
    balances.
Architecture position: Kernel > Selectors. Used by the InventoryLedger
    facade for ``get_allocations``, ``get_movements`` and ``item_balance``.

Invariants enforced:
    - Movements are returned ordered by ``moved_at`` then id.
    - ``item_balance`` holds the item lock while it reads the allocations,
      so ``central + allocated`` is the total of one committed state.
    - Reads never commit; the unit of work is always rolled back.

Failure modes:
    - ItemNotFoundError from ``item_balance`` for an unknown item.
"""

from inventory_kernel.domain.dtos import (
    AllocationRecord,
    ItemBalance,
    MovementRecord,
    StockItemRecord,
)
from inventory_kernel.exceptions import ItemNotFoundError
from inventory_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    """Allocation, movement and balance queries."""

    def get_stock_item(self, item_id: int) -> StockItemRecord:
        """
        Raises:
            ItemNotFoundError: If the item does not exist.
        """
        with self._read() as uow:
            item = uow.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def list_allocations(
        self, user_id: int | None = None, item_id: int | None = None
    ) -> list[AllocationRecord]:
        """Allocation rows, for one user and/or item when given, ordered by id."""
        with self._read() as uow:
            return uow.list_allocations(user_id=user_id, item_id=item_id)

    def list_movements(self, item_id: int | None = None) -> list[MovementRecord]:
        """The movement history, oldest first."""
        with self._read() as uow:
            return uow.list_movements(item_id=item_id)

    def item_balance(self, item_id: int) -> ItemBalance:
        """
        Central and allocated quantities of one item.

        Raises:
            ItemNotFoundError: If the item does not exist.
        """
        with self._read() as uow:
            item = uow.get_item(item_id, lock=True)
            if item is None:
                raise ItemNotFoundError(item_id)
            allocated = sum(a.quantity for a in uow.list_allocations(item_id=item_id))
            return ItemBalance(item_id=item_id, central=item.quantity, allocated=allocated)
