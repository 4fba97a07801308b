"""
StockItemStore -- the central pool side of a transfer.

Responsibility:
    Reads stock items and applies signed deltas to their central quantity
    with an exact availability check.

Architecture position:
    Kernel > Services. Bound to one UnitOfWork.

Invariants enforced:
    NON_NEGATIVITY -- a negative delta larger than the central quantity is
    rejected before anything is written; there is no clamping.

Failure modes:
    - ItemNotFoundError: no stock item with that id.
    - InsufficientStockError: central quantity < abs(delta).
"""

from inventory_kernel.domain.dtos import StockItemRecord
from inventory_kernel.exceptions import InsufficientStockError, ItemNotFoundError
from inventory_kernel.services.base import BaseService


class StockItemStore(BaseService):
    """Central pool quantities, read and written inside one unit of work."""

    def get(self, item_id: int, *, lock: bool = False) -> StockItemRecord:
        """
        Load a stock item.

        Raises:
            ItemNotFoundError: If the item does not exist.
        """
        item = self.uow.get_item(item_id, lock=lock)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def adjust_central_quantity(self, item_id: int, delta: int) -> StockItemRecord:
        """
        Add ``delta`` (positive or negative) to the central pool.

        The item row is locked for the rest of the unit of work.

        Raises:
            ItemNotFoundError: If the item does not exist.
            InsufficientStockError: If the result would be negative.
        """
        item = self.get(item_id, lock=True)
        new_quantity = item.quantity + delta
        if new_quantity < 0:
            raise InsufficientStockError(
                item_id=item_id,
                requested=-delta,
                available=item.quantity,
            )
        return self.uow.set_item_quantity(item_id, new_quantity)
