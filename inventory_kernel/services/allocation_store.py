"""
AllocationStore -- the per-user side of a transfer.

Responsibility:
    Reads and adjusts the quantity a user holds of one item. A credit creates
    the (user, item) row on first use; a debit requires the user to hold at
    least the requested quantity.

Architecture position:
    Kernel > Services. Bound to one UnitOfWork.

Invariants enforced:
    NON_NEGATIVITY -- exact availability check, no clamping.
    Zero policy -- a row drained to zero is kept at zero; this store never
    deletes rows.
    ``allocated_by`` / ``allocated_at`` record the latest credit; debits
    leave them unchanged.

Failure modes:
    - InsufficientAllocationError: the user holds less than abs(delta),
      including when the user holds no row at all.
    - InvalidQuantityError: delta == 0.
"""

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import AllocationRecord
from inventory_kernel.exceptions import InsufficientAllocationError, InvalidQuantityError
from inventory_kernel.services.base import BaseService
from inventory_kernel.storage.base import UnitOfWork


class AllocationStore(BaseService):
    """Per-user holdings, read and written inside one unit of work."""

    def __init__(self, uow: UnitOfWork, clock: Clock):
        super().__init__(uow)
        self._clock = clock

    def get(self, user_id: int, item_id: int) -> AllocationRecord | None:
        return self.uow.get_allocation(user_id, item_id)

    def adjust(
        self,
        user_id: int,
        item_id: int,
        delta: int,
        acting_user_id: int,
    ) -> AllocationRecord:
        """
        Add ``delta`` to the user's holding of ``item_id``.

        Preconditions:
            - ``delta != 0``.
        Postconditions:
            - The (user, item) row exists and its quantity is >= 0.

        Raises:
            InsufficientAllocationError: If a debit exceeds the holding.
        """
        if delta == 0:
            raise InvalidQuantityError(delta)

        current = self.uow.get_allocation(user_id, item_id, lock=True)
        held = current.quantity if current is not None else 0

        if delta < 0:
            if held < -delta:
                raise InsufficientAllocationError(
                    user_id=user_id,
                    item_id=item_id,
                    requested=-delta,
                    available=held,
                )
            return self.uow.update_allocation(user_id, item_id, quantity=held + delta)

        now = self._clock.now()
        if current is None:
            return self.uow.add_allocation(
                user_id=user_id,
                item_id=item_id,
                quantity=delta,
                allocated_by=acting_user_id,
                allocated_at=now,
            )
        return self.uow.update_allocation(
            user_id,
            item_id,
            quantity=held + delta,
            allocated_by=acting_user_id,
            allocated_at=now,
        )
