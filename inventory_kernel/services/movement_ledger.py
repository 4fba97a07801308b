"""
MovementLedger -- write-once record of completed transfers.

Responsibility:
    Appends movements inside the caller's unit of work, stamping
    ``moved_at`` from the injected clock when the draft has none.

Architecture position:
    Kernel > Services. Bound to one UnitOfWork. There is deliberately no
    update or delete method; the storage layer enforces the same rule.
"""

from dataclasses import replace

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import MovementDraft, MovementRecord
from inventory_kernel.services.base import BaseService
from inventory_kernel.storage.base import UnitOfWork


class MovementLedger(BaseService):
    """Append-only movement history."""

    def __init__(self, uow: UnitOfWork, clock: Clock):
        super().__init__(uow)
        self._clock = clock

    def append(self, draft: MovementDraft) -> MovementRecord:
        """Write ``draft`` and return the stored movement with its id."""
        if draft.moved_at is None:
            draft = replace(draft, moved_at=self._clock.now())
        return self.uow.add_movement(draft)
