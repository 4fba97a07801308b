"""
Module: inventory_kernel.storage.memory
Responsibility: In-process storage strategy backed by dictionaries. Used for
    tests, demos and single-process deployments.
Architecture position: Kernel > Storage. Implements storage/base.py.

Invariants enforced:
    - Pessimistic locking: every stock item has its own ``threading.RLock``.
      A read with ``lock=True`` (item or allocation) acquires the item's lock
      and holds it until commit/rollback, so two transfers on the same item
      are serialized and the second sees the first's debit.
    - Atomic commit: writes are staged in the unit of work and applied under
      the storage-wide state lock in one step. Other threads never observe a
      half-applied transfer.
    - Records are frozen dataclasses; nothing outside the strategy can mutate
      committed state.

Failure modes:
    - TransientConflictError if an allocation row is inserted twice for the
      same (user, item) pair (mirrors the SQL unique constraint).
    - KeyError if a write targets a row that was never loaded or inserted.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import datetime

from inventory_kernel.domain.dtos import (
    AllocationRecord,
    MovementDraft,
    MovementRecord,
    StockItemRecord,
)
from inventory_kernel.exceptions import TransientConflictError
from inventory_kernel.storage.base import LedgerStorage, UnitOfWork

AllocationKey = tuple[int, int]  # (user_id, item_id)


class MemoryStorage(LedgerStorage):
    """Dictionary-backed ledger storage shared by all threads of a process."""

    backend = "memory"

    def __init__(self) -> None:
        self._state_lock = threading.Lock()
        self._items: dict[int, StockItemRecord] = {}
        self._allocations: dict[AllocationKey, AllocationRecord] = {}
        self._movements: list[MovementRecord] = []
        self._item_locks: dict[int, threading.RLock] = {}
        self._item_ids = itertools.count(1)
        self._allocation_ids = itertools.count(1)
        self._movement_ids = itertools.count(1)

    def begin(self) -> MemoryUnitOfWork:
        return MemoryUnitOfWork(self)

    # Internal helpers used by MemoryUnitOfWork

    def _lock_for(self, item_id: int) -> threading.RLock:
        with self._state_lock:
            lock = self._item_locks.get(item_id)
            if lock is None:
                lock = threading.RLock()
                self._item_locks[item_id] = lock
            return lock

    def _next_id(self, counter: itertools.count) -> int:
        with self._state_lock:
            return next(counter)


class MemoryUnitOfWork(UnitOfWork):
    """Staged writes over a MemoryStorage, applied atomically on commit."""

    backend = "memory"

    def __init__(self, storage: MemoryStorage) -> None:
        super().__init__()
        self._storage = storage
        self._items: dict[int, StockItemRecord] = {}
        self._allocations: dict[AllocationKey, AllocationRecord] = {}
        self._new_allocations: set[AllocationKey] = set()
        self._movements: list[MovementRecord] = []
        self._held: dict[int, threading.RLock] = {}

    def _acquire(self, item_id: int) -> None:
        if item_id in self._held:
            return
        lock = self._storage._lock_for(item_id)
        lock.acquire()
        self._held[item_id] = lock

    def _release_all(self) -> None:
        for lock in self._held.values():
            lock.release()
        self._held.clear()

    # -- stock items --------------------------------------------------------

    def get_item(self, item_id: int, *, lock: bool = False) -> StockItemRecord | None:
        if lock:
            self._acquire(item_id)
        if item_id in self._items:
            return self._items[item_id]
        with self._storage._state_lock:
            return self._storage._items.get(item_id)

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
        record = StockItemRecord(
            id=self._storage._next_id(self._storage._item_ids),
            name=name,
            category_id=category_id,
            quantity=quantity,
            created_by=created_by,
            created_at=created_at,
            price=price,
            expiry=expiry,
            unique_number=unique_number,
            notes=notes,
            version=1,
        )
        self._items[record.id] = record
        return record

    def set_item_quantity(self, item_id: int, quantity: int) -> StockItemRecord:
        current = self.get_item(item_id)
        if current is None:
            raise KeyError(f"Stock item {item_id} not loaded")
        if quantity < 0:
            raise ValueError(f"Stock item quantity cannot be negative: {quantity}")
        record = replace(current, quantity=quantity, version=current.version + 1)
        self._items[item_id] = record
        return record

    # -- allocations --------------------------------------------------------

    def get_allocation(
        self, user_id: int, item_id: int, *, lock: bool = False
    ) -> AllocationRecord | None:
        if lock:
            self._acquire(item_id)
        key = (user_id, item_id)
        if key in self._allocations:
            return self._allocations[key]
        with self._storage._state_lock:
            return self._storage._allocations.get(key)

    def add_allocation(
        self,
        *,
        user_id: int,
        item_id: int,
        quantity: int,
        allocated_by: int,
        allocated_at: datetime,
    ) -> AllocationRecord:
        key = (user_id, item_id)
        if self.get_allocation(user_id, item_id) is not None:
            raise TransientConflictError("StockAllocation", key)
        record = AllocationRecord(
            id=self._storage._next_id(self._storage._allocation_ids),
            user_id=user_id,
            stock_item_id=item_id,
            quantity=quantity,
            allocated_by=allocated_by,
            allocated_at=allocated_at,
            version=1,
        )
        self._allocations[key] = record
        self._new_allocations.add(key)
        return record

    def update_allocation(
        self,
        user_id: int,
        item_id: int,
        *,
        quantity: int,
        allocated_by: int | None = None,
        allocated_at: datetime | None = None,
    ) -> AllocationRecord:
        current = self.get_allocation(user_id, item_id)
        if current is None:
            raise KeyError(f"Allocation ({user_id}, {item_id}) not loaded")
        if quantity < 0:
            raise ValueError(f"Allocation quantity cannot be negative: {quantity}")
        record = replace(
            current,
            quantity=quantity,
            allocated_by=allocated_by if allocated_by is not None else current.allocated_by,
            allocated_at=allocated_at if allocated_at is not None else current.allocated_at,
            version=current.version + 1,
        )
        self._allocations[(user_id, item_id)] = record
        return record

    def list_allocations(
        self, user_id: int | None = None, item_id: int | None = None
    ) -> list[AllocationRecord]:
        with self._storage._state_lock:
            merged = dict(self._storage._allocations)
        merged.update(self._allocations)
        rows = [
            a for a in merged.values()
            if (user_id is None or a.user_id == user_id)
            and (item_id is None or a.stock_item_id == item_id)
        ]
        return sorted(rows, key=lambda a: a.id)

    # -- movements ----------------------------------------------------------

    def add_movement(self, draft: MovementDraft) -> MovementRecord:
        if draft.moved_at is None:
            raise ValueError("MovementDraft.moved_at must be set before append")
        record = MovementRecord(
            id=self._storage._next_id(self._storage._movement_ids),
            stock_item_id=draft.stock_item_id,
            from_user_id=draft.from_user_id,
            to_user_id=draft.to_user_id,
            quantity=draft.quantity,
            moved_by=draft.moved_by,
            moved_at=draft.moved_at,
            type=draft.type,
            notes=draft.notes,
        )
        self._movements.append(record)
        return record

    def list_movements(self, item_id: int | None = None) -> list[MovementRecord]:
        with self._storage._state_lock:
            rows = list(self._storage._movements)
        rows.extend(self._movements)
        if item_id is not None:
            rows = [m for m in rows if m.stock_item_id == item_id]
        return sorted(rows, key=lambda m: (m.moved_at, m.id))

    # -- transaction control ------------------------------------------------

    def commit(self) -> None:
        storage = self._storage
        try:
            with storage._state_lock:
                for key in self._new_allocations:
                    if key in storage._allocations:
                        raise TransientConflictError("StockAllocation", key)
                storage._items.update(self._items)
                storage._allocations.update(self._allocations)
                storage._movements.extend(self._movements)
        finally:
            self._discard()

    def rollback(self) -> None:
        self._discard()

    def _discard(self) -> None:
        self._items.clear()
        self._allocations.clear()
        self._new_allocations.clear()
        self._movements.clear()
        self._finished = True
        self._release_all()
