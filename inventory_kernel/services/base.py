"""
BaseService -- abstract base for the per-unit-of-work kernel stores.

Responsibility:
    Provides the common constructor for StockItemStore, AllocationStore and
    MovementLedger. Each store receives the UnitOfWork it operates in and
    never commits or rolls back itself.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: stores write within the caller's unit of work.
    The caller (TransferEngine, StockAdjustmentService) owns commit/rollback,
    which is what makes debit + credit + append atomic.
"""

from abc import ABC

from inventory_kernel.storage.base import UnitOfWork


class BaseService(ABC):
    """
    Abstract base class for stores bound to one unit of work.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide cross-unit-of-work reads; those belong in
          ``inventory_kernel/selectors/``.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow
