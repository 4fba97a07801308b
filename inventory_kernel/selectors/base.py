"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for read-only ledger queries. Selectors
    are the query side of the kernel: they read through a storage strategy
    and never mutate it.
Architecture position: Kernel > Selectors. May import from storage/ and
    domain/. MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: every read opens its own unit of work and always
      ends it with ``rollback()``; selectors never call ``commit()``.
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - No balance caching: each call observes the latest committed state.
"""

from abc import ABC
from collections.abc import Iterator
from contextlib import contextmanager

from inventory_kernel.storage.base import LedgerStorage, UnitOfWork


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a LedgerStorage, perform read-only queries in short
        units of work, and return DTOs.
    """

    def __init__(self, storage: LedgerStorage):
        self.storage = storage

    @contextmanager
    def _read(self) -> Iterator[UnitOfWork]:
        uow = self.storage.begin()
        try:
            yield uow
        finally:
            uow.rollback()
