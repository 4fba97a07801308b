"""Storage strategies for the inventory ledger."""

from inventory_kernel.storage.base import LedgerStorage, UnitOfWork
from inventory_kernel.storage.memory import MemoryStorage

__all__ = [
    "LedgerStorage",
    "MemoryStorage",
    "UnitOfWork",
]
