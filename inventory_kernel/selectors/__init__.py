"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.ledger_selector import LedgerSelector

__all__ = [
    "LedgerSelector",
]
