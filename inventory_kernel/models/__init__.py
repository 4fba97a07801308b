"""ORM models for the three ledger tables."""

from inventory_kernel.models.allocation import StockAllocation
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.models.stock_item import StockItem

__all__ = [
    "StockItem",
    "StockAllocation",
    "StockMovement",
]
