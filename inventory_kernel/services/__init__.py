"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.allocation_store import AllocationStore
from inventory_kernel.services.movement_ledger import MovementLedger
from inventory_kernel.services.retry_policy import RetryPolicy, run_with_retry
from inventory_kernel.services.stock_adjustment_service import StockAdjustmentService
from inventory_kernel.services.stock_item_store import StockItemStore
from inventory_kernel.services.transfer_engine import (
    TransferEngine,
    validate_transfer_request,
)

__all__ = [
    "AllocationStore",
    "MovementLedger",
    "RetryPolicy",
    "StockAdjustmentService",
    "StockItemStore",
    "TransferEngine",
    "run_with_retry",
    "validate_transfer_request",
]
