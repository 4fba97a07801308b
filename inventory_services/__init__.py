"""
inventory_services -- Package init and public API.

Responsibility:
    The authorized entry point over the inventory kernel. The HTTP layer
    constructs one InventoryLedger at startup (through
    ``inventory_config.build_ledger``) and calls it for every request.

Architecture position:
    Services -- authorization and wiring over the kernel.

    Dependency direction:
        inventory_services/ -> inventory_kernel/   (allowed)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)
"""

from inventory_services.authorization import (
    ADJUSTMENT_CAPABILITIES,
    TRANSFER_CAPABILITIES,
    AuthorizationGate,
    get_capability_for_transfer,
)
from inventory_services.ledger import InventoryLedger

__all__ = [
    "ADJUSTMENT_CAPABILITIES",
    "AuthorizationGate",
    "InventoryLedger",
    "TRANSFER_CAPABILITIES",
    "get_capability_for_transfer",
]
