"""
Kernel Invariants Contract.

These invariants are structural law for the allocation ledger. No setting,
role or storage backend may switch them off.

This module declares them explicitly and provides the one reusable check
(conservation) used by the tests. Enforcement is
distributed across StockItemStore, AllocationStore, MovementLedger, the
TransferEngine and the immutability listeners.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    CONSERVATION = "conservation"
    """central + sum(allocations) per item changes only by restock or
    write-off. Every transfer debits and credits the same quantity inside
    one unit of work (TransferEngine)."""

    NON_NEGATIVITY = "non_negativity"
    """No central or allocated quantity ever drops below zero. Enforced by
    exact availability checks in StockItemStore and AllocationStore, and by
    CHECK constraints on the tables."""

    ATOMICITY = "atomicity"
    """Debit, credit and movement append commit together or not at all.
    Enforced by the unit of work passed through the TransferEngine."""

    APPEND_ONLY_MOVEMENTS = "append_only_movements"
    """Movement rows are never updated or deleted. Enforced by ORM
    listeners (inventory_kernel.db.immutability) and a PostgreSQL trigger."""

    FAIL_CLOSED_AUTHORIZATION = "fail_closed_authorization"
    """Unknown roles hold no capabilities. Enforced by the capability
    table."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_services",
    "inventory_config",
)


def is_conserved(central: int, allocated: list[int] | tuple[int, ...], total: int) -> bool:
    """True iff the central pool and all allocations add up to ``total``
    and no balance is negative."""
    if central < 0 or any(q < 0 for q in allocated):
        return False
    return central + sum(allocated) == total
