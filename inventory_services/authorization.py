"""
inventory_services.authorization -- Capability enforcement at the ledger boundary.

Responsibility:
    Check that an actor's role grants the capability an operation requires,
    before any store is touched. Transfers map their shape (allocation,
    return, reassignment) to a capability; stock adjustments map their
    operation name to one.

Architecture position:
    Services layer. Consumes the kernel capability table. Called by the
    InventoryLedger facade ahead of every mutating operation.

Invariants:
    - Fail closed: an unknown role, a missing role or a role without the
      capability is denied.
    - Kernel remains actor-agnostic; this module does not authenticate
      anyone (the caller supplies the Actor).
"""

from __future__ import annotations

from inventory_kernel.domain.capabilities import Capability, has_capability
from inventory_kernel.domain.dtos import Actor, MovementType
from inventory_kernel.exceptions import ForbiddenError
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.authorization")

# Transfer shape -> capability. Every shape is gated by canMoveStock today;
# the table lets a shape be given its own capability later.
TRANSFER_CAPABILITIES: dict[MovementType, Capability] = {
    MovementType.ALLOCATION: Capability.MOVE_STOCK,
    MovementType.RETURN: Capability.MOVE_STOCK,
    MovementType.REASSIGNMENT: Capability.MOVE_STOCK,
}

# Stock adjustment operation -> capability
ADJUSTMENT_CAPABILITIES: dict[str, Capability] = {
    "create_stock_item": Capability.ADD_ITEMS,
    "restock": Capability.RESTOCK_INVENTORY,
    "write_off": Capability.REMOVE_ITEMS,
}


def get_capability_for_transfer(
    from_user_id: int | None, to_user_id: int | None
) -> Capability:
    """Return the capability required to move stock between these endpoints."""
    return TRANSFER_CAPABILITIES[MovementType.for_endpoints(from_user_id, to_user_id)]


class AuthorizationGate:
    """Raises ForbiddenError when an actor may not perform an operation."""

    def authorize(self, actor: Actor, capability: Capability | str) -> None:
        """
        Require ``capability`` of ``actor``.

        Raises:
            ForbiddenError: The actor's role does not grant the capability.
            UnknownCapabilityError: ``capability`` is not a known name.
        """
        if has_capability(actor.role, capability):
            return
        name = capability.value if isinstance(capability, Capability) else capability
        logger.warning(
            "authorization_denied",
            extra={
                "actor_id": actor.id,
                "role": actor.role_name,
                "capability": name,
            },
        )
        raise ForbiddenError(actor.id, actor.role_name, name)

    def authorize_transfer(
        self, actor: Actor, from_user_id: int | None, to_user_id: int | None
    ) -> None:
        """Require the capability for the transfer shape given by its endpoints."""
        self.authorize(actor, get_capability_for_transfer(from_user_id, to_user_id))

    def authorize_adjustment(self, actor: Actor, operation: str) -> None:
        """Require the capability for a stock adjustment operation."""
        self.authorize(actor, ADJUSTMENT_CAPABILITIES[operation])
