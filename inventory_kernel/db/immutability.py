"""
ORM-Level Immutability Enforcement (layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement ledger is the sole record of what happened to stock, kept
independently of the current balances. A movement, once written, must never
change or disappear.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications made through SQLAlchemy
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/01_stock_movement.sql (PostgreSQL triggers)
    - Catches raw SQL, bulk statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity         | When Immutable        | Operations blocked
---------------|-----------------------|-------------------
StockMovement  | ALWAYS (from insert)  | UPDATE, DELETE

===============================================================================
USAGE
===============================================================================

Called once by the SQL storage strategy at startup:

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_movement_immutability(mapper, connection, target):
    """Prevent any updates to StockMovement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Stock movements are immutable and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    """Prevent deletion of StockMovement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Stock movements cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after models are imported and before any database operations.
    """
    from inventory_kernel.models.movement import StockMovement

    if not event.contains(StockMovement, "before_update", _check_movement_immutability):
        event.listen(StockMovement, "before_update", _check_movement_immutability)
    if not event.contains(StockMovement, "before_delete", _check_movement_delete):
        event.listen(StockMovement, "before_delete", _check_movement_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate immutability
    to verify detection.
    """
    from inventory_kernel.models.movement import StockMovement

    _safe_remove_listener(StockMovement, "before_update", _check_movement_immutability)
    _safe_remove_listener(StockMovement, "before_delete", _check_movement_delete)
