"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The UI layer renders a specific message for every way a transfer can fail.
It must be able to tell "not enough central stock" from "the rep does not
hold that many units" without parsing message strings. Every exception
therefore has:
  1. Its own class (catch by type, not message)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. Structured attributes (item id, requested and available quantities)

Example:
    try:
        ledger.transfer(item_id, 30, None, rep_id, actor)
    except InsufficientStockError as e:
        return {"error": e.code, "available": e.available}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidTransferError
    |
    +-- ItemNotFoundError
    |
    +-- AvailabilityError
    |   +-- InsufficientStockError
    |   +-- InsufficientAllocationError
    |
    +-- AuthorizationError
    |   +-- ForbiddenError
    |   +-- UnknownCapabilityError
    |
    +-- ConcurrencyError
    |   +-- TransientConflictError
    |
    +-- StorageUnavailableError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                     | When Raised
-------------------------|--------------------------------------------------
INVALID_QUANTITY         | Quantity is not a positive integer
INVALID_TRANSFER         | Both endpoints central, or source == destination
ITEM_NOT_FOUND           | Stock item id does not exist
INSUFFICIENT_STOCK       | Central pool holds less than requested
INSUFFICIENT_ALLOCATION  | User holds less than requested
FORBIDDEN                | Actor's role lacks the required capability
UNKNOWN_CAPABILITY       | Capability name is not in the enumeration
TRANSIENT_CONFLICT       | Concurrent modification, retries exhausted
STORAGE_UNAVAILABLE      | Backing store cannot be reached (fatal)
IMMUTABILITY_VIOLATION   | UPDATE/DELETE attempted on a movement row

===============================================================================
HANDLING PATTERNS
===============================================================================

- Validation, availability and authorization errors are final: show them to
  the user, do not retry.
- TransientConflictError has already been retried by the TransferEngine by
  the time it reaches the caller.
- StorageUnavailableError is surfaced as-is; the transfer did not happen.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation


class ValidationError(InventoryKernelError):
    """Base exception for malformed transfer requests."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object):
        self.quantity = quantity
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")


class InvalidTransferError(ValidationError):
    """Transfer endpoints do not describe a real movement."""

    code: str = "INVALID_TRANSFER"

    def __init__(self, from_user_id: int | None, to_user_id: int | None, reason: str):
        self.from_user_id = from_user_id
        self.to_user_id = to_user_id
        self.reason = reason
        super().__init__(f"Invalid transfer {from_user_id} -> {to_user_id}: {reason}")


# Lookup


class ItemNotFoundError(InventoryKernelError):
    """Stock item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Stock item not found: {item_id}")


# Availability


class AvailabilityError(InventoryKernelError):
    """Base exception for debits that exceed the available balance."""

    code: str = "AVAILABILITY_ERROR"


class InsufficientStockError(AvailabilityError):
    """The central pool holds less than the requested quantity."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: int, requested: int, available: int):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient central stock for item {item_id}: "
            f"requested {requested}, available {available}"
        )


class InsufficientAllocationError(AvailabilityError):
    """The source user holds less than the requested quantity."""

    code: str = "INSUFFICIENT_ALLOCATION"

    def __init__(self, user_id: int, item_id: int, requested: int, available: int):
        self.user_id = user_id
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"User {user_id} holds {available} of item {item_id}, "
            f"cannot move {requested}"
        )


# Authorization


class AuthorizationError(InventoryKernelError):
    """Base exception for capability checks."""

    code: str = "AUTHORIZATION_ERROR"


class ForbiddenError(AuthorizationError):
    """Actor's role does not grant the capability the operation requires."""

    code: str = "FORBIDDEN"

    def __init__(self, actor_id: int, role: str, capability: str):
        self.actor_id = actor_id
        self.role = role
        self.capability = capability
        super().__init__(
            f"User {actor_id} with role '{role}' lacks capability '{capability}'"
        )


class UnknownCapabilityError(AuthorizationError):
    """Capability name is not part of the capability enumeration."""

    code: str = "UNKNOWN_CAPABILITY"

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(f"Unknown capability: {capability!r}")


# Concurrency


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class TransientConflictError(ConcurrencyError):
    """
    A concurrent transaction modified the same rows.

    Raised inside a unit of work and retried by the TransferEngine; reaches
    the caller only once the retry budget is spent.
    """

    code: str = "TRANSIENT_CONFLICT"

    def __init__(self, entity_type: str, entity_id: object, attempts: int = 1):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempts = attempts
        super().__init__(
            f"Conflicting concurrent update on {entity_type} {entity_id} "
            f"(after {attempts} attempt(s))"
        )


# Storage


class StorageUnavailableError(InventoryKernelError):
    """The backing store could not be reached. Fatal; never retried."""

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, backend: str, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"Storage backend '{backend}' unavailable: {reason}")


# Immutability


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Movement rows are append-only from the moment they are written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify immutable {entity_type} {entity_id}: {reason}")
