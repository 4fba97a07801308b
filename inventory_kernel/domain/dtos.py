"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable records that cross the storage boundary:
    StockItemRecord, AllocationRecord, MovementDraft (input to the ledger),
    MovementRecord (persisted movement), ItemBalance (selector output) and
    Actor (the authenticated caller).

Architecture position:
    Kernel > Domain -- zero I/O. ``from_model()`` class methods are boundary
    converters used only by the SQL storage strategy.

Invariants enforced:
    - Stores and the transfer engine accept and return DTOs, never ORM
      entities, so both storage strategies present identical results.
    - A MovementDraft always has at least one non-central endpoint and a
      positive quantity (checked on construction).

Data flow:
    TransferEngine -> MovementDraft -> MovementLedger.append -> MovementRecord
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from inventory_kernel.domain.capabilities import Role

if TYPE_CHECKING:
    from inventory_kernel.models.allocation import StockAllocation as AllocationModel
    from inventory_kernel.models.movement import StockMovement as MovementModel
    from inventory_kernel.models.stock_item import StockItem as StockItemModel


class MovementType(str, Enum):
    """Shape of a transfer, derived from which endpoints are central."""

    ALLOCATION = "allocation"  # central -> user
    RETURN = "return"  # user -> central
    REASSIGNMENT = "reassignment"  # user -> user

    @classmethod
    def for_endpoints(
        cls, from_user_id: int | None, to_user_id: int | None
    ) -> MovementType:
        if from_user_id is None and to_user_id is None:
            raise ValueError("A movement needs at least one non-central endpoint")
        if from_user_id is None:
            return cls.ALLOCATION
        if to_user_id is None:
            return cls.RETURN
        return cls.REASSIGNMENT


@dataclass(frozen=True)
class Actor:
    """The authenticated user invoking a ledger operation."""

    id: int
    role: Role | str

    @property
    def role_name(self) -> str:
        """The role as its wire name, whether or not it is a known Role."""
        return self.role.value if isinstance(self.role, Role) else str(self.role)


@dataclass(frozen=True)
class StockItemRecord:
    """A stock item; ``quantity`` is the central pool."""

    id: int
    name: str
    category_id: int
    quantity: int
    created_by: int
    created_at: datetime | None = None
    price: int = 0
    expiry: datetime | None = None
    unique_number: str | None = None
    notes: str | None = None
    version: int = 1

    @classmethod
    def from_model(cls, model: StockItemModel) -> StockItemRecord:
        return cls(
            id=model.id,
            name=model.name,
            category_id=model.category_id,
            quantity=model.quantity,
            created_by=model.created_by,
            created_at=model.created_at,
            price=model.price,
            expiry=model.expiry,
            unique_number=model.unique_number,
            notes=model.notes,
            version=model.version,
        )


@dataclass(frozen=True)
class AllocationRecord:
    """Quantity of one item held by one user."""

    id: int
    user_id: int
    stock_item_id: int
    quantity: int
    allocated_by: int
    allocated_at: datetime
    version: int = 1

    @classmethod
    def from_model(cls, model: AllocationModel) -> AllocationRecord:
        return cls(
            id=model.id,
            user_id=model.user_id,
            stock_item_id=model.stock_item_id,
            quantity=model.quantity,
            allocated_by=model.allocated_by,
            allocated_at=model.allocated_at,
            version=model.version,
        )


@dataclass(frozen=True)
class MovementDraft:
    """A movement not yet written to the ledger."""

    stock_item_id: int
    from_user_id: int | None
    to_user_id: int | None
    quantity: int
    moved_by: int
    notes: str | None = None
    moved_at: datetime | None = None
    type: MovementType = field(init=False)

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Movement quantity must be positive, got {self.quantity}")
        object.__setattr__(
            self, "type", MovementType.for_endpoints(self.from_user_id, self.to_user_id)
        )


@dataclass(frozen=True)
class MovementRecord:
    """An immutable, persisted movement."""

    id: int
    stock_item_id: int
    from_user_id: int | None
    to_user_id: int | None
    quantity: int
    moved_by: int
    moved_at: datetime
    type: MovementType
    notes: str | None = None

    @classmethod
    def from_model(cls, model: MovementModel) -> MovementRecord:
        return cls(
            id=model.id,
            stock_item_id=model.stock_item_id,
            from_user_id=model.from_user_id,
            to_user_id=model.to_user_id,
            quantity=model.quantity,
            moved_by=model.moved_by,
            moved_at=model.moved_at,
            type=MovementType(model.type),
            notes=model.notes,
        )


@dataclass(frozen=True)
class ItemBalance:
    """Central and allocated quantities of one item at a point in time."""

    item_id: int
    central: int
    allocated: int

    @property
    def total(self) -> int:
        return self.central + self.allocated
