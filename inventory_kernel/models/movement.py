"""
Module: inventory_kernel.models.movement
Responsibility: ORM persistence for the movement ledger, the audit trail of
    every completed transfer.
Architecture position: Kernel > Models. May import from db/base.py only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listeners in db/immutability.py,
      PostgreSQL triggers in db/sql/01_stock_movement.sql).
    - quantity > 0; at least one of from_user_id / to_user_id is non-null.
    - A null endpoint means the central pool.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, IdType


class StockMovement(Base):
    """One completed transfer between two endpoints."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        CheckConstraint(
            "from_user_id IS NOT NULL OR to_user_id IS NOT NULL",
            name="ck_stock_movements_has_user_endpoint",
        ),
        Index("idx_stock_movements_item_moved_at", "stock_item_id", "moved_at"),
    )

    stock_item_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("stock_items.id"),
        nullable=False,
    )

    # Null means the central pool
    from_user_id: Mapped[int | None] = mapped_column(nullable=True)
    to_user_id: Mapped[int | None] = mapped_column(nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    moved_at: Mapped[datetime] = mapped_column(nullable=False)
    moved_by: Mapped[int] = mapped_column(nullable=False)

    # 'allocation' | 'return' | 'reassignment'
    type: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.id} item={self.stock_item_id} "
            f"{self.from_user_id}->{self.to_user_id} qty={self.quantity}>"
        )
