"""
Module: inventory_kernel.models.allocation
Responsibility: ORM persistence for per-user holdings of a stock item.
Architecture position: Kernel > Models. May import from db/base.py only.

Invariants enforced:
    - UNIQUE(user_id, stock_item_id): at most one authoritative row per pair.
      Two transfers racing to create the same row collide here; the loser
      is retried by the TransferEngine.
    - quantity >= 0 (CHECK constraint). Rows that reach zero are kept.
    - version bumped on every UPDATE (optimistic concurrency).
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, IdType


class StockAllocation(Base):
    """Quantity of one stock item held by one user."""

    __tablename__ = "stock_allocations"

    __table_args__ = (
        UniqueConstraint("user_id", "stock_item_id", name="uq_stock_allocations_user_item"),
        CheckConstraint("quantity >= 0", name="ck_stock_allocations_quantity_non_negative"),
    )

    user_id: Mapped[int] = mapped_column(nullable=False, index=True)
    stock_item_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("stock_items.id"),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    allocated_at: Mapped[datetime] = mapped_column(nullable=False)
    allocated_by: Mapped[int] = mapped_column(nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<StockAllocation user={self.user_id} item={self.stock_item_id} "
            f"qty={self.quantity}>"
        )
