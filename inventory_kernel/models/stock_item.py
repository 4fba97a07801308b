"""
Module: inventory_kernel.models.stock_item
Responsibility: ORM persistence for stock items. ``quantity`` is the central
    pool, the stock not allocated to any user.
Architecture position: Kernel > Models. May import from db/base.py only.

Invariants enforced:
    - quantity >= 0 (CHECK constraint; StockItemStore checks first).
    - version is bumped on every UPDATE (SQLAlchemy version_id_col); a
      concurrent writer holding a stale version fails with StaleDataError,
      which the SQL storage strategy reports as TransientConflictError.

Failure modes:
    - IntegrityError if a write would make quantity negative.
    - StaleDataError on a lost-update race (SQLite, where FOR UPDATE is a
      no-op).
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class StockItem(Base):
    """A stock item and its central pool quantity."""

    __tablename__ = "stock_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_items_quantity_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category_id: Mapped[int] = mapped_column(nullable=False, index=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Price in cents
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expiry: Mapped[datetime | None] = mapped_column(nullable=True)
    unique_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by: Mapped[int] = mapped_column(nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<StockItem {self.id} {self.name!r} qty={self.quantity}>"
