"""
Module: inventory_kernel.storage.sql
Responsibility: SQLAlchemy storage strategy over the ``stock_items``,
    ``stock_allocations`` and ``stock_movements`` tables.
Architecture position: Kernel > Storage. Implements storage/base.py using
    models/ and db/. One SQLAlchemy Session per unit of work.

Invariants enforced:
    - Locked reads use ``SELECT ... FOR UPDATE`` with ``populate_existing`` so
      every transfer re-reads current balances inside its transaction.
    - ``version_id_col`` on stock items and allocations turns a lost update
      into StaleDataError, reported as TransientConflictError. This is the
      protection on SQLite, which ignores FOR UPDATE.
    - A unique-constraint collision when two transfers create the same
      allocation row is reported as TransientConflictError.
    - Movement immutability listeners are registered when the strategy is
      constructed.

Failure modes:
    - TransientConflictError: stale version, allocation insert race,
      PostgreSQL serialization failure / deadlock / lock timeout, SQLite
      "database is locked".
    - StorageUnavailableError: any other OperationalError (connection
      refused, server gone away, pool timeout).
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.dtos import (
    AllocationRecord,
    MovementDraft,
    MovementRecord,
    StockItemRecord,
)
from inventory_kernel.exceptions import StorageUnavailableError, TransientConflictError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.allocation import StockAllocation
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.models.stock_item import StockItem
from inventory_kernel.storage.base import LedgerStorage, UnitOfWork

logger = get_logger("storage.sql")

# serialization_failure, deadlock_detected, lock_not_available
_TRANSIENT_PGCODES = frozenset({"40001", "40P01", "55P03"})


def _is_transient(exc: DBAPIError) -> bool:
    pgcode = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if pgcode in _TRANSIENT_PGCODES:
        return True
    return "database is locked" in str(exc.orig).lower()


class SqlStorage(LedgerStorage):
    """Ledger storage over a relational database."""

    backend = "sql"

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        register_immutability_listeners()

    def begin(self) -> SqlUnitOfWork:
        try:
            session = self._session_factory()
        except OperationalError as exc:
            raise StorageUnavailableError(self.backend, str(exc.orig)) from exc
        return SqlUnitOfWork(session)


class SqlUnitOfWork(UnitOfWork):
    """A unit of work bound to one SQLAlchemy session."""

    backend = "sql"

    def __init__(self, session: Session) -> None:
        super().__init__()
        self._session = session
        # Instances loaded in this unit of work. Writes go through these so
        # the version read at load time is the one checked on flush.
        self._items: dict[int, StockItem] = {}
        self._allocations: dict[tuple[int, int], StockAllocation] = {}

    @contextmanager
    def _translate(self, entity_type: str, entity_id: object) -> Iterator[None]:
        """Map driver and ORM errors onto the kernel taxonomy."""
        try:
            yield
        except StaleDataError as exc:
            logger.info(
                "optimistic_version_conflict",
                extra={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
            raise TransientConflictError(entity_type, entity_id) from exc
        except OperationalError as exc:
            if _is_transient(exc):
                raise TransientConflictError(entity_type, entity_id) from exc
            raise StorageUnavailableError(self.backend, str(exc.orig)) from exc
        except PoolTimeoutError as exc:
            raise StorageUnavailableError(self.backend, str(exc)) from exc
        except DBAPIError as exc:
            if _is_transient(exc):
                raise TransientConflictError(entity_type, entity_id) from exc
            raise

    # -- stock items --------------------------------------------------------

    def _load_item(self, item_id: int, lock: bool) -> StockItem | None:
        stmt = select(StockItem).where(StockItem.id == item_id)
        if lock:
            stmt = stmt.with_for_update()
        with self._translate("StockItem", item_id):
            model = self._session.execute(
                stmt.execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if model is not None:
            self._items[item_id] = model
        return model

    def get_item(self, item_id: int, *, lock: bool = False) -> StockItemRecord | None:
        model = self._load_item(item_id, lock)
        return StockItemRecord.from_model(model) if model is not None else None

    def add_item(
        self,
        *,
        name: str,
        category_id: int,
        quantity: int,
        created_by: int,
        created_at: datetime,
        price: int = 0,
        expiry: datetime | None = None,
        unique_number: str | None = None,
        notes: str | None = None,
    ) -> StockItemRecord:
        model = StockItem(
            name=name,
            category_id=category_id,
            quantity=quantity,
            created_by=created_by,
            created_at=created_at,
            price=price,
            expiry=expiry,
            unique_number=unique_number,
            notes=notes,
        )
        self._session.add(model)
        with self._translate("StockItem", name):
            self._session.flush()
        self._items[model.id] = model
        return StockItemRecord.from_model(model)

    def set_item_quantity(self, item_id: int, quantity: int) -> StockItemRecord:
        model = self._items.get(item_id)
        if model is None:
            raise KeyError(f"Stock item {item_id} not loaded")
        model.quantity = quantity
        with self._translate("StockItem", item_id):
            self._session.flush()
        return StockItemRecord.from_model(model)

    # -- allocations --------------------------------------------------------

    def _load_allocation(
        self, user_id: int, item_id: int, lock: bool
    ) -> StockAllocation | None:
        stmt = select(StockAllocation).where(
            StockAllocation.user_id == user_id,
            StockAllocation.stock_item_id == item_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        with self._translate("StockAllocation", (user_id, item_id)):
            model = self._session.execute(
                stmt.execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if model is not None:
            self._allocations[(user_id, item_id)] = model
        return model

    def get_allocation(
        self, user_id: int, item_id: int, *, lock: bool = False
    ) -> AllocationRecord | None:
        model = self._load_allocation(user_id, item_id, lock)
        return AllocationRecord.from_model(model) if model is not None else None

    def add_allocation(
        self,
        *,
        user_id: int,
        item_id: int,
        quantity: int,
        allocated_by: int,
        allocated_at: datetime,
    ) -> AllocationRecord:
        model = StockAllocation(
            user_id=user_id,
            stock_item_id=item_id,
            quantity=quantity,
            allocated_by=allocated_by,
            allocated_at=allocated_at,
        )
        self._session.add(model)
        try:
            with self._translate("StockAllocation", (user_id, item_id)):
                self._session.flush()
        except IntegrityError as exc:
            # Another transaction created the same (user, item) row first.
            raise TransientConflictError("StockAllocation", (user_id, item_id)) from exc
        self._allocations[(user_id, item_id)] = model
        return AllocationRecord.from_model(model)

    def update_allocation(
        self,
        user_id: int,
        item_id: int,
        *,
        quantity: int,
        allocated_by: int | None = None,
        allocated_at: datetime | None = None,
    ) -> AllocationRecord:
        model = self._allocations.get((user_id, item_id))
        if model is None:
            raise KeyError(f"Allocation ({user_id}, {item_id}) not loaded")
        model.quantity = quantity
        if allocated_by is not None:
            model.allocated_by = allocated_by
        if allocated_at is not None:
            model.allocated_at = allocated_at
        with self._translate("StockAllocation", (user_id, item_id)):
            self._session.flush()
        return AllocationRecord.from_model(model)

    def list_allocations(
        self, user_id: int | None = None, item_id: int | None = None
    ) -> list[AllocationRecord]:
        stmt = select(StockAllocation).order_by(StockAllocation.id)
        if user_id is not None:
            stmt = stmt.where(StockAllocation.user_id == user_id)
        if item_id is not None:
            stmt = stmt.where(StockAllocation.stock_item_id == item_id)
        with self._translate("StockAllocation", user_id):
            rows = self._session.execute(stmt).scalars().all()
        return [AllocationRecord.from_model(r) for r in rows]

    # -- movements ----------------------------------------------------------

    def add_movement(self, draft: MovementDraft) -> MovementRecord:
        if draft.moved_at is None:
            raise ValueError("MovementDraft.moved_at must be set before append")
        model = StockMovement(
            stock_item_id=draft.stock_item_id,
            from_user_id=draft.from_user_id,
            to_user_id=draft.to_user_id,
            quantity=draft.quantity,
            notes=draft.notes,
            moved_at=draft.moved_at,
            moved_by=draft.moved_by,
            type=draft.type.value,
        )
        self._session.add(model)
        with self._translate("StockMovement", draft.stock_item_id):
            self._session.flush()
        return MovementRecord.from_model(model)

    def list_movements(self, item_id: int | None = None) -> list[MovementRecord]:
        stmt = select(StockMovement).order_by(StockMovement.moved_at, StockMovement.id)
        if item_id is not None:
            stmt = stmt.where(StockMovement.stock_item_id == item_id)
        with self._translate("StockMovement", item_id):
            rows = self._session.execute(stmt).scalars().all()
        return [MovementRecord.from_model(r) for r in rows]

    # -- transaction control ------------------------------------------------

    def commit(self) -> None:
        try:
            with self._translate("transaction", None):
                self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        finally:
            self._finished = True
            self._session.close()

    def rollback(self) -> None:
        try:
            self._session.rollback()
        finally:
            self._finished = True
            self._session.close()
