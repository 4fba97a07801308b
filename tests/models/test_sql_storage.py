"""
SQL strategy behaviour that the memory strategy has no counterpart for.

Verifies:
- Lost updates surface as TransientConflictError (version column)
- Racing first allocations surface as TransientConflictError (unique key)
- An unreachable database surfaces as StorageUnavailableError
- Table constraints reject negative balances
- Timestamps round-trip as aware UTC datetimes
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from inventory_kernel.db.engine import get_engine
from inventory_kernel.exceptions import StorageUnavailableError, TransientConflictError
from inventory_kernel.storage.sql import SqlStorage

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def _add_item(storage, quantity=100):
    with storage.begin() as uow:
        item = uow.add_item(
            name="Saline", category_id=1, quantity=quantity, created_by=1, created_at=NOW
        )
        uow.commit()
    return item.id


class TestOptimisticConflicts:

    def test_lost_update_detected(self, file_sqlite_storage):
        item_id = _add_item(file_sqlite_storage)

        slow = file_sqlite_storage.begin()
        try:
            assert slow.get_item(item_id, lock=True).quantity == 100

            with file_sqlite_storage.begin() as fast:
                fast.get_item(item_id, lock=True)
                fast.set_item_quantity(item_id, 70)
                fast.commit()

            with pytest.raises(TransientConflictError) as exc_info:
                slow.set_item_quantity(item_id, 90)
            assert exc_info.value.entity_type == "StockItem"
        finally:
            slow.rollback()

        with file_sqlite_storage.begin() as uow:
            assert uow.get_item(item_id).quantity == 70

    def test_unlocked_read_also_checks_version(self, file_sqlite_storage):
        item_id = _add_item(file_sqlite_storage)

        slow = file_sqlite_storage.begin()
        try:
            assert slow.get_item(item_id).quantity == 100

            with file_sqlite_storage.begin() as fast:
                fast.get_item(item_id)
                fast.set_item_quantity(item_id, 40)
                fast.commit()

            with pytest.raises(TransientConflictError):
                slow.set_item_quantity(item_id, 40)
        finally:
            slow.rollback()

        with file_sqlite_storage.begin() as uow:
            assert uow.get_item(item_id).quantity == 40

    def test_write_requires_prior_read(self, sqlite_storage):
        item_id = _add_item(sqlite_storage)

        with sqlite_storage.begin() as uow:
            with pytest.raises(KeyError):
                uow.set_item_quantity(item_id, 10)

    def test_reread_refreshes_checked_version(self, file_sqlite_storage):
        item_id = _add_item(file_sqlite_storage)

        slow = file_sqlite_storage.begin()
        try:
            slow.get_item(item_id)
            with file_sqlite_storage.begin() as fast:
                fast.get_item(item_id)
                fast.set_item_quantity(item_id, 70)
                fast.commit()

            # Re-reading picks up the committed row, so the write is based on it.
            assert slow.get_item(item_id, lock=True).quantity == 70
            slow.set_item_quantity(item_id, 50)
            slow.commit()
        finally:
            if not slow.finished:
                slow.rollback()

        with file_sqlite_storage.begin() as uow:
            assert uow.get_item(item_id).quantity == 50

    def test_racing_first_allocation(self, file_sqlite_storage):
        item_id = _add_item(file_sqlite_storage)

        slow = file_sqlite_storage.begin()
        try:
            assert slow.get_allocation(10, item_id, lock=True) is None

            with file_sqlite_storage.begin() as fast:
                fast.add_allocation(
                    user_id=10, item_id=item_id, quantity=5, allocated_by=1, allocated_at=NOW
                )
                fast.commit()

            with pytest.raises(TransientConflictError):
                slow.add_allocation(
                    user_id=10, item_id=item_id, quantity=7, allocated_by=1, allocated_at=NOW
                )
        finally:
            slow.rollback()

        with file_sqlite_storage.begin() as uow:
            assert uow.get_allocation(10, item_id).quantity == 5


class TestStorageUnavailable:

    def test_unreachable_database(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'ledger.db'}")
        storage = SqlStorage(sessionmaker(bind=engine))
        try:
            with pytest.raises(StorageUnavailableError) as exc_info:
                with storage.begin() as uow:
                    uow.get_item(1)
            assert exc_info.value.backend == "sql"
        finally:
            engine.dispose()


class TestConstraints:

    def test_negative_central_rejected_by_database(self, sqlite_storage):
        item_id = _add_item(sqlite_storage)
        with get_engine().connect() as conn:
            with pytest.raises(IntegrityError):
                conn.execute(
                    text("UPDATE stock_items SET quantity = -1 WHERE id = :id"), {"id": item_id}
                )

    def test_duplicate_allocation_rejected_by_database(self, sqlite_storage):
        item_id = _add_item(sqlite_storage)
        insert = text(
            "INSERT INTO stock_allocations "
            "(user_id, stock_item_id, quantity, allocated_by, allocated_at, version) "
            "VALUES (10, :item, 1, 1, :at, 1)"
        )
        with get_engine().connect() as conn:
            conn.execute(insert, {"item": item_id, "at": "2024-03-01 09:30:00"})
            with pytest.raises(IntegrityError):
                conn.execute(insert, {"item": item_id, "at": "2024-03-01 09:30:00"})
            conn.rollback()


class TestTimestamps:

    def test_aware_utc_round_trip(self, sqlite_storage):
        item_id = _add_item(sqlite_storage)
        with sqlite_storage.begin() as uow:
            created_at = uow.get_item(item_id).created_at
        assert created_at == NOW
        assert created_at.tzinfo is not None
