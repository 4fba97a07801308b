"""
Tests for the InventoryLedger facade.

Verifies:
- Stock item lifecycle: create, restock, write-off
- Transfers record the actor as moved_by
- Read-after-write of allocations, movements and balances
- Actor context in log events
"""

from datetime import datetime, timezone

import pytest

from inventory_kernel.domain.capabilities import Capability, Role
from inventory_kernel.domain.dtos import MovementType
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ItemNotFoundError,
    UnknownCapabilityError,
)

USER_A = 10
USER_B = 11


class TestStockItems:

    def test_create_with_details(self, ledger, keeper, deterministic_clock):
        expiry = datetime(2026, 1, 31, tzinfo=timezone.utc)
        item = ledger.create_stock_item(
            "Paracetamol",
            3,
            250,
            keeper,
            price=1200,
            expiry=expiry,
            unique_number="PCM-001",
            notes="blister packs",
        )

        stored = ledger.get_stock_item(item.id)
        assert stored == item
        assert stored.quantity == 250
        assert stored.created_by == keeper.id
        assert stored.created_at == deterministic_clock.now()
        assert stored.expiry == expiry
        assert stored.unique_number == "PCM-001"

    def test_create_with_zero_quantity(self, ledger, keeper):
        assert ledger.create_stock_item("Gauze", 1, 0, keeper).quantity == 0

    @pytest.mark.parametrize("quantity", [-1, 1.5, True])
    def test_create_rejects_bad_quantity(self, ledger, keeper, quantity):
        with pytest.raises(InvalidQuantityError):
            ledger.create_stock_item("Gauze", 1, quantity, keeper)

    def test_create_rejects_blank_name(self, ledger, keeper):
        with pytest.raises(ValueError):
            ledger.create_stock_item("  ", 1, 5, keeper)

    def test_restock_grows_total(self, ledger, keeper, create_item, captured_logs):
        item = create_item(100)
        ledger.transfer(item.id, 40, None, USER_A, keeper)

        ledger.restock(item.id, 50, keeper)

        balance = ledger.item_balance(item.id)
        assert (balance.central, balance.allocated, balance.total) == (110, 40, 150)
        assert len(ledger.get_movements(item.id)) == 1
        assert any(r["message"] == "stock_restocked" for r in captured_logs())

    def test_write_off_limited_to_central(self, ledger, keeper, create_item):
        item = create_item(100)
        ledger.transfer(item.id, 80, None, USER_A, keeper)

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.write_off(item.id, 21, keeper)
        assert exc_info.value.available == 20

        assert ledger.write_off(item.id, 20, keeper).quantity == 0
        assert ledger.item_balance(item.id).total == 80

    def test_restock_unknown_item(self, ledger, keeper):
        with pytest.raises(ItemNotFoundError):
            ledger.restock(999, 5, keeper)

    def test_get_unknown_item(self, ledger):
        with pytest.raises(ItemNotFoundError):
            ledger.get_stock_item(999)


class TestTransfers:

    def test_actor_is_recorded(self, ledger, keeper, create_item):
        item = create_item(100)
        movement = ledger.transfer(item.id, 30, None, USER_A, keeper)

        assert movement.moved_by == keeper.id
        (allocation,) = ledger.get_allocations(USER_A)
        assert allocation.allocated_by == keeper.id
        assert allocation.quantity == 30

    def test_read_after_write(self, ledger, keeper, create_item, deterministic_clock):
        first = create_item(100, name="Item one")
        second = create_item(50, name="Item two")

        ledger.transfer(first.id, 10, None, USER_A, keeper)
        deterministic_clock.tick()
        ledger.transfer(second.id, 5, None, USER_A, keeper)
        deterministic_clock.tick()
        ledger.transfer(first.id, 4, USER_A, USER_B, keeper)

        assert {(a.stock_item_id, a.quantity) for a in ledger.get_allocations(USER_A)} == {
            (first.id, 6),
            (second.id, 5),
        }
        assert [a.quantity for a in ledger.get_allocations(USER_B)] == [4]
        assert len(ledger.get_allocations()) == 3

        history = ledger.get_movements(first.id)
        assert [m.type for m in history] == [MovementType.ALLOCATION, MovementType.REASSIGNMENT]
        assert len(ledger.get_movements()) == 3

    def test_actor_bound_in_logs(self, ledger, keeper, create_item, captured_logs):
        item = create_item(100)
        ledger.transfer(item.id, 1, None, USER_A, keeper)

        (committed,) = [r for r in captured_logs() if r["message"] == "transfer_committed"]
        assert committed["actor_id"] == str(keeper.id)
        assert committed["actor_role"] == "stockKeeper"


class TestHasCapability:

    def test_lookup(self, ledger):
        assert ledger.has_capability(Role.STOCK_KEEPER, Capability.RESTOCK_INVENTORY)
        assert ledger.has_capability("productManager", "canShareInventory")
        assert not ledger.has_capability("medicalRep", "canMoveStock")

    def test_unknown_capability(self, ledger):
        with pytest.raises(UnknownCapabilityError):
            ledger.has_capability("ceo", "canDoAnything")
