"""
Concurrent transfer tests.

Two or more worker threads hit the same stock item at once. Whatever the
interleaving, the outcome must be one of the serial outcomes:

- Competing allocations that together exceed central stock: exactly one
  succeeds, the other fails with InsufficientStockError.
- Many small transfers: the conserved total never changes and no balance
  goes negative.
- Competing first allocations to the same user: one allocation row, with
  both credits applied.
- A transfer paused between its availability check and its write while a
  competing transfer commits: the paused one re-checks and is refused.

Runs against the memory strategy and a file-backed SQLite database; the
PostgreSQL variant runs when DATABASE_URL points at one.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier, Event, Thread, current_thread

import pytest

from inventory_kernel.domain.clock import SystemClock
from inventory_kernel.exceptions import InsufficientAllocationError, InsufficientStockError
from inventory_kernel.invariants import is_conserved
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.retry_policy import RetryPolicy
from inventory_kernel.services.transfer_engine import TransferEngine

pytestmark = pytest.mark.slow_locks

KEEPER = 1
USER_A = 10
USER_B = 11


def _create_item(storage, quantity):
    with storage.begin() as uow:
        item = uow.add_item(
            name="Insulin pen",
            category_id=1,
            quantity=quantity,
            created_by=KEEPER,
            created_at=SystemClock().now(),
        )
        uow.commit()
    return item.id


def _engine(storage):
    return TransferEngine(
        storage, SystemClock(), RetryPolicy(max_retries=50, backoff_seconds=0.005)
    )


def _run_competing(storage, item_id, requests):
    """Start every request at the same moment; collect results or errors."""
    engine = _engine(storage)
    barrier = Barrier(len(requests))

    def worker(request):
        quantity, source, destination = request
        barrier.wait()
        try:
            return engine.transfer(item_id, quantity, source, destination, moved_by=KEEPER)
        except (InsufficientStockError, InsufficientAllocationError) as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(worker, requests))


def _assert_one_wins(storage):
    item_id = _create_item(storage, 100)

    results = _run_competing(storage, item_id, [(60, None, USER_A), (60, None, USER_B)])

    failures = [r for r in results if isinstance(r, InsufficientStockError)]
    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert failures[0].available == 40

    selector = LedgerSelector(storage)
    balance = selector.item_balance(item_id)
    assert balance.central == 40
    assert balance.total == 100
    assert [a.quantity for a in selector.list_allocations(item_id=item_id)] == [60]
    assert selector.list_movements(item_id) == successes


class TestCompetingAllocations:

    def test_exactly_one_wins(self, threaded_storage):
        _assert_one_wins(threaded_storage)

    @pytest.mark.postgres
    def test_exactly_one_wins_postgres(self, postgres_storage):
        _assert_one_wins(postgres_storage)

    def test_same_destination_first_allocation(self, threaded_storage):
        item_id = _create_item(threaded_storage, 100)

        results = _run_competing(
            threaded_storage, item_id, [(10, None, USER_A), (15, None, USER_A)]
        )

        assert not any(isinstance(r, Exception) for r in results)
        selector = LedgerSelector(threaded_storage)
        (allocation,) = selector.list_allocations(user_id=USER_A)
        assert allocation.quantity == 25
        assert selector.item_balance(item_id).central == 75


class TestConservationUnderLoad:

    def test_many_small_transfers(self, threaded_storage):
        item_id = _create_item(threaded_storage, 40)
        users = [100 + n for n in range(6)]
        # Each user is allocated 5, passes 2 on to the next user and returns 1.
        requests = []
        for index, user in enumerate(users):
            requests.append([(5, None, user), (2, user, users[(index + 1) % len(users)]), (1, user, None)])

        engine = _engine(threaded_storage)
        barrier = Barrier(len(users))

        def worker(steps):
            barrier.wait()
            outcomes = []
            for quantity, source, destination in steps:
                try:
                    engine.transfer(item_id, quantity, source, destination, moved_by=KEEPER)
                    outcomes.append(True)
                except (InsufficientStockError, InsufficientAllocationError):
                    outcomes.append(False)
            return outcomes

        with ThreadPoolExecutor(max_workers=len(users)) as pool:
            outcomes = list(pool.map(worker, requests))

        selector = LedgerSelector(threaded_storage)
        balance = selector.item_balance(item_id)
        allocations = [a.quantity for a in selector.list_allocations(item_id=item_id)]
        assert is_conserved(balance.central, allocations, 40)

        committed = sum(sum(o) for o in outcomes)
        assert len(selector.list_movements(item_id)) == committed
        # Every user's first step fits in the 40 units of central stock.
        assert all(o[0] for o in outcomes)


class TestForcedInterleaving:
    """
    Hold one transfer after it has read the central quantity and before it
    writes the new one, then let a competing transfer run.

    Memory storage: the held transfer owns the item lock, so the competitor
    waits and then sees the reduced balance. SQL storage on SQLite: the
    competitor commits first and the held write fails its version check,
    so the held transfer retries against the new balance.
    """

    def test_held_debit_cannot_overdraw(self, threaded_storage, monkeypatch):
        item_id = _create_item(threaded_storage, 100)
        engine = _engine(threaded_storage)
        checked = Event()
        release = Event()
        held = []
        original_begin = threaded_storage.begin

        def begin():
            uow = original_begin()
            if current_thread().name == "held" and not held:
                held.append(uow)
                write = uow.set_item_quantity

                def set_item_quantity(item, quantity):
                    checked.set()
                    release.wait(timeout=5)
                    return write(item, quantity)

                uow.set_item_quantity = set_item_quantity
            return uow

        monkeypatch.setattr(threaded_storage, "begin", begin)

        results = {}

        def run(user):
            try:
                results[current_thread().name] = engine.transfer(
                    item_id, 60, None, user, moved_by=KEEPER
                )
            except InsufficientStockError as exc:
                results[current_thread().name] = exc

        held_thread = Thread(target=run, args=(USER_A,), name="held")
        held_thread.start()
        assert checked.wait(timeout=5)

        competitor = Thread(target=run, args=(USER_B,), name="competitor")
        competitor.start()
        # Finishes on SQLite; stays blocked on the item lock in memory.
        competitor.join(timeout=1)
        release.set()
        held_thread.join(timeout=10)
        competitor.join(timeout=10)

        assert set(results) == {"held", "competitor"}
        failures = [r for r in results.values() if isinstance(r, InsufficientStockError)]
        assert len(failures) == 1
        assert failures[0].available == 40

        selector = LedgerSelector(threaded_storage)
        balance = selector.item_balance(item_id)
        assert balance.central == 40
        assert balance.total == 100
        assert [a.quantity for a in selector.list_allocations(item_id=item_id)] == [60]
        assert len(selector.list_movements(item_id)) == 1
