"""
Unit tests for RetryPolicy and run_with_retry.

Verifies:
- Only TransientConflictError is retried
- The retry budget is bounded and reported on exhaustion
- Each attempt runs in a fresh unit of work
"""

import pytest

from inventory_kernel.exceptions import InsufficientStockError, TransientConflictError
from inventory_kernel.services.retry_policy import RetryPolicy, run_with_retry
from inventory_kernel.storage.memory import MemoryStorage


class TestRetryPolicy:

    def test_linear_backoff(self):
        policy = RetryPolicy(max_retries=3, backoff_seconds=0.5)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 1.5]

    def test_negative_values_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError):
            RetryPolicy(backoff_seconds=-0.1)


class TestRunWithRetry:

    def test_success_on_first_attempt(self):
        storage = MemoryStorage()

        def work(uow):
            uow.commit()
            return "done"

        assert run_with_retry(storage, work, policy=RetryPolicy(), operation="test") == "done"

    def test_conflict_retried_until_success(self, captured_logs):
        storage = MemoryStorage()
        units = []
        sleeps = []

        def work(uow):
            units.append(uow)
            if len(units) < 3:
                raise TransientConflictError("StockItem", 1)
            uow.commit()
            return len(units)

        result = run_with_retry(
            storage,
            work,
            policy=RetryPolicy(max_retries=3, backoff_seconds=0.25),
            operation="transfer",
            sleep=sleeps.append,
        )

        assert result == 3
        assert len(set(map(id, units))) == 3
        assert all(u.finished for u in units)
        assert sleeps == [0.25, 0.5]
        retries = [r for r in captured_logs() if r["message"] == "transfer_conflict_retry"]
        assert [r["attempt"] for r in retries] == [1, 2]

    def test_exhaustion_raises_with_attempt_count(self, captured_logs):
        storage = MemoryStorage()

        def work(uow):
            raise TransientConflictError("StockAllocation", (10, 1))

        with pytest.raises(TransientConflictError) as exc_info:
            run_with_retry(
                storage,
                work,
                policy=RetryPolicy(max_retries=2, backoff_seconds=0),
                operation="transfer",
                sleep=lambda _: None,
            )

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, TransientConflictError)
        assert any(r["message"] == "transfer_retries_exhausted" for r in captured_logs())

    def test_business_errors_not_retried(self):
        storage = MemoryStorage()
        calls = []

        def work(uow):
            calls.append(uow)
            raise InsufficientStockError(item_id=1, requested=5, available=0)

        with pytest.raises(InsufficientStockError):
            run_with_retry(storage, work, policy=RetryPolicy(), operation="transfer")
        assert len(calls) == 1
