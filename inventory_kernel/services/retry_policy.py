"""
Conflict retry for units of work.

Responsibility:
    Runs a unit-of-work callable, re-running it in a fresh unit of work when
    it raises TransientConflictError, up to a bounded number of retries.

Architecture position:
    Kernel > Services. Used by TransferEngine and StockAdjustmentService.

Invariants enforced:
    - Bounded: at most ``max_retries`` re-runs after the first attempt.
    - Only TransientConflictError is retried. Validation, availability,
      authorization and storage-unavailable errors propagate on first sight.
    - Each attempt opens a new unit of work, so every retry re-reads current
      balances.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from inventory_kernel.exceptions import TransientConflictError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.storage.base import LedgerStorage, UnitOfWork

logger = get_logger("services.retry_policy")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times, and how patiently, to retry a conflicted unit of work."""

    max_retries: int = 3
    backoff_seconds: float = 0.01

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff_seconds < 0:
            raise ValueError(f"backoff_seconds must be >= 0, got {self.backoff_seconds}")

    def delay_for(self, attempt: int) -> float:
        """Linear backoff: attempt 1 waits one step, attempt 2 two steps..."""
        return self.backoff_seconds * attempt


def run_with_retry(
    storage: LedgerStorage,
    work: Callable[[UnitOfWork], T],
    *,
    policy: RetryPolicy,
    operation: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``work`` in a unit of work, retrying on TransientConflictError.

    ``work`` must call ``uow.commit()`` itself before returning.

    Raises:
        TransientConflictError: When every attempt conflicted. ``attempts``
            on the raised error is the total number of attempts made.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            with storage.begin() as uow:
                return work(uow)
        except TransientConflictError as exc:
            if attempt > policy.max_retries:
                logger.warning(
                    f"{operation}_retries_exhausted",
                    extra={
                        "attempts": attempt,
                        "entity_type": exc.entity_type,
                        "entity_id": str(exc.entity_id),
                    },
                )
                raise TransientConflictError(
                    exc.entity_type, exc.entity_id, attempts=attempt
                ) from exc
            logger.info(
                f"{operation}_conflict_retry",
                extra={
                    "attempt": attempt,
                    "entity_type": exc.entity_type,
                    "entity_id": str(exc.entity_id),
                },
            )
            sleep(policy.delay_for(attempt))
