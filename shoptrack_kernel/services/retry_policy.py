"""
RetryPolicy -- caller-side retry of conflicting coordinator calls.

Responsibility:
    Re-invokes a coordinator call when it fails with TransactionConflictError
    (and, if enabled, StorageUnavailableError), up to a fixed budget, with a
    linear backoff between attempts.

Architecture position:
    Kernel > Services -- imperative shell.
    Wraps TransactionCoordinator calls; the coordinator itself never retries.

Invariants enforced:
    MAX_ATTEMPTS -- Safety limit (10) prevents unbounded retry loops no
    matter what budget is configured.

Failure modes:
    - The last retryable error is re-raised once the budget is spent.
    - Any other error propagates on the first attempt.

Usage:
    policy = RetryPolicy(max_attempts=3, backoff_seconds=0.05)
    sale = policy.run(lambda: coordinator.record_sale(tenant_id, request))
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from shoptrack_kernel.exceptions import StorageUnavailableError, TransactionConflictError
from shoptrack_kernel.logging_config import get_logger

logger = get_logger("services.retry_policy")

T = TypeVar("T")


class RetryPolicy:
    """Bounded retry of one idempotent-on-failure call."""

    # INVARIANT: Safety limit -- prevents unbounded retry loops
    MAX_ATTEMPTS = 10

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 0.05,
        retry_on_unavailable: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")
        self.max_attempts = min(max_attempts, self.MAX_ATTEMPTS)
        self.backoff_seconds = backoff_seconds
        self.retry_on_unavailable = retry_on_unavailable
        self._sleep = sleep

    def _retryable(self) -> tuple[type[Exception], ...]:
        if self.retry_on_unavailable:
            return (TransactionConflictError, StorageUnavailableError)
        return (TransactionConflictError,)

    def run(self, fn: Callable[[], T]) -> T:
        """
        Call ``fn`` until it succeeds or the attempt budget is spent.

        Raises:
            TransactionConflictError / StorageUnavailableError: The error of
                the final attempt.
        """
        retryable = self._retryable()
        attempt = 1
        while True:
            try:
                return fn()
            except retryable as exc:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "retry_budget_exhausted",
                        extra={"attempts": attempt, "error_code": exc.code},
                    )
                    raise
                delay = self.backoff_seconds * attempt
                logger.info(
                    "retry_scheduled",
                    extra={
                        "attempt": attempt,
                        "error_code": exc.code,
                        "delay_seconds": delay,
                    },
                )
                self._sleep(delay)
                attempt += 1
