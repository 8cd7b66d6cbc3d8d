"""Kernel services - the transaction coordinator and caller retry policy."""

from shoptrack_kernel.services.retry_policy import RetryPolicy
from shoptrack_kernel.services.transaction_coordinator import (
    ReconcileReport,
    ReconcileScope,
    TransactionCoordinator,
)

__all__ = [
    "TransactionCoordinator",
    "ReconcileScope",
    "ReconcileReport",
    "RetryPolicy",
]
