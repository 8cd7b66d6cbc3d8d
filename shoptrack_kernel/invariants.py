"""
Kernel Invariants Contract.

These invariants are structural law for every tenant. No configuration value
may switch them off.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across the stock ledger, the analytics
aggregator, the SQL transaction handle and the transaction coordinator.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """An item's stock never drops below zero. Enforced by
    plan_stock_decrements before any write is issued."""

    SUMMARY_RECONCILES = "summary_reconciles"
    """allTime.totalProducts / totalStock equal the live product count and
    item stock sum; revenue and profit tiers equal the sum over stored sales.
    Enforced by updating the summary in the same transaction as every
    product or sale mutation, and restorable by reconcile_summary."""

    SALE_ATOMICITY = "sale_atomicity"
    """A sale, its stock decrements and its analytics update commit together
    or not at all. Enforced by Repository.run_atomic."""

    READ_BEFORE_WRITE = "read_before_write"
    """Every read in a transaction happens before its first write, and only
    records read in the read phase may be updated. Enforced by the
    Transaction handle."""

    TENANT_ISOLATION = "tenant_isolation"
    """Every read and write is scoped to exactly one tenant. Enforced by the
    tenant-bound Transaction handle and tenant_id filters."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "shoptrack_config",
)
