"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from shoptrack_kernel.domain.analytics import (
    AllTimeStats,
    AnalyticsSummary,
    Drift,
    PeriodStats,
    ProductAdded,
    ProductDeleted,
    ProductsImported,
    ProductUpdated,
    SaleRecorded,
    SalesCleared,
    TopSellingItem,
    apply_event,
    default_summary,
    derive_top_selling,
    find_drift,
    rebuild_inventory_stats,
    rebuild_summary,
    summary_from_document,
    summary_to_document,
)
from shoptrack_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from shoptrack_kernel.domain.entities import (
    NewProduct,
    PaymentMode,
    Product,
    ProductKind,
    Sale,
    SaleItem,
    SaleLine,
    SaleRequest,
    is_valid_payment_mode,
    is_valid_product,
    is_valid_sale_item,
    validate_new_product,
    validate_sale_request,
)
from shoptrack_kernel.domain.stock_ledger import StockPlan, plan_stock_decrements

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Entities
    "NewProduct",
    "PaymentMode",
    "Product",
    "ProductKind",
    "Sale",
    "SaleItem",
    "SaleLine",
    "SaleRequest",
    "is_valid_payment_mode",
    "is_valid_product",
    "is_valid_sale_item",
    "validate_new_product",
    "validate_sale_request",
    # Analytics
    "AllTimeStats",
    "AnalyticsSummary",
    "Drift",
    "PeriodStats",
    "TopSellingItem",
    "ProductAdded",
    "ProductDeleted",
    "ProductsImported",
    "ProductUpdated",
    "SaleRecorded",
    "SalesCleared",
    "apply_event",
    "default_summary",
    "derive_top_selling",
    "find_drift",
    "rebuild_inventory_stats",
    "rebuild_summary",
    "summary_from_document",
    "summary_to_document",
    # Stock ledger
    "StockPlan",
    "plan_stock_decrements",
]
