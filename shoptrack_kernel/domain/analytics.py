"""
Analytics -- Pure aggregation of the per-tenant analytics summary.

Responsibility:
    Given the current AnalyticsSummary and one inventory or sales event,
    produce the next AnalyticsSummary.  Also rebuilds a summary from a full
    scan of products and sales (reconciliation) and reports where a stored
    summary has drifted from the records.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Called by TransactionCoordinator between the read and write phases of
    every mutation.

Invariants enforced:
    - total_products / total_stock change only on product events (and by the
      stock_change of a recorded sale); clearing sales never touches them.
    - Revenue, profit, payment-mode and per-period tiers change only on sale
      events.
    - payment_mode_stats always carries every PaymentMode key.
    - Day keys are ``YYYY-MM-DD`` and month keys ``YYYY-MM``, both taken from
      the sale timestamp in UTC.

Event table:
    ProductAdded       total_products += 1; total_stock += stock (items)
    ProductsImported   ProductAdded for every product, in order
    ProductUpdated     total_stock += new tracked stock - old tracked stock
    ProductDeleted     total_products -= 1; total_stock -= stock (items)
    SaleRecorded       revenue, profit, payment mode, day, month, top sellers,
                       total_stock += stock_change
    SalesCleared       reset every sales-derived field
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from shoptrack_kernel.domain.clock import as_utc
from shoptrack_kernel.domain.entities import (
    ZERO,
    PaymentMode,
    Product,
    Sale,
    coerce_payment_mode,
    is_valid_payment_mode,
    to_decimal,
    to_int,
    to_text,
)

DEFAULT_TOP_SELLING_LIMIT = 5


def _zero_payment_stats() -> dict[PaymentMode, Decimal]:
    return {mode: ZERO for mode in PaymentMode}


@dataclass(frozen=True)
class PeriodStats:
    """Revenue and profit for one calendar day or month."""

    revenue: Decimal = ZERO
    profit: Decimal = ZERO

    def plus(self, revenue: Decimal, profit: Decimal) -> PeriodStats:
        return PeriodStats(self.revenue + revenue, self.profit + profit)


@dataclass(frozen=True)
class TopSellingItem:
    name: str
    quantity: int


@dataclass(frozen=True)
class AllTimeStats:
    """
    The all-time tier.

    item_quantities is the running product-name -> cumulative quantity tally;
    top_selling_items is always derived from it.
    """

    total_revenue: Decimal = ZERO
    total_profit: Decimal = ZERO
    total_products: int = 0
    total_stock: int = 0
    top_selling_items: tuple[TopSellingItem, ...] = ()
    payment_mode_stats: dict[PaymentMode, Decimal] = field(
        default_factory=_zero_payment_stats
    )
    item_quantities: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalyticsSummary:
    """The materialized analytics document of one tenant."""

    all_time: AllTimeStats = field(default_factory=AllTimeStats)
    daily: dict[str, PeriodStats] = field(default_factory=dict)
    monthly: dict[str, PeriodStats] = field(default_factory=dict)


def default_summary() -> AnalyticsSummary:
    """A structurally complete, all-zero summary."""
    return AnalyticsSummary()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProductAdded:
    product: Product


@dataclass(frozen=True)
class ProductsImported:
    products: tuple[Product, ...]


@dataclass(frozen=True)
class ProductUpdated:
    before: Product
    after: Product


@dataclass(frozen=True)
class ProductDeleted:
    product: Product


@dataclass(frozen=True)
class SaleRecorded:
    sale: Sale
    stock_change: int = 0


@dataclass(frozen=True)
class SalesCleared:
    pass


AnalyticsEvent = (
    ProductAdded
    | ProductsImported
    | ProductUpdated
    | ProductDeleted
    | SaleRecorded
    | SalesCleared
)


# ---------------------------------------------------------------------------
# Calendar keys
# ---------------------------------------------------------------------------


def day_key(timestamp: datetime) -> str:
    return as_utc(timestamp).strftime("%Y-%m-%d")


def month_key(timestamp: datetime) -> str:
    return as_utc(timestamp).strftime("%Y-%m")


# ---------------------------------------------------------------------------
# Per-event transitions
# ---------------------------------------------------------------------------


def derive_top_selling(
    quantities: Mapping[str, int],
    limit: int = DEFAULT_TOP_SELLING_LIMIT,
) -> tuple[TopSellingItem, ...]:
    """
    Top ``limit`` names by quantity, descending.

    Names with no quantity sold are excluded.  The sort is stable, so ties keep
    the order in which the names were first encountered.
    """
    ranked = sorted(
        (TopSellingItem(name, qty) for name, qty in quantities.items() if qty > 0),
        key=lambda item: item.quantity,
        reverse=True,
    )
    return tuple(ranked[:limit])


def apply_product_added(summary: AnalyticsSummary, product: Product) -> AnalyticsSummary:
    all_time = summary.all_time
    return replace(
        summary,
        all_time=replace(
            all_time,
            total_products=all_time.total_products + 1,
            total_stock=all_time.total_stock + product.tracked_stock,
        ),
    )


def apply_products_imported(
    summary: AnalyticsSummary, products: Iterable[Product]
) -> AnalyticsSummary:
    for product in products:
        summary = apply_product_added(summary, product)
    return summary


def apply_product_updated(
    summary: AnalyticsSummary, before: Product, after: Product
) -> AnalyticsSummary:
    # tracked_stock is 0 for services, so item <-> service changes net out.
    all_time = summary.all_time
    delta = after.tracked_stock - before.tracked_stock
    return replace(
        summary,
        all_time=replace(all_time, total_stock=all_time.total_stock + delta),
    )


def apply_product_deleted(summary: AnalyticsSummary, product: Product) -> AnalyticsSummary:
    all_time = summary.all_time
    return replace(
        summary,
        all_time=replace(
            all_time,
            total_products=all_time.total_products - 1,
            total_stock=all_time.total_stock - product.tracked_stock,
        ),
    )


def apply_sale_recorded(
    summary: AnalyticsSummary,
    sale: Sale,
    stock_change: int = 0,
    top_selling_limit: int = DEFAULT_TOP_SELLING_LIMIT,
) -> AnalyticsSummary:
    all_time = summary.all_time
    revenue = sale.total_amount
    profit = sale.profit

    payment_stats = dict(all_time.payment_mode_stats)
    payment_stats[sale.payment_mode] = payment_stats.get(sale.payment_mode, ZERO) + revenue

    quantities = dict(all_time.item_quantities)
    for item in sale.items:
        quantities[item.product_name] = quantities.get(item.product_name, 0) + item.quantity

    daily = dict(summary.daily)
    dkey = day_key(sale.sold_at)
    daily[dkey] = daily.get(dkey, PeriodStats()).plus(revenue, profit)

    monthly = dict(summary.monthly)
    mkey = month_key(sale.sold_at)
    monthly[mkey] = monthly.get(mkey, PeriodStats()).plus(revenue, profit)

    return AnalyticsSummary(
        all_time=replace(
            all_time,
            total_revenue=all_time.total_revenue + revenue,
            total_profit=all_time.total_profit + profit,
            total_stock=all_time.total_stock + stock_change,
            payment_mode_stats=payment_stats,
            item_quantities=quantities,
            top_selling_items=derive_top_selling(quantities, top_selling_limit),
        ),
        daily=daily,
        monthly=monthly,
    )


def apply_sales_cleared(summary: AnalyticsSummary) -> AnalyticsSummary:
    """Reset every sales-derived field; keep the inventory counters."""
    return AnalyticsSummary(
        all_time=AllTimeStats(
            total_products=summary.all_time.total_products,
            total_stock=summary.all_time.total_stock,
        ),
    )


_HANDLERS: dict[type, Callable[..., AnalyticsSummary]] = {
    ProductAdded: lambda s, e, _limit: apply_product_added(s, e.product),
    ProductsImported: lambda s, e, _limit: apply_products_imported(s, e.products),
    ProductUpdated: lambda s, e, _limit: apply_product_updated(s, e.before, e.after),
    ProductDeleted: lambda s, e, _limit: apply_product_deleted(s, e.product),
    SaleRecorded: lambda s, e, limit: apply_sale_recorded(
        s, e.sale, e.stock_change, limit
    ),
    SalesCleared: lambda s, e, _limit: apply_sales_cleared(s),
}


def apply_event(
    summary: AnalyticsSummary,
    event: AnalyticsEvent,
    top_selling_limit: int = DEFAULT_TOP_SELLING_LIMIT,
) -> AnalyticsSummary:
    """
    Produce the next summary for one event.

    Raises:
        TypeError: If ``event`` is not one of the analytics event types.
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unsupported analytics event: {type(event).__name__}")
    return handler(summary, event, top_selling_limit)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def rebuild_inventory_stats(
    summary: AnalyticsSummary, products: Iterable[Product]
) -> AnalyticsSummary:
    """Replace total_products / total_stock with values from a full scan."""
    products = list(products)
    return replace(
        summary,
        all_time=replace(
            summary.all_time,
            total_products=len(products),
            total_stock=sum(p.tracked_stock for p in products),
        ),
    )


def rebuild_summary(
    products: Iterable[Product],
    sales: Iterable[Sale],
    top_selling_limit: int = DEFAULT_TOP_SELLING_LIMIT,
) -> AnalyticsSummary:
    """
    Recompute a summary from every product and sale of a tenant.

    Sales are folded oldest first so top-seller ties resolve the same way
    they did when the sales were recorded.
    """
    summary = rebuild_inventory_stats(default_summary(), products)
    for sale in sorted(sales, key=lambda s: (s.sold_at, s.id)):
        summary = apply_sale_recorded(summary, sale, 0, top_selling_limit)
    return summary


@dataclass(frozen=True)
class Drift:
    """One field where a stored summary disagrees with the records."""

    field: str
    stored: Any
    expected: Any


def find_drift(stored: AnalyticsSummary, expected: AnalyticsSummary) -> list[Drift]:
    """Compare a stored summary with a rebuilt one, field by field."""
    drift: list[Drift] = []
    for name in (
        "total_products",
        "total_stock",
        "total_revenue",
        "total_profit",
        "payment_mode_stats",
        "item_quantities",
    ):
        stored_value = getattr(stored.all_time, name)
        expected_value = getattr(expected.all_time, name)
        if stored_value != expected_value:
            drift.append(Drift(f"all_time.{name}", stored_value, expected_value))
    if stored.daily != expected.daily:
        drift.append(Drift("daily", stored.daily, expected.daily))
    if stored.monthly != expected.monthly:
        drift.append(Drift("monthly", stored.monthly, expected.monthly))
    return drift


# ---------------------------------------------------------------------------
# Document conversion
# ---------------------------------------------------------------------------


def _period_to_document(stats: Mapping[str, PeriodStats]) -> dict[str, dict[str, str]]:
    return {
        key: {"revenue": str(value.revenue), "profit": str(value.profit)}
        for key, value in stats.items()
    }


def _period_from_document(data: Any) -> dict[str, PeriodStats]:
    if not isinstance(data, Mapping):
        return {}
    periods: dict[str, PeriodStats] = {}
    for key, value in data.items():
        value = value if isinstance(value, Mapping) else {}
        periods[str(key)] = PeriodStats(
            revenue=to_decimal(value.get("revenue")),
            profit=to_decimal(value.get("profit")),
        )
    return periods


def summary_to_document(summary: AnalyticsSummary) -> dict[str, Any]:
    """JSON-safe document: amounts as decimal strings, modes by value."""
    all_time = summary.all_time
    return {
        "all_time": {
            "total_revenue": str(all_time.total_revenue),
            "total_profit": str(all_time.total_profit),
            "total_products": all_time.total_products,
            "total_stock": all_time.total_stock,
            "top_selling_items": [
                {"name": item.name, "quantity": item.quantity}
                for item in all_time.top_selling_items
            ],
            "payment_mode_stats": {
                mode.value: str(amount)
                for mode, amount in all_time.payment_mode_stats.items()
            },
            "item_quantities": dict(all_time.item_quantities),
        },
        "daily": _period_to_document(summary.daily),
        "monthly": _period_to_document(summary.monthly),
    }


def summary_from_document(
    data: Mapping[str, Any] | None,
    top_selling_limit: int = DEFAULT_TOP_SELLING_LIMIT,
) -> AnalyticsSummary:
    """
    Read a stored document onto a default summary.

    Never raises: missing or malformed fields keep their defaults, unknown
    payment modes are dropped, and a document without an item tally is
    seeded from its top-selling list.
    """
    data = data if isinstance(data, Mapping) else {}
    raw = data.get("all_time")
    raw = raw if isinstance(raw, Mapping) else {}

    payment_stats = _zero_payment_stats()
    raw_modes = raw.get("payment_mode_stats")
    if isinstance(raw_modes, Mapping):
        for mode, amount in raw_modes.items():
            if is_valid_payment_mode(mode):
                payment_stats[coerce_payment_mode(mode)] = to_decimal(amount)

    raw_top = raw.get("top_selling_items")
    top_items = [
        TopSellingItem(to_text(item.get("name")), to_int(item.get("quantity")))
        for item in (raw_top if isinstance(raw_top, list) else [])
        if isinstance(item, Mapping)
    ]

    raw_quantities = raw.get("item_quantities")
    if isinstance(raw_quantities, Mapping):
        quantities = {str(name): to_int(qty) for name, qty in raw_quantities.items()}
    else:
        quantities = {item.name: item.quantity for item in top_items}

    return AnalyticsSummary(
        all_time=AllTimeStats(
            total_revenue=to_decimal(raw.get("total_revenue")),
            total_profit=to_decimal(raw.get("total_profit")),
            total_products=to_int(raw.get("total_products")),
            total_stock=to_int(raw.get("total_stock")),
            top_selling_items=derive_top_selling(quantities, top_selling_limit),
            payment_mode_stats=payment_stats,
            item_quantities=quantities,
        ),
        daily=_period_from_document(data.get("daily")),
        monthly=_period_from_document(data.get("monthly")),
    )
