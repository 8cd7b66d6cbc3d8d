"""
Stock ledger -- Verify and compute post-sale stock levels.

Responsibility:
    Given the products read inside the active transaction and the lines of a
    candidate sale, decide whether the sale can be fulfilled and compute the
    new stock of every item it touches.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Stock of an item never goes below zero.  One short line fails the whole
      sale; no partial plan is ever returned.
    - A sale never references a product that does not exist.
    - Services are never stock-tracked.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from shoptrack_kernel.domain.entities import Product, SaleItem, SaleLine
from shoptrack_kernel.exceptions import InsufficientStockError, ProductNotFoundError


@dataclass(frozen=True)
class StockPlan:
    """
    Result of a successful stock check.

    new_stock maps product id to the stock level to write; stock_change is the
    (non-positive) sum of all deltas, fed to the analytics aggregator.
    """

    new_stock: dict[str, int] = field(default_factory=dict)
    stock_change: int = 0


def plan_stock_decrements(
    products: Mapping[str, Product],
    items: Iterable[SaleLine | SaleItem],
) -> StockPlan:
    """
    Plan the stock decrements for one sale.

    Quantities for the same product across several lines are combined before
    availability is checked.

    Raises:
        ProductNotFoundError: A line references a product not in ``products``.
        InsufficientStockError: An item's combined quantity exceeds its stock.
    """
    requested: dict[str, int] = {}
    for item in items:
        if item.product_id not in products:
            raise ProductNotFoundError(item.product_id)
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    new_stock: dict[str, int] = {}
    stock_change = 0
    for product_id, quantity in requested.items():
        product = products[product_id]
        if not product.is_item:
            continue
        if product.stock - quantity < 0:
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                requested=quantity,
                available=product.stock,
            )
        new_stock[product_id] = product.stock - quantity
        stock_change -= quantity

    return StockPlan(new_stock=new_stock, stock_change=stock_change)
