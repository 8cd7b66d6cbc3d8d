"""
TransactionCoordinator -- the only writer of products, sales and summaries.

Responsibility:
    Runs every mutation of a tenant's inventory or sales history as one
    atomic repository operation that also rewrites the tenant's analytics
    summary.  Each operation follows the same protocol:

        Begin     open ``Repository.run_atomic``
        Read      every record the operation will touch, fresh from storage
        Validate  stock ledger (sales) and existence checks; abort on failure
        Compute   next summary via the analytics aggregator, new stock levels
        Write     product / sale mutations plus the summary
        Commit    all or nothing, done by the repository

Architecture position:
    Kernel > Services -- imperative shell.
    Depends on the Repository contract, the pure domain layer and a Clock.
    Callers (UI handlers, import jobs) wrap calls in a RetryPolicy if they
    want conflicts retried.

Invariants enforced:
    - SALE_ATOMICITY: a sale, its stock decrements and its summary update
      commit together or not at all.
    - NON_NEGATIVE_STOCK: the stock ledger rejects any sale that would drive
      an item below zero, before any write is attempted.
    - SUMMARY_RECONCILES: every path that changes products or sales also
      writes the summary produced by the aggregator.
    - READ_BEFORE_WRITE: all reads precede all writes; the Transaction
      handle rejects anything else.

Failure modes:
    - ValidationError: malformed input; raised before any transaction opens.
    - TenantNotFoundError: the tenant's summary was never initialized.
    - ProductNotFoundError / InsufficientStockError: raised in the validate
      step; nothing is written.
    - TransactionConflictError / StorageUnavailableError: from the
      repository; nothing is committed and the call is safe to repeat.

Audit relevance:
    Every committed mutation is logged with tenant_id and the affected
    product or sale id.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from shoptrack_kernel.domain.analytics import (
    DEFAULT_TOP_SELLING_LIMIT,
    AnalyticsEvent,
    AnalyticsSummary,
    Drift,
    ProductAdded,
    ProductDeleted,
    ProductsImported,
    ProductUpdated,
    SaleRecorded,
    SalesCleared,
    apply_event,
    find_drift,
    rebuild_inventory_stats,
    rebuild_summary,
)
from shoptrack_kernel.domain.clock import Clock
from shoptrack_kernel.domain.entities import (
    ZERO,
    NewProduct,
    Product,
    Sale,
    SaleItem,
    SaleRequest,
    validate_new_product,
    validate_sale_request,
)
from shoptrack_kernel.domain.stock_ledger import plan_stock_decrements
from shoptrack_kernel.exceptions import (
    ProductNotFoundError,
    TenantNotFoundError,
    ValidationError,
)
from shoptrack_kernel.logging_config import LogContext, get_logger
from shoptrack_kernel.repository.base import Repository, Transaction

logger = get_logger("services.transaction_coordinator")

T = TypeVar("T")


class ReconcileScope(str, Enum):
    """How much of the summary a reconciliation recomputes."""

    FULL = "full"
    INVENTORY = "inventory"


@dataclass(frozen=True)
class ReconcileReport:
    """Outcome of one reconciliation; drift is empty when nothing was repaired."""

    tenant_id: str
    scope: ReconcileScope
    drift: tuple[Drift, ...]
    summary: AnalyticsSummary

    @property
    def repaired(self) -> bool:
        return bool(self.drift)


class TransactionCoordinator:
    """
    Mutations of one tenant's catalog and sales, each in a single atomic scope.

    Contract:
        Stateless between calls.  Every public mutation is one ``run_atomic``
        attempt; a failed call leaves storage exactly as it was.

    Guarantees:
        - Sale prices and product names are snapshotted from products read
          inside the sale's own transaction, never from caller-supplied data.
        - Sale timestamps come from the injected Clock.

    Non-goals:
        - Does NOT retry.  See ``RetryPolicy``.
        - Does NOT read for display.  See ``shoptrack_kernel.selectors``.
    """

    def __init__(
        self,
        repository: Repository,
        clock: Clock,
        top_selling_limit: int = DEFAULT_TOP_SELLING_LIMIT,
    ):
        self._repository = repository
        self._clock = clock
        self._top_selling_limit = top_selling_limit

    @property
    def repository(self) -> Repository:
        return self._repository

    # -- Tenant lifecycle ---------------------------------------------------

    def initialize_tenant(self, tenant_id: str) -> bool:
        """
        Create the tenant's default summary (signup).  Idempotent.

        Returns:
            True if the summary was created, False if it already existed.
        """
        with LogContext.bind(tenant_id=tenant_id, operation="initialize_tenant"):
            return self._repository.initialize_tenant(tenant_id)

    # -- Products -----------------------------------------------------------

    def add_product(self, tenant_id: str, new_product: NewProduct) -> Product:
        """
        Add one product and count it in the summary.

        Raises:
            ValidationError: Missing name, negative numbers, bad kind.
            TenantNotFoundError: Tenant was never initialized.
        """
        candidate = validate_new_product(new_product)

        def body(txn: Transaction) -> Product:
            summary = self._read_summary(txn)
            product = txn.insert_product(candidate)
            txn.write_summary(self._next(summary, ProductAdded(product)))
            return product

        product = self._run(tenant_id, "add_product", body)
        logger.info(
            "product_added",
            extra={
                "tenant_id": tenant_id,
                "product_id": product.id,
                "kind": product.kind,
                "stock": product.stock,
            },
        )
        return product

    def import_products(
        self, tenant_id: str, new_products: Iterable[NewProduct]
    ) -> list[Product]:
        """
        Bulk-insert already-parsed products as one transaction.

        Every record is validated before the transaction opens; one bad
        record rejects the whole batch.  An empty batch is a no-op.
        """
        candidates: list[NewProduct] = []
        errors: list[dict] = []
        for index, new_product in enumerate(new_products):
            try:
                candidates.append(validate_new_product(new_product))
            except ValidationError as exc:
                errors.extend(
                    {"field": f"products[{index}].{e['field']}", "message": e["message"]}
                    for e in exc.field_errors
                )
        if errors:
            raise ValidationError("import", errors)
        if not candidates:
            return []

        def body(txn: Transaction) -> list[Product]:
            summary = self._read_summary(txn)
            products = [txn.insert_product(candidate) for candidate in candidates]
            txn.write_summary(self._next(summary, ProductsImported(tuple(products))))
            return products

        products = self._run(tenant_id, "import_products", body)
        logger.info(
            "products_imported",
            extra={"tenant_id": tenant_id, "count": len(products)},
        )
        return products

    def update_product(self, tenant_id: str, product: Product) -> Product:
        """
        Replace every field of an existing product.

        Raises:
            ValidationError: The new field values are invalid.
            ProductNotFoundError: No such product for this tenant.
        """
        candidate = validate_new_product(product)

        def body(txn: Transaction) -> Product:
            summary = self._read_summary(txn)
            before = txn.get_product(candidate.id)
            if before is None:
                raise ProductNotFoundError(candidate.id, candidate.name)
            txn.update_product(candidate)
            txn.write_summary(self._next(summary, ProductUpdated(before, candidate)))
            return candidate

        with LogContext.bind(product_id=candidate.id):
            updated = self._run(tenant_id, "update_product", body)
            logger.info(
                "product_updated",
                extra={"tenant_id": tenant_id, "product_id": updated.id},
            )
        return updated

    def delete_product(self, tenant_id: str, product_id: str) -> None:
        """
        Delete a product.  Historical sales keep their name and price snapshots.

        Raises:
            ProductNotFoundError: No such product for this tenant.
        """

        def body(txn: Transaction) -> None:
            summary = self._read_summary(txn)
            before = txn.get_product(product_id)
            if before is None:
                raise ProductNotFoundError(product_id)
            txn.delete_product(product_id)
            txn.write_summary(self._next(summary, ProductDeleted(before)))

        with LogContext.bind(product_id=product_id):
            self._run(tenant_id, "delete_product", body)
            logger.info(
                "product_deleted",
                extra={"tenant_id": tenant_id, "product_id": product_id},
            )

    # -- Sales --------------------------------------------------------------

    def record_sale(self, tenant_id: str, request: SaleRequest) -> Sale:
        """
        Record a sale, decrement stock and update the summary atomically.

        Raises:
            ValidationError: Empty sale, bad quantity, unknown payment mode.
            ProductNotFoundError: A line references a missing product.
            InsufficientStockError: An item does not have enough stock.
        """
        request = validate_sale_request(request)
        product_ids = [line.product_id for line in request.lines]

        def body(txn: Transaction) -> Sale:
            summary = self._read_summary(txn)
            products = txn.get_products(product_ids)

            plan = plan_stock_decrements(products, request.lines)
            items = tuple(
                SaleItem(
                    product_id=line.product_id,
                    product_name=products[line.product_id].name,
                    quantity=line.quantity,
                    price_per_item=products[line.product_id].selling_price,
                    purchase_price_per_item=products[line.product_id].purchase_price,
                )
                for line in request.lines
            )
            draft = Sale(
                id="",
                sold_at=self._clock.now(),
                items=items,
                total_amount=sum((item.line_total for item in items), ZERO),
                payment_mode=request.payment_mode,
            )

            for product_id, stock in plan.new_stock.items():
                txn.set_stock(product_id, stock)
            sale = txn.insert_sale(draft)
            txn.write_summary(
                self._next(summary, SaleRecorded(sale, plan.stock_change))
            )
            return sale

        sale = self._run(tenant_id, "record_sale", body)
        with LogContext.bind(sale_id=sale.id):
            logger.info(
                "sale_recorded",
                extra={
                    "tenant_id": tenant_id,
                    "sale_id": sale.id,
                    "total_amount": sale.total_amount,
                    "payment_mode": sale.payment_mode,
                    "item_count": len(sale.items),
                },
            )
        return sale

    def clear_sales(self, tenant_id: str) -> int:
        """
        Delete the whole sales history and reset the sales-derived analytics.

        total_products and total_stock are kept.  A tenant without sales is
        left untouched.

        Returns:
            Number of sales deleted.
        """

        def body(txn: Transaction) -> int:
            summary = self._read_summary(txn)
            sales = txn.list_sales()
            if not sales:
                return 0
            deleted = txn.delete_all_sales()
            txn.write_summary(self._next(summary, SalesCleared()))
            return deleted

        deleted = self._run(tenant_id, "clear_sales", body)
        logger.info(
            "sales_cleared",
            extra={"tenant_id": tenant_id, "deleted": deleted},
        )
        return deleted

    # -- Reconciliation -----------------------------------------------------

    def reconcile_summary(
        self,
        tenant_id: str,
        scope: ReconcileScope = ReconcileScope.FULL,
    ) -> ReconcileReport:
        """
        Recompute the summary from a full scan and repair any drift.

        FULL rebuilds every tier from products and sales.  INVENTORY only
        resyncs total_products and total_stock and keeps the sales tiers.
        """
        scope = ReconcileScope(scope)

        def body(txn: Transaction) -> ReconcileReport:
            stored = self._read_summary(txn)
            products = txn.list_products()
            if scope is ReconcileScope.FULL:
                rebuilt = rebuild_summary(products, txn.list_sales(), self._top_selling_limit)
            else:
                rebuilt = rebuild_inventory_stats(stored, products)
            drift = tuple(find_drift(stored, rebuilt))
            if drift:
                txn.write_summary(rebuilt)
            return ReconcileReport(
                tenant_id=tenant_id,
                scope=scope,
                drift=drift,
                summary=rebuilt if drift else stored,
            )

        report = self._run(tenant_id, "reconcile_summary", body)
        if report.repaired:
            logger.warning(
                "summary_drift_repaired",
                extra={
                    "tenant_id": tenant_id,
                    "scope": scope,
                    "fields": [d.field for d in report.drift],
                },
            )
        else:
            logger.info(
                "summary_reconciled",
                extra={"tenant_id": tenant_id, "scope": scope},
            )
        return report

    # -- Internals ----------------------------------------------------------

    def _run(
        self, tenant_id: str, operation: str, body: Callable[[Transaction], T]
    ) -> T:
        with LogContext.bind(tenant_id=tenant_id, operation=operation):
            return self._repository.run_atomic(tenant_id, body, operation)

    @staticmethod
    def _read_summary(txn: Transaction) -> AnalyticsSummary:
        summary = txn.read_summary()
        if summary is None:
            raise TenantNotFoundError(txn.tenant_id)
        return summary

    def _next(self, summary: AnalyticsSummary, event: AnalyticsEvent) -> AnalyticsSummary:
        return apply_event(summary, event, self._top_selling_limit)
