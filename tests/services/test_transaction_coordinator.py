"""
Tests for TransactionCoordinator.

Verifies:
- The Widget add / sell / oversell scenarios
- Sale atomicity when a failure hits between read phase and commit
- Summary invariants over arbitrary operation sequences
- Clear-history semantics
- Bulk import, update, delete and reconciliation
"""

import random
from dataclasses import replace
from decimal import Decimal

import pytest

from shoptrack_kernel.domain.analytics import AnalyticsSummary, default_summary
from shoptrack_kernel.domain.entities import (
    PaymentMode,
    ProductKind,
    SaleLine,
    SaleRequest,
)
from shoptrack_kernel.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    TenantNotFoundError,
    ValidationError,
)
from shoptrack_kernel.repository.sql import SqlTransaction
from shoptrack_kernel.selectors.inventory_selector import InventorySelector
from shoptrack_kernel.services.transaction_coordinator import ReconcileScope


def _sell(coordinator, tenant_id, *lines, mode=PaymentMode.CASH):
    return coordinator.record_sale(
        tenant_id,
        SaleRequest(lines=tuple(SaleLine(pid, qty) for pid, qty in lines), payment_mode=mode),
    )


def _sales(repository, tenant_id):
    return repository.list_sales_page(tenant_id, 100).items


def _assert_summary_matches_inventory(repository, tenant_id):
    products = InventorySelector(repository).all_products(tenant_id)
    all_time = repository.get_analytics_summary(tenant_id).all_time
    assert all_time.total_products == len(products)
    assert all_time.total_stock == sum(p.stock for p in products if p.is_item)


class TestWidgetScenario:
    def test_add_product_counts_in_summary(self, repository, tenant_id, widget):
        all_time = repository.get_analytics_summary(tenant_id).all_time
        assert all_time.total_products == 1
        assert all_time.total_stock == 10

    def test_sale_decrements_stock_and_updates_analytics(
        self, coordinator, repository, tenant_id, widget
    ):
        sale = _sell(coordinator, tenant_id, (widget.id, 3))

        assert repository.get_product(tenant_id, widget.id).stock == 7
        all_time = repository.get_analytics_summary(tenant_id).all_time
        assert all_time.total_revenue == Decimal("27")
        assert all_time.total_profit == Decimal("12")
        assert all_time.payment_mode_stats[PaymentMode.CASH] == Decimal("27")
        assert all_time.total_stock == 7
        assert sale.total_amount == Decimal("27")
        assert sale.items[0].product_name == "Widget"
        assert sale.items[0].price_per_item == Decimal("9")
        assert sale.items[0].purchase_price_per_item == Decimal("5")

    def test_oversell_rejected_without_side_effects(
        self, coordinator, repository, tenant_id, widget
    ):
        _sell(coordinator, tenant_id, (widget.id, 3))
        summary_before = repository.get_analytics_summary(tenant_id)

        with pytest.raises(InsufficientStockError) as exc_info:
            _sell(coordinator, tenant_id, (widget.id, 8))

        assert exc_info.value.product_name == "Widget"
        assert exc_info.value.available == 7
        assert repository.get_product(tenant_id, widget.id).stock == 7
        assert repository.get_analytics_summary(tenant_id) == summary_before
        assert len(_sales(repository, tenant_id)) == 1

    def test_sale_timestamp_comes_from_clock(
        self, coordinator, repository, tenant_id, widget, deterministic_clock
    ):
        sale = _sell(coordinator, tenant_id, (widget.id, 1))
        assert sale.sold_at == deterministic_clock.now()
        assert "2024-01-01" in repository.get_analytics_summary(tenant_id).daily


class TestSaleAtomicity:
    def test_failure_before_commit_leaves_nothing(
        self, coordinator, repository, tenant_id, widget, monkeypatch
    ):
        summary_before = repository.get_analytics_summary(tenant_id)

        def fail_on_summary_write(self, summary):
            raise RuntimeError("simulated crash before commit")

        monkeypatch.setattr(SqlTransaction, "_write_summary", fail_on_summary_write)

        with pytest.raises(RuntimeError):
            _sell(coordinator, tenant_id, (widget.id, 3))

        assert repository.get_product(tenant_id, widget.id).stock == 10
        assert _sales(repository, tenant_id) == ()
        assert repository.get_analytics_summary(tenant_id) == summary_before

    def test_missing_product_fails_whole_sale(
        self, coordinator, repository, tenant_id, widget
    ):
        with pytest.raises(ProductNotFoundError):
            _sell(coordinator, tenant_id, (widget.id, 1), ("ghost", 1))
        assert repository.get_product(tenant_id, widget.id).stock == 10
        assert _sales(repository, tenant_id) == ()

    def test_validation_happens_before_transaction(
        self, coordinator, repository, tenant_id, monkeypatch
    ):
        def no_transaction(*args, **kwargs):
            pytest.fail("run_atomic must not be called for invalid input")

        monkeypatch.setattr(repository, "run_atomic", no_transaction)
        with pytest.raises(ValidationError):
            coordinator.record_sale(tenant_id, SaleRequest(lines=()))


class TestSales:
    def test_service_sale_counts_revenue_not_stock(
        self, coordinator, repository, tenant_id, widget, make_product
    ):
        repair = coordinator.add_product(
            tenant_id,
            make_product(name="Repair", kind=ProductKind.SERVICE, selling_price="30"),
        )
        _sell(coordinator, tenant_id, (repair.id, 2), mode=PaymentMode.UPI)

        all_time = repository.get_analytics_summary(tenant_id).all_time
        assert all_time.total_revenue == Decimal("60")
        assert all_time.total_profit == Decimal("60")
        assert all_time.payment_mode_stats[PaymentMode.UPI] == Decimal("60")
        assert all_time.total_stock == 10

    def test_price_snapshot_survives_product_edit(
        self, coordinator, repository, tenant_id, widget
    ):
        sale = _sell(coordinator, tenant_id, (widget.id, 1))
        coordinator.update_product(tenant_id, replace(widget, selling_price=Decimal("15")))

        stored = _sales(repository, tenant_id)[0]
        assert stored.id == sale.id
        assert stored.items[0].price_per_item == Decimal("9")

    def test_sale_survives_product_deletion(
        self, coordinator, repository, tenant_id, widget
    ):
        _sell(coordinator, tenant_id, (widget.id, 2))
        coordinator.delete_product(tenant_id, widget.id)

        stored = _sales(repository, tenant_id)[0]
        assert stored.items[0].product_name == "Widget"
        assert stored.items[0].product_id == widget.id

    def test_multi_line_sale(self, coordinator, repository, tenant_id, widget, make_product):
        gadget = coordinator.add_product(
            tenant_id, make_product(name="Gadget", stock=5, purchase_price="11", selling_price="20")
        )
        sale = _sell(coordinator, tenant_id, (widget.id, 2), (gadget.id, 1))

        assert sale.total_amount == Decimal("38")
        assert repository.get_product(tenant_id, gadget.id).stock == 4
        all_time = repository.get_analytics_summary(tenant_id).all_time
        assert all_time.total_profit == Decimal("17")
        assert all_time.total_stock == 12
        assert [i.name for i in all_time.top_selling_items] == ["Widget", "Gadget"]

    def test_sale_logged_with_context(self, coordinator, tenant_id, widget, captured_logs):
        sale = _sell(coordinator, tenant_id, (widget.id, 1))
        records = [r for r in captured_logs() if r["message"] == "sale_recorded"]
        assert records[0]["sale_id"] == sale.id
        assert records[0]["tenant_id"] == tenant_id
        assert records[0]["payment_mode"] == "Cash"


class TestProducts:
    def test_uninitialized_tenant_rejected(self, coordinator, repository, make_product):
        with pytest.raises(TenantNotFoundError):
            coordinator.add_product("ghost", make_product())
        assert repository.list_products_page("ghost", 10).items == ()

    def test_out_of_range_stock_rejected_before_storage(
        self, coordinator, repository, tenant_id, make_product
    ):
        with pytest.raises(ValidationError) as exc_info:
            coordinator.add_product(tenant_id, make_product(stock=2**63))
        assert [e["field"] for e in exc_info.value.field_errors] == ["stock"]
        assert repository.list_products_page(tenant_id, 10).items == ()

    def test_update_with_overlong_name_rejected(self, coordinator, repository, tenant_id, widget):
        with pytest.raises(ValidationError):
            coordinator.update_product(tenant_id, replace(widget, name="x" * 401))
        assert repository.get_product(tenant_id, widget.id).name == widget.name

    def test_update_applies_stock_difference(self, coordinator, repository, tenant_id, widget):
        updated = coordinator.update_product(tenant_id, replace(widget, stock=15, name="Widget XL"))
        assert updated.name == "Widget XL"
        assert repository.get_product(tenant_id, widget.id).stock == 15
        assert repository.get_analytics_summary(tenant_id).all_time.total_stock == 15

    def test_converting_item_to_service_removes_its_stock(
        self, coordinator, repository, tenant_id, widget
    ):
        coordinator.update_product(tenant_id, replace(widget, kind=ProductKind.SERVICE))
        product = repository.get_product(tenant_id, widget.id)
        assert product.kind is ProductKind.SERVICE
        assert product.stock == 0
        assert repository.get_analytics_summary(tenant_id).all_time.total_stock == 0

    def test_update_missing_product(self, coordinator, tenant_id, widget):
        with pytest.raises(ProductNotFoundError):
            coordinator.update_product(tenant_id, replace(widget, id="ghost"))

    def test_delete_updates_counters(self, coordinator, repository, tenant_id, widget):
        coordinator.delete_product(tenant_id, widget.id)
        all_time = repository.get_analytics_summary(tenant_id).all_time
        assert all_time.total_products == 0
        assert all_time.total_stock == 0
        with pytest.raises(ProductNotFoundError):
            repository.get_product(tenant_id, widget.id)

    def test_delete_missing_product(self, coordinator, tenant_id):
        with pytest.raises(ProductNotFoundError):
            coordinator.delete_product(tenant_id, "ghost")


class TestImportProducts:
    def test_batch_counts_every_record(self, coordinator, repository, tenant_id, make_product):
        products = coordinator.import_products(
            tenant_id,
            [
                make_product(name="Ant", stock=3),
                make_product(name="Bee", stock=4),
                make_product(name="Consult", kind=ProductKind.SERVICE, stock=9),
            ],
        )
        assert len(products) == 3
        assert len({p.id for p in products}) == 3
        all_time = repository.get_analytics_summary(tenant_id).all_time
        assert all_time.total_products == 3
        assert all_time.total_stock == 7

    def test_one_bad_record_rejects_batch(self, coordinator, repository, tenant_id, make_product):
        with pytest.raises(ValidationError) as exc_info:
            coordinator.import_products(
                tenant_id, [make_product(name="Ant"), make_product(name="")]
            )
        assert exc_info.value.field_errors[0]["field"] == "products[1].name"
        assert repository.list_products_page(tenant_id, 10).items == ()

    def test_empty_batch_is_noop(self, coordinator, tenant_id):
        assert coordinator.import_products(tenant_id, []) == []


class TestClearSales:
    def test_clear_resets_sales_and_keeps_inventory(
        self, coordinator, repository, tenant_id, make_product
    ):
        a = coordinator.add_product(tenant_id, make_product(name="A", stock=20, selling_price="50"))
        b = coordinator.add_product(tenant_id, make_product(name="B", stock=20, selling_price="100"))
        coordinator.add_product(tenant_id, make_product(name="C", stock=10))
        _sell(coordinator, tenant_id, (a.id, 2), mode=PaymentMode.UPI)
        _sell(coordinator, tenant_id, (b.id, 4))

        before = repository.get_analytics_summary(tenant_id).all_time
        assert before.total_revenue == Decimal("500")
        assert before.total_products == 3
        assert before.total_stock == 44

        assert coordinator.clear_sales(tenant_id) == 2

        summary = repository.get_analytics_summary(tenant_id)
        all_time = summary.all_time
        assert all_time.total_revenue == Decimal("0")
        assert all_time.total_profit == Decimal("0")
        assert all_time.top_selling_items == ()
        assert all(v == 0 for v in all_time.payment_mode_stats.values())
        assert summary.daily == {}
        assert summary.monthly == {}
        assert all_time.total_products == 3
        assert all_time.total_stock == 44
        assert _sales(repository, tenant_id) == ()

    def test_clear_without_sales_is_noop(self, coordinator, repository, tenant_id, widget):
        before = repository.get_analytics_summary(tenant_id)
        assert coordinator.clear_sales(tenant_id) == 0
        assert repository.get_analytics_summary(tenant_id) == before

    def test_clear_only_touches_own_tenant(
        self, coordinator, repository, tenant_id, widget, make_product
    ):
        coordinator.initialize_tenant("tenant-b")
        other = coordinator.add_product("tenant-b", make_product())
        _sell(coordinator, tenant_id, (widget.id, 1))
        _sell(coordinator, "tenant-b", (other.id, 1))

        coordinator.clear_sales(tenant_id)

        assert len(_sales(repository, "tenant-b")) == 1
        assert repository.get_analytics_summary("tenant-b").all_time.total_revenue == Decimal("9")


class TestSummaryInvariants:
    def test_counters_match_inventory_after_every_operation(
        self, coordinator, repository, tenant_id, make_product
    ):
        rng = random.Random(7)
        live: list = []

        for step in range(60):
            action = rng.choice(["add", "add", "update", "delete", "sell", "sell", "clear"])
            if action == "add" or not live:
                kind = rng.choice([ProductKind.ITEM, ProductKind.ITEM, ProductKind.SERVICE])
                live.append(
                    coordinator.add_product(
                        tenant_id,
                        make_product(name=f"P{step}", stock=rng.randint(0, 20), kind=kind),
                    )
                )
            elif action == "update":
                index = rng.randrange(len(live))
                current = repository.get_product(tenant_id, live[index].id)
                live[index] = coordinator.update_product(
                    tenant_id, replace(current, stock=rng.randint(0, 30))
                )
            elif action == "delete":
                victim = live.pop(rng.randrange(len(live)))
                coordinator.delete_product(tenant_id, victim.id)
            elif action == "sell":
                target = rng.choice(live)
                try:
                    _sell(coordinator, tenant_id, (target.id, rng.randint(1, 5)))
                except InsufficientStockError:
                    pass
            else:
                coordinator.clear_sales(tenant_id)

            _assert_summary_matches_inventory(repository, tenant_id)

        for product in InventorySelector(repository).all_products(tenant_id):
            assert product.stock >= 0


class TestReconcile:
    def _corrupt(self, repository, tenant_id, **all_time_changes):
        def body(txn):
            summary = txn.read_summary()
            txn.write_summary(
                AnalyticsSummary(
                    all_time=replace(summary.all_time, **all_time_changes),
                    daily={},
                    monthly={},
                )
            )

        repository.run_atomic(tenant_id, body)

    def test_full_reconcile_repairs_drift(self, coordinator, repository, tenant_id, widget):
        _sell(coordinator, tenant_id, (widget.id, 3))
        expected = repository.get_analytics_summary(tenant_id)
        self._corrupt(repository, tenant_id, total_stock=999)

        report = coordinator.reconcile_summary(tenant_id)

        assert report.repaired
        assert {d.field for d in report.drift} == {"all_time.total_stock", "daily", "monthly"}
        assert repository.get_analytics_summary(tenant_id) == expected
        assert not coordinator.reconcile_summary(tenant_id).repaired

    def test_inventory_scope_keeps_sales_tiers(self, coordinator, repository, tenant_id, widget):
        _sell(coordinator, tenant_id, (widget.id, 3))
        self._corrupt(repository, tenant_id, total_products=5, total_stock=0)

        report = coordinator.reconcile_summary(tenant_id, ReconcileScope.INVENTORY)

        assert [d.field for d in report.drift] == [
            "all_time.total_products",
            "all_time.total_stock",
        ]
        summary = repository.get_analytics_summary(tenant_id)
        assert summary.all_time.total_products == 1
        assert summary.all_time.total_stock == 7
        assert summary.daily == {}

    def test_reconcile_clean_tenant(self, coordinator, tenant_id):
        report = coordinator.reconcile_summary(tenant_id)
        assert report.drift == ()
        assert report.summary == default_summary()

    def test_reconcile_uninitialized_tenant(self, coordinator):
        with pytest.raises(TenantNotFoundError):
            coordinator.reconcile_summary("ghost")
