"""
Property-based tests for the analytics aggregator.

Properties checked over generated sales:
- Incrementally applied sales agree with a full rebuild (no drift)
- Sale order does not change any additive field of the summary
- Top-selling lists are bounded, descending and never skip a bigger seller
- Document conversion preserves the summary
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from shoptrack_kernel.domain.analytics import (
    SaleRecorded,
    apply_event,
    default_summary,
    derive_top_selling,
    find_drift,
    rebuild_summary,
    summary_from_document,
    summary_to_document,
)
from shoptrack_kernel.domain.entities import PaymentMode, Sale, SaleItem

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
NAMES = ["Widget", "Gadget", "Bolt", "Cable", "Repair", "Lamp", "Fuse"]

money = st.decimals(min_value=0, max_value=1000, places=2, allow_nan=False, allow_infinity=False)


@st.composite
def sale_items(draw):
    name = draw(st.sampled_from(NAMES))
    return SaleItem(
        product_id=f"p-{name}",
        product_name=name,
        quantity=draw(st.integers(min_value=1, max_value=50)),
        price_per_item=draw(money),
        purchase_price_per_item=draw(money),
    )


@st.composite
def sales(draw, index=0):
    items = tuple(draw(st.lists(sale_items(), min_size=1, max_size=4)))
    return Sale(
        id=f"s-{index}",
        sold_at=START + timedelta(hours=draw(st.integers(min_value=0, max_value=24 * 120))),
        items=items,
        total_amount=sum((i.line_total for i in items), Decimal("0")),
        payment_mode=draw(st.sampled_from(list(PaymentMode))),
    )


@st.composite
def sale_histories(draw):
    count = draw(st.integers(min_value=0, max_value=12))
    history = [draw(sales(index)) for index in range(count)]
    return sorted(history, key=lambda s: (s.sold_at, s.id))


def _fold(history):
    summary = default_summary()
    for sale in history:
        summary = apply_event(summary, SaleRecorded(sale))
    return summary


@settings(max_examples=75, deadline=None)
@given(sale_histories())
def test_incremental_matches_rebuild(history):
    assert find_drift(_fold(history), rebuild_summary([], history)) == []


@settings(max_examples=75, deadline=None)
@given(sale_histories(), st.randoms(use_true_random=False))
def test_sale_order_does_not_change_totals(history, rng):
    shuffled = list(history)
    rng.shuffle(shuffled)
    forward = _fold(history)
    other = _fold(shuffled)

    assert forward.all_time.total_revenue == other.all_time.total_revenue
    assert forward.all_time.total_profit == other.all_time.total_profit
    assert forward.all_time.payment_mode_stats == other.all_time.payment_mode_stats
    assert forward.all_time.item_quantities == other.all_time.item_quantities
    assert forward.daily == other.daily
    assert forward.monthly == other.monthly


@given(
    st.dictionaries(st.sampled_from(NAMES), st.integers(min_value=0, max_value=100)),
    st.integers(min_value=1, max_value=8),
)
def test_top_selling_is_bounded_and_ranked(quantities, limit):
    top = derive_top_selling(quantities, limit)
    chosen = {item.name for item in top}

    assert len(top) <= limit
    assert all(item.quantity > 0 for item in top)
    assert [i.quantity for i in top] == sorted((i.quantity for i in top), reverse=True)
    if top:
        smallest = top[-1].quantity
        assert all(
            qty <= smallest for name, qty in quantities.items() if name not in chosen
        )


@settings(max_examples=50, deadline=None)
@given(sale_histories())
def test_document_conversion_preserves_summary(history):
    summary = _fold(history)
    assert summary_from_document(summary_to_document(summary)) == summary
