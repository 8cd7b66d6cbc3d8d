"""Tests for the structured logging system (shoptrack_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from shoptrack_kernel.domain.entities import PaymentMode
from shoptrack_kernel.exceptions import InsufficientStockError
from shoptrack_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Start each test unconfigured; restore the suite's DEBUG setup after."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def stream():
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(StructuredFormatter())
    configure_logging(handler=handler, level=logging.DEBUG)
    return buffer


def _records(buffer: StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line]


class TestStructuredFormatter:
    def test_envelope(self, stream):
        get_logger("test").info("hello")

        record = _records(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "shoptrack_kernel.test"
        assert datetime.fromisoformat(record["ts"]).tzinfo is not None

    def test_extra_fields_and_domain_values(self, stream):
        get_logger("test").info(
            "sale_recorded",
            extra={
                "total_amount": Decimal("27.50"),
                "payment_mode": PaymentMode.BANK_TRANSFER,
                "sold_at": datetime(2024, 1, 1, 12, tzinfo=timezone.utc),
                "item_count": 2,
            },
        )

        record = _records(stream)[0]
        assert record["total_amount"] == "27.50"
        assert record["payment_mode"] == "Bank Transfer"
        assert record["sold_at"] == "2024-01-01T12:00:00+00:00"
        assert record["item_count"] == 2

    def test_context_fields_merged(self, stream):
        with LogContext.bind(tenant_id="tenant-a", operation="record_sale"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _records(stream)
        assert inside["tenant_id"] == "tenant-a"
        assert inside["operation"] == "record_sale"
        assert "tenant_id" not in outside

    def test_kernel_error_fields_extracted(self, stream):
        try:
            raise InsufficientStockError("p-1", "Widget", 8, 7)
        except InsufficientStockError:
            get_logger("test").error("sale_failed", exc_info=True)

        record = _records(stream)[0]
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_product_name"] == "Widget"
        assert record["exc_requested"] == 8
        assert record["exc_available"] == 7
        assert "traceback" in record

    def test_plain_exception(self, stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _records(stream)[0]
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record


class TestLogContext:
    def test_set_is_additive(self):
        LogContext.set(correlation_id="c-1")
        LogContext.set(tenant_id="tenant-a", sale_id="s-1")
        assert LogContext.get_all() == {
            "correlation_id": "c-1",
            "tenant_id": "tenant-a",
            "sale_id": "s-1",
        }

    def test_clear(self):
        LogContext.set(product_id="p-1")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_values(self):
        LogContext.set(operation="outer")
        with LogContext.bind(operation="inner", product_id="p-1"):
            assert LogContext.get_all() == {"operation": "inner", "product_id": "p-1"}
        assert LogContext.get_all() == {"operation": "outer"}


class TestConfigureLogging:
    def test_idempotent(self):
        first = logging.StreamHandler(StringIO())
        second = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=second)

        handlers = logging.getLogger("shoptrack_kernel").handlers
        assert second not in handlers
        assert [h for h in handlers if h in (first, second)] == [first]

    def test_level_filters(self):
        buffer = StringIO()
        handler = logging.StreamHandler(buffer)
        configure_logging(handler=handler, level=logging.INFO)
        logger = get_logger("services.transaction_coordinator")
        logger.debug("hidden")
        logger.warning("shown")

        assert [r["message"] for r in _records(buffer)] == ["shown"]
        assert logger.name == "shoptrack_kernel.services.transaction_coordinator"
