"""
Entities -- Canonical product and sale shapes.

Responsibility:
    Defines the immutable data structures that flow between the repository,
    the stock ledger, the analytics aggregator and the coordinator: Product,
    NewProduct, SaleItem, Sale, plus the caller-facing SaleLine/SaleRequest.
    Provides the validation predicates and the lenient document converters.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies; the repository converts records to these
    DTOs through the ``*_from_document`` functions.

Invariants enforced:
    - Services carry stock, purchase price and low-stock threshold of 0
      (``normalize_product``).
    - Sale items reference products by id only and snapshot the name and
      both prices at sale time.
    - Money is always Decimal.

Failure modes:
    - ``validate_new_product`` / ``validate_sale_request`` raise
      ValidationError with field-level details.
    - The ``*_from_document`` converters never raise: malformed storage data
      is coerced to safe defaults (numbers 0, strings "", unknown kind
      ``item``, unknown payment mode ``Cash``).
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from shoptrack_kernel.domain.clock import as_utc
from shoptrack_kernel.exceptions import ValidationError

ZERO = Decimal("0")

# Sale timestamps that cannot be read fall back to the epoch.
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Largest stock or threshold a product may hold (32-bit INTEGER column).
MAX_COUNT = 2**31 - 1

# Longest product name or category (String(400) column).
MAX_TEXT_LENGTH = 400

# Stored counts with a larger decimal exponent read as 0.
_MAX_COUNT_EXPONENT = 18

# Amounts must fit Numeric(38, 9): at most 29 integer digits.
_MAX_AMOUNT_EXPONENT = 28


class ProductKind(str, Enum):
    """Only items track stock; services are sold without it."""

    ITEM = "item"
    SERVICE = "service"


class PaymentMode(str, Enum):
    """How a sale was paid for."""

    CASH = "Cash"
    UPI = "UPI"
    BANK_TRANSFER = "Bank Transfer"
    OTHER = "Other"


@dataclass(frozen=True)
class NewProduct:
    """Product fields supplied by the caller for add and bulk import."""

    name: str
    kind: ProductKind = ProductKind.ITEM
    stock: int = 0
    purchase_price: Decimal = ZERO
    selling_price: Decimal = ZERO
    category: str = ""
    low_stock_threshold: int = 0

    def with_id(self, product_id: str) -> Product:
        return Product(
            id=product_id,
            name=self.name,
            kind=self.kind,
            stock=self.stock,
            purchase_price=self.purchase_price,
            selling_price=self.selling_price,
            category=self.category,
            low_stock_threshold=self.low_stock_threshold,
        )


@dataclass(frozen=True)
class Product:
    """A catalog entry owned by one tenant."""

    id: str
    name: str
    kind: ProductKind
    stock: int
    purchase_price: Decimal
    selling_price: Decimal
    category: str
    low_stock_threshold: int

    @property
    def is_item(self) -> bool:
        return self.kind == ProductKind.ITEM

    @property
    def tracked_stock(self) -> int:
        """Stock that counts toward inventory totals (0 for services)."""
        return self.stock if self.is_item else 0

    @property
    def is_low_stock(self) -> bool:
        return self.is_item and self.stock <= self.low_stock_threshold

    def with_stock(self, stock: int) -> Product:
        return replace(self, stock=stock)


@dataclass(frozen=True)
class SaleItem:
    """
    One line of a recorded sale.

    product_id is a weak reference: the product may since have been edited or
    deleted.  product_name and both prices are the values at sale time.
    """

    product_id: str
    product_name: str
    quantity: int
    price_per_item: Decimal
    purchase_price_per_item: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.price_per_item * self.quantity

    @property
    def line_profit(self) -> Decimal:
        return (self.price_per_item - self.purchase_price_per_item) * self.quantity


@dataclass(frozen=True)
class Sale:
    """A recorded sale.  Immutable after creation."""

    id: str
    sold_at: datetime
    items: tuple[SaleItem, ...]
    total_amount: Decimal
    payment_mode: PaymentMode

    @property
    def profit(self) -> Decimal:
        return sum((item.line_profit for item in self.items), ZERO)


@dataclass(frozen=True)
class SaleLine:
    """A caller's request to sell ``quantity`` of one product."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class SaleRequest:
    """
    A caller's request to record a sale.

    Prices and names are not part of the request: the coordinator snapshots
    them from the products it reads inside the sale's transaction.
    """

    lines: tuple[SaleLine, ...]
    payment_mode: PaymentMode | str = PaymentMode.CASH


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_amount(value: Any) -> bool:
    return (
        isinstance(value, Decimal)
        and value.is_finite()
        and value >= 0
        and (value == 0 or value.adjusted() <= _MAX_AMOUNT_EXPONENT)
    )


def is_valid_payment_mode(value: Any) -> bool:
    """True for a PaymentMode member or one of its string values."""
    if isinstance(value, PaymentMode):
        return True
    return isinstance(value, str) and value in {m.value for m in PaymentMode}


def is_valid_sale_item(item: SaleItem | SaleLine) -> bool:
    """Quantity is an integer >= 1 and the product id is non-empty."""
    return (
        isinstance(item.product_id, str)
        and item.product_id.strip() != ""
        and _is_int(item.quantity)
        and item.quantity >= 1
    )


def _product_field_errors(product: Product | NewProduct) -> list[dict]:
    errors: list[dict] = []
    if not isinstance(product.name, str) or not product.name.strip():
        errors.append({"field": "name", "message": "must not be empty"})
    elif len(product.name) > MAX_TEXT_LENGTH:
        errors.append(
            {"field": "name", "message": f"must be at most {MAX_TEXT_LENGTH} characters"}
        )
    if not isinstance(product.kind, ProductKind):
        errors.append({"field": "kind", "message": "must be 'item' or 'service'"})
    for name in ("stock", "low_stock_threshold"):
        value = getattr(product, name)
        if not _is_int(value) or value < 0:
            errors.append({"field": name, "message": "must be an integer >= 0"})
        elif value > MAX_COUNT:
            errors.append({"field": name, "message": f"must be at most {MAX_COUNT}"})
    for name in ("purchase_price", "selling_price"):
        if not _is_amount(getattr(product, name)):
            errors.append(
                {"field": name, "message": "must be a decimal >= 0 with at most 29 integer digits"}
            )
    if product.kind == ProductKind.SERVICE:
        for name in ("stock", "purchase_price", "low_stock_threshold"):
            if getattr(product, name) != 0:
                errors.append({"field": name, "message": "must be 0 for a service"})
    if not isinstance(product.category, str):
        errors.append({"field": "category", "message": "must be text"})
    elif len(product.category) > MAX_TEXT_LENGTH:
        errors.append(
            {"field": "category", "message": f"must be at most {MAX_TEXT_LENGTH} characters"}
        )
    return errors


def is_valid_product(product: Product | NewProduct) -> bool:
    return not _product_field_errors(product)


# ---------------------------------------------------------------------------
# Normalization and validation (run before any transaction opens)
# ---------------------------------------------------------------------------


def _as_amount(value: Any) -> Any:
    """Accept plain ints, floats and numeric strings as Decimal amounts."""
    if isinstance(value, bool) or isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return value
    return value


def normalize_product(product: NewProduct | Product) -> NewProduct | Product:
    """Trim text and zero the stock-related fields of services."""
    kind = product.kind
    if isinstance(kind, str) and not isinstance(kind, ProductKind):
        kind = ProductKind(kind) if kind in {k.value for k in ProductKind} else kind
    normalized = replace(
        product,
        name=product.name.strip() if isinstance(product.name, str) else product.name,
        category=(
            product.category.strip()
            if isinstance(product.category, str)
            else product.category
        ),
        kind=kind,
        purchase_price=_as_amount(product.purchase_price),
        selling_price=_as_amount(product.selling_price),
    )
    if normalized.kind == ProductKind.SERVICE:
        normalized = replace(
            normalized, stock=0, purchase_price=ZERO, low_stock_threshold=0
        )
    return normalized


def validate_new_product(product: NewProduct | Product) -> NewProduct | Product:
    """
    Normalize and validate a product before it is written.

    Returns:
        The normalized product.

    Raises:
        ValidationError: If any field is missing or out of range.
    """
    normalized = normalize_product(product)
    errors = _product_field_errors(normalized)
    if errors:
        raise ValidationError("product", errors)
    return normalized


def validate_sale_request(request: SaleRequest) -> SaleRequest:
    """
    Validate a sale request before its transaction opens.

    Returns:
        The request with its payment mode coerced to PaymentMode.

    Raises:
        ValidationError: Empty sale, bad line, or unknown payment mode.
    """
    errors: list[dict] = []
    if not request.lines:
        errors.append({"field": "lines", "message": "a sale needs at least one item"})
    for index, line in enumerate(request.lines):
        if not is_valid_sale_item(line):
            errors.append(
                {
                    "field": f"lines[{index}]",
                    "message": "quantity must be >= 1 and product_id non-empty",
                }
            )
    if not is_valid_payment_mode(request.payment_mode):
        errors.append(
            {"field": "payment_mode", "message": f"unknown mode {request.payment_mode!r}"}
        )
    if errors:
        raise ValidationError("sale", errors)
    return replace(request, payment_mode=PaymentMode(request.payment_mode))


# ---------------------------------------------------------------------------
# Lenient coercion from storage documents
# ---------------------------------------------------------------------------


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored number to Decimal; anything unreadable becomes 0."""
    if isinstance(value, bool) or value is None:
        return ZERO
    if isinstance(value, Decimal):
        return _bounded(value)
    if isinstance(value, int):
        return _bounded(Decimal(value))
    if isinstance(value, float):
        return _bounded(Decimal(str(value))) if math.isfinite(value) else ZERO
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return ZERO
        return _bounded(parsed)
    return ZERO


def _bounded(value: Decimal) -> Decimal:
    if not value.is_finite() or (value != 0 and value.adjusted() > _MAX_AMOUNT_EXPONENT):
        return ZERO
    return value


def to_int(value: Any) -> int:
    """Coerce a stored count to int; anything unreadable becomes 0."""
    if _is_int(value):
        return value
    parsed = to_decimal(value)
    if parsed.adjusted() > _MAX_COUNT_EXPONENT:
        return 0
    return int(parsed)


def to_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def coerce_product_kind(value: Any) -> ProductKind:
    return ProductKind.SERVICE if value == ProductKind.SERVICE.value else ProductKind.ITEM


def coerce_payment_mode(value: Any, fallback: PaymentMode = PaymentMode.CASH) -> PaymentMode:
    return PaymentMode(value) if is_valid_payment_mode(value) else fallback


def coerce_timestamp(value: Any) -> datetime:
    """Read a stored timestamp as aware UTC; unreadable values become the epoch."""
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        try:
            return as_utc(datetime.fromisoformat(value))
        except ValueError:
            return EPOCH
    return EPOCH


def product_from_document(data: Mapping[str, Any] | None, product_id: str = "") -> Product:
    data = data or {}
    return Product(
        id=product_id or to_text(data.get("id")),
        name=to_text(data.get("name")),
        kind=coerce_product_kind(data.get("kind")),
        stock=to_int(data.get("stock")),
        purchase_price=to_decimal(data.get("purchase_price")),
        selling_price=to_decimal(data.get("selling_price")),
        category=to_text(data.get("category")),
        low_stock_threshold=to_int(data.get("low_stock_threshold")),
    )


def sale_item_from_document(data: Mapping[str, Any] | None) -> SaleItem:
    data = data or {}
    return SaleItem(
        product_id=to_text(data.get("product_id")),
        product_name=to_text(data.get("product_name")),
        quantity=to_int(data.get("quantity")),
        price_per_item=to_decimal(data.get("price_per_item")),
        purchase_price_per_item=to_decimal(data.get("purchase_price_per_item")),
    )


def sale_item_to_document(item: SaleItem) -> dict[str, Any]:
    return {
        "product_id": item.product_id,
        "product_name": item.product_name,
        "quantity": item.quantity,
        "price_per_item": str(item.price_per_item),
        "purchase_price_per_item": str(item.purchase_price_per_item),
    }


def sale_from_document(data: Mapping[str, Any] | None, sale_id: str = "") -> Sale:
    data = data or {}
    raw_items = data.get("items")
    items = tuple(
        sale_item_from_document(item if isinstance(item, Mapping) else None)
        for item in (raw_items if isinstance(raw_items, (list, tuple)) else [])
    )
    return Sale(
        id=sale_id or to_text(data.get("id")),
        sold_at=coerce_timestamp(data.get("sold_at")),
        items=items,
        total_amount=to_decimal(data.get("total_amount")),
        payment_mode=coerce_payment_mode(data.get("payment_mode")),
    )
