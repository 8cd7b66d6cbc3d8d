"""
Repository -- Storage contract consumed by the transaction coordinator.

Responsibility:
    Declares the tenant-scoped read API (single product, keyset-paginated
    product and sale listings, analytics summary) and the atomic scope
    ``run_atomic`` that every mutation goes through.  The ``Transaction``
    handle given to an atomic operation enforces read-phase-then-write-phase
    ordering for every backend.

Architecture position:
    Kernel > Repository.  May import from domain/ and exceptions only.
    Concrete backends (``repository/sql.py``) subclass Repository and
    Transaction and implement the underscore hooks.

Invariants enforced:
    - Read/write phase separation: once a transaction has issued its first
      write, any further read raises TransactionPhaseError.
    - Read-before-write: a transaction may only update or delete a product
      it read, only rewrite a summary it read, and only clear sales it
      listed.  New products and sales are the exception.
    - Tenant isolation: a Transaction is bound to exactly one tenant.

Failure modes:
    - TransactionPhaseError on any ordering violation.  This is a programming
      error in the operation body, never a runtime condition to retry.
    - ValidationError for a malformed pagination cursor or page size.
"""

from __future__ import annotations

import base64
import binascii
import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from shoptrack_kernel.domain.analytics import AnalyticsSummary
from shoptrack_kernel.domain.entities import NewProduct, Product, Sale
from shoptrack_kernel.exceptions import TransactionPhaseError, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a keyset-paginated listing."""

    items: tuple[T, ...]
    next_cursor: str | None


def encode_cursor(*parts: str) -> str:
    """Opaque url-safe cursor from the sort key of the last row on a page."""
    raw = json.dumps(list(parts), separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str, size: int) -> list[str]:
    """
    Inverse of encode_cursor.

    Raises:
        ValidationError: If the cursor was not produced by encode_cursor.
    """
    try:
        parts = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise ValidationError(
            "page", [{"field": "cursor", "message": "malformed cursor"}]
        ) from exc
    if (
        not isinstance(parts, list)
        or len(parts) != size
        or not all(isinstance(p, str) for p in parts)
    ):
        raise ValidationError("page", [{"field": "cursor", "message": "malformed cursor"}])
    return parts


def check_page_size(page_size: int) -> None:
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise ValidationError(
            "page", [{"field": "page_size", "message": "must be an integer >= 1"}]
        )


class Transaction(ABC):
    """
    Handle given to the body of one atomic operation.

    Contract:
        Every public method checks phase ordering and then delegates to an
        underscore hook implemented by the backend.  Nothing written through
        the handle is visible to other transactions until the enclosing
        ``run_atomic`` commits.

    Guarantees:
        - Reads after the first write raise TransactionPhaseError.
        - Writes to records that were not read raise TransactionPhaseError.
    """

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        self._writing = False
        self._read_product_ids: set[str] = set()
        self._summary_read = False
        self._sales_read = False

    @property
    def in_write_phase(self) -> bool:
        return self._writing

    def _enter_read(self, action: str) -> None:
        if self._writing:
            raise TransactionPhaseError(action, "read issued after the first write")

    def _enter_write(self, action: str) -> None:
        self._writing = True

    def _require_product_read(self, action: str, product_id: str) -> None:
        if product_id not in self._read_product_ids:
            raise TransactionPhaseError(
                action, f"product {product_id} was not read in the read phase"
            )

    # -- Read phase ---------------------------------------------------------

    def get_product(self, product_id: str) -> Product | None:
        self._enter_read("get_product")
        product = self._load_products([product_id]).get(product_id)
        if product is not None:
            self._read_product_ids.add(product_id)
        return product

    def get_products(self, product_ids: Iterable[str]) -> dict[str, Product]:
        """Products by id; ids that do not exist are absent from the result."""
        self._enter_read("get_products")
        products = self._load_products(list(dict.fromkeys(product_ids)))
        self._read_product_ids.update(products)
        return products

    def read_summary(self) -> AnalyticsSummary | None:
        """The tenant's stored summary, or None if the tenant was never initialized."""
        self._enter_read("read_summary")
        summary = self._load_summary()
        self._summary_read = summary is not None
        return summary

    def list_products(self) -> list[Product]:
        self._enter_read("list_products")
        products = self._load_all_products()
        self._read_product_ids.update(p.id for p in products)
        return products

    def list_sales(self) -> list[Sale]:
        self._enter_read("list_sales")
        sales = self._load_all_sales()
        self._sales_read = True
        return sales

    # -- Write phase --------------------------------------------------------

    def insert_product(self, new_product: NewProduct) -> Product:
        self._enter_write("insert_product")
        product = self._insert_product(new_product)
        # A product inserted here may be adjusted later in the same phase.
        self._read_product_ids.add(product.id)
        return product

    def update_product(self, product: Product) -> None:
        self._require_product_read("update_product", product.id)
        self._enter_write("update_product")
        self._update_product(product)

    def set_stock(self, product_id: str, stock: int) -> None:
        self._require_product_read("set_stock", product_id)
        self._enter_write("set_stock")
        self._set_stock(product_id, stock)

    def delete_product(self, product_id: str) -> None:
        self._require_product_read("delete_product", product_id)
        self._enter_write("delete_product")
        self._delete_product(product_id)
        self._read_product_ids.discard(product_id)

    def insert_sale(self, sale: Sale) -> Sale:
        self._enter_write("insert_sale")
        return self._insert_sale(sale)

    def delete_all_sales(self) -> int:
        if not self._sales_read:
            raise TransactionPhaseError(
                "delete_all_sales", "sales were not listed in the read phase"
            )
        self._enter_write("delete_all_sales")
        return self._delete_all_sales()

    def write_summary(self, summary: AnalyticsSummary) -> None:
        if not self._summary_read:
            raise TransactionPhaseError(
                "write_summary", "summary was not read in the read phase"
            )
        self._enter_write("write_summary")
        self._write_summary(summary)

    # -- Backend hooks ------------------------------------------------------

    @abstractmethod
    def _load_products(self, product_ids: list[str]) -> dict[str, Product]: ...

    @abstractmethod
    def _load_all_products(self) -> list[Product]: ...

    @abstractmethod
    def _load_summary(self) -> AnalyticsSummary | None: ...

    @abstractmethod
    def _load_all_sales(self) -> list[Sale]: ...

    @abstractmethod
    def _insert_product(self, new_product: NewProduct) -> Product: ...

    @abstractmethod
    def _update_product(self, product: Product) -> None: ...

    @abstractmethod
    def _set_stock(self, product_id: str, stock: int) -> None: ...

    @abstractmethod
    def _delete_product(self, product_id: str) -> None: ...

    @abstractmethod
    def _insert_sale(self, sale: Sale) -> Sale: ...

    @abstractmethod
    def _delete_all_sales(self) -> int: ...

    @abstractmethod
    def _write_summary(self, summary: AnalyticsSummary) -> None: ...


class Repository(ABC):
    """
    Tenant-scoped storage used by the transaction coordinator and selectors.

    Non-goals:
        - Does NOT retry.  Conflicts surface as TransactionConflictError and
          the caller's retry policy decides what to do.
    """

    @abstractmethod
    def get_product(self, tenant_id: str, product_id: str) -> Product:
        """
        Raises:
            ProductNotFoundError: If the tenant has no such product.
        """

    @abstractmethod
    def list_products_page(
        self, tenant_id: str, page_size: int, cursor: str | None = None
    ) -> Page[Product]:
        """Products ordered by name ascending (id breaks ties)."""

    @abstractmethod
    def list_sales_page(
        self, tenant_id: str, page_size: int, cursor: str | None = None
    ) -> Page[Sale]:
        """Sales ordered by timestamp descending (id breaks ties)."""

    @abstractmethod
    def get_analytics_summary(self, tenant_id: str) -> AnalyticsSummary:
        """The stored summary, or a default all-zero summary if there is none."""

    @abstractmethod
    def initialize_tenant(self, tenant_id: str) -> bool:
        """Create the tenant's default summary.  Returns False if it already existed."""

    @abstractmethod
    def run_atomic(
        self,
        tenant_id: str,
        operation: Callable[[Transaction], T],
        operation_name: str = "run_atomic",
    ) -> T:
        """
        Run ``operation`` inside one atomic scope.

        Commits if ``operation`` returns, rolls back every write if it raises.

        Raises:
            TransactionConflictError: A concurrent transaction modified a
                record this one read.
            StorageUnavailableError: The backend could not be reached.
        """
