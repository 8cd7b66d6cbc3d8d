"""
SqlRepository -- SQLAlchemy implementation of the repository contract.

Responsibility:
    Stores products, sales and the per-tenant analytics summary in the
    tables defined under ``shoptrack_kernel.models`` and runs each atomic
    operation in its own Session.

Architecture position:
    Kernel > Repository -- imperative shell infrastructure.
    Converts ORM records to frozen domain DTOs at the boundary; nothing
    above this module ever sees a SQLAlchemy object.

Invariants enforced:
    - One Session per ``run_atomic`` call.  The session is flushed and
      committed only after the operation body returns; any exception rolls
      it back and nothing is persisted.
    - Optimistic locking: products and summaries carry a version column.
      Every write issues an UPDATE guarded by the version read in the read
      phase, so a concurrent commit in between fails this transaction.
    - On PostgreSQL the read phase additionally takes ``SELECT ... FOR
      UPDATE`` row locks, so concurrent sales on one tenant serialize
      instead of failing.
    - Every query filters on tenant_id.

Failure modes:
    - TransactionConflictError: StaleDataError (version mismatch), or a
      PostgreSQL serialization failure (40001) / deadlock (40P01).
    - StorageUnavailableError: OperationalError or InterfaceError raised by
      the driver (connection lost, timeout, server shutdown).
    - Any other DBAPIError (IntegrityError, DataError, ProgrammingError)
      propagates unchanged after the rollback.
    - Domain errors raised by the operation body propagate unchanged after
      the rollback.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import TypeVar

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from shoptrack_kernel.db.base import new_id
from shoptrack_kernel.db.engine import get_session_factory
from shoptrack_kernel.domain.analytics import (
    DEFAULT_TOP_SELLING_LIMIT,
    AnalyticsSummary,
    default_summary,
    summary_from_document,
    summary_to_document,
)
from shoptrack_kernel.domain.clock import as_utc
from shoptrack_kernel.domain.entities import (
    NewProduct,
    Product,
    Sale,
    coerce_payment_mode,
    coerce_product_kind,
    coerce_timestamp,
    sale_item_from_document,
    sale_item_to_document,
    to_decimal,
    to_int,
    to_text,
)
from shoptrack_kernel.exceptions import (
    ProductNotFoundError,
    ShopTrackError,
    StorageUnavailableError,
    TransactionConflictError,
)
from shoptrack_kernel.logging_config import get_logger
from shoptrack_kernel.models import AnalyticsSummaryRecord, ProductRecord, SaleRecord
from shoptrack_kernel.repository.base import (
    Page,
    Repository,
    Transaction,
    check_page_size,
    decode_cursor,
    encode_cursor,
)

logger = get_logger("repository.sql")

T = TypeVar("T")

# PostgreSQL SQLSTATEs that mean "another transaction got there first"
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def _product_to_dto(record: ProductRecord) -> Product:
    return Product(
        id=record.id,
        name=to_text(record.name),
        kind=coerce_product_kind(record.kind),
        stock=to_int(record.stock),
        purchase_price=to_decimal(record.purchase_price),
        selling_price=to_decimal(record.selling_price),
        category=to_text(record.category),
        low_stock_threshold=to_int(record.low_stock_threshold),
    )


def _sale_to_dto(record: SaleRecord) -> Sale:
    raw_items = record.items if isinstance(record.items, list) else []
    return Sale(
        id=record.id,
        sold_at=coerce_timestamp(record.sold_at),
        items=tuple(
            sale_item_from_document(item if isinstance(item, dict) else None)
            for item in raw_items
        ),
        total_amount=to_decimal(record.total_amount),
        payment_mode=coerce_payment_mode(record.payment_mode),
    )


def _summary_to_dto(record: AnalyticsSummaryRecord, top_selling_limit: int) -> AnalyticsSummary:
    return summary_from_document(
        {"all_time": record.all_time, "daily": record.daily, "monthly": record.monthly},
        top_selling_limit,
    )


class SqlTransaction(Transaction):
    """
    Transaction handle over one SQLAlchemy Session.

    Records read in the read phase are kept by id so the write phase mutates
    the same instances, and their version column guards the UPDATE.
    """

    def __init__(
        self,
        session: Session,
        tenant_id: str,
        lock_rows: bool = False,
        top_selling_limit: int = DEFAULT_TOP_SELLING_LIMIT,
    ):
        super().__init__(tenant_id)
        self._session = session
        self._lock_rows = lock_rows
        self._top_selling_limit = top_selling_limit
        self._products: dict[str, ProductRecord] = {}
        self._summary: AnalyticsSummaryRecord | None = None

    def _locked(self, stmt):
        if self._lock_rows:
            stmt = stmt.with_for_update()
        return stmt.execution_options(populate_existing=True)

    def _load_products(self, product_ids: list[str]) -> dict[str, Product]:
        if not product_ids:
            return {}
        records = self._session.scalars(
            self._locked(
                select(ProductRecord)
                .where(ProductRecord.tenant_id == self.tenant_id)
                .where(ProductRecord.id.in_(product_ids))
                .order_by(ProductRecord.id)
            )
        ).all()
        self._products.update((r.id, r) for r in records)
        return {r.id: _product_to_dto(r) for r in records}

    def _load_all_products(self) -> list[Product]:
        records = self._session.scalars(
            self._locked(
                select(ProductRecord)
                .where(ProductRecord.tenant_id == self.tenant_id)
                .order_by(ProductRecord.name, ProductRecord.id)
            )
        ).all()
        self._products.update((r.id, r) for r in records)
        return [_product_to_dto(r) for r in records]

    def _load_summary(self) -> AnalyticsSummary | None:
        record = self._session.scalars(
            self._locked(
                select(AnalyticsSummaryRecord).where(
                    AnalyticsSummaryRecord.tenant_id == self.tenant_id
                )
            )
        ).one_or_none()
        self._summary = record
        if record is None:
            return None
        return _summary_to_dto(record, self._top_selling_limit)

    def _load_all_sales(self) -> list[Sale]:
        records = self._session.scalars(
            select(SaleRecord)
            .where(SaleRecord.tenant_id == self.tenant_id)
            .order_by(SaleRecord.sold_at.desc(), SaleRecord.id.desc())
        ).all()
        return [_sale_to_dto(r) for r in records]

    def _insert_product(self, new_product: NewProduct) -> Product:
        record = ProductRecord(
            id=new_id(),
            tenant_id=self.tenant_id,
            name=new_product.name,
            kind=new_product.kind.value,
            stock=new_product.stock,
            purchase_price=new_product.purchase_price,
            selling_price=new_product.selling_price,
            category=new_product.category,
            low_stock_threshold=new_product.low_stock_threshold,
        )
        self._session.add(record)
        self._products[record.id] = record
        return new_product.with_id(record.id)

    def _update_product(self, product: Product) -> None:
        record = self._products[product.id]
        record.name = product.name
        record.kind = product.kind.value
        record.stock = product.stock
        record.purchase_price = product.purchase_price
        record.selling_price = product.selling_price
        record.category = product.category
        record.low_stock_threshold = product.low_stock_threshold
        # Always issue the UPDATE so the version check runs.
        record.updated_at = func.now()

    def _set_stock(self, product_id: str, stock: int) -> None:
        record = self._products[product_id]
        record.stock = stock
        record.updated_at = func.now()

    def _delete_product(self, product_id: str) -> None:
        self._session.delete(self._products.pop(product_id))

    def _insert_sale(self, sale: Sale) -> Sale:
        sale_id = sale.id or new_id()
        self._session.add(
            SaleRecord(
                id=sale_id,
                tenant_id=self.tenant_id,
                sold_at=as_utc(sale.sold_at),
                items=[sale_item_to_document(item) for item in sale.items],
                total_amount=sale.total_amount,
                payment_mode=sale.payment_mode.value,
            )
        )
        return replace(sale, id=sale_id)

    def _delete_all_sales(self) -> int:
        result = self._session.execute(
            delete(SaleRecord).where(SaleRecord.tenant_id == self.tenant_id)
        )
        return result.rowcount or 0

    def _write_summary(self, summary: AnalyticsSummary) -> None:
        document = summary_to_document(summary)
        record = self._summary
        record.all_time = document["all_time"]
        record.daily = document["daily"]
        record.monthly = document["monthly"]
        record.updated_at = func.now()


class SqlRepository(Repository):
    """
    Repository over the kernel's SQLAlchemy tables.

    Contract:
        Receives a session factory (defaults to the one configured by
        ``init_engine_from_url``).  Owns session lifetime: one session per
        read call or atomic operation, always closed on exit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        top_selling_limit: int = DEFAULT_TOP_SELLING_LIMIT,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._top_selling_limit = top_selling_limit

    # -- Reads outside a transaction ---------------------------------------

    def get_product(self, tenant_id: str, product_id: str) -> Product:
        with self._session_factory() as session:
            record = session.scalars(
                select(ProductRecord)
                .where(ProductRecord.tenant_id == tenant_id)
                .where(ProductRecord.id == product_id)
            ).one_or_none()
            if record is None:
                raise ProductNotFoundError(product_id)
            return _product_to_dto(record)

    def list_products_page(
        self, tenant_id: str, page_size: int, cursor: str | None = None
    ) -> Page[Product]:
        check_page_size(page_size)
        stmt = select(ProductRecord).where(ProductRecord.tenant_id == tenant_id)
        if cursor is not None:
            last_name, last_id = decode_cursor(cursor, 2)
            stmt = stmt.where(
                or_(
                    ProductRecord.name > last_name,
                    and_(ProductRecord.name == last_name, ProductRecord.id > last_id),
                )
            )
        stmt = stmt.order_by(ProductRecord.name, ProductRecord.id).limit(page_size + 1)

        with self._session_factory() as session:
            records = session.scalars(stmt).all()
            products = tuple(_product_to_dto(r) for r in records[:page_size])

        next_cursor = None
        if len(records) > page_size:
            last = products[-1]
            next_cursor = encode_cursor(last.name, last.id)
        return Page(items=products, next_cursor=next_cursor)

    def list_sales_page(
        self, tenant_id: str, page_size: int, cursor: str | None = None
    ) -> Page[Sale]:
        check_page_size(page_size)
        stmt = select(SaleRecord).where(SaleRecord.tenant_id == tenant_id)
        if cursor is not None:
            last_sold_at, last_id = decode_cursor(cursor, 2)
            sold_at = coerce_timestamp(last_sold_at)
            stmt = stmt.where(
                or_(
                    SaleRecord.sold_at < sold_at,
                    and_(SaleRecord.sold_at == sold_at, SaleRecord.id < last_id),
                )
            )
        stmt = stmt.order_by(SaleRecord.sold_at.desc(), SaleRecord.id.desc()).limit(
            page_size + 1
        )

        with self._session_factory() as session:
            records = session.scalars(stmt).all()
            sales = tuple(_sale_to_dto(r) for r in records[:page_size])

        next_cursor = None
        if len(records) > page_size:
            last = sales[-1]
            next_cursor = encode_cursor(last.sold_at.isoformat(), last.id)
        return Page(items=sales, next_cursor=next_cursor)

    def get_analytics_summary(self, tenant_id: str) -> AnalyticsSummary:
        with self._session_factory() as session:
            record = session.scalars(
                select(AnalyticsSummaryRecord).where(
                    AnalyticsSummaryRecord.tenant_id == tenant_id
                )
            ).one_or_none()
            if record is None:
                return default_summary()
            return _summary_to_dto(record, self._top_selling_limit)

    # -- Writes -------------------------------------------------------------

    def initialize_tenant(self, tenant_id: str) -> bool:
        document = summary_to_document(default_summary())
        with self._session_factory() as session:
            exists = session.scalars(
                select(AnalyticsSummaryRecord.id).where(
                    AnalyticsSummaryRecord.tenant_id == tenant_id
                )
            ).first()
            if exists is not None:
                return False
            session.add(
                AnalyticsSummaryRecord(
                    tenant_id=tenant_id,
                    all_time=document["all_time"],
                    daily=document["daily"],
                    monthly=document["monthly"],
                )
            )
            try:
                session.commit()
            except IntegrityError:
                # Concurrent signup created the row first.
                session.rollback()
                logger.info("tenant_already_initialized", extra={"tenant_id": tenant_id})
                return False
            except (OperationalError, InterfaceError) as exc:
                session.rollback()
                raise StorageUnavailableError("initialize_tenant", str(exc.orig)) from exc

        logger.info("tenant_initialized", extra={"tenant_id": tenant_id})
        return True

    def run_atomic(
        self,
        tenant_id: str,
        operation: Callable[[Transaction], T],
        operation_name: str = "run_atomic",
    ) -> T:
        with self._session_factory() as session:
            txn = SqlTransaction(
                session,
                tenant_id,
                lock_rows=session.get_bind().dialect.name == "postgresql",
                top_selling_limit=self._top_selling_limit,
            )
            try:
                result = operation(txn)
                session.flush()
                session.commit()
            except ShopTrackError as exc:
                session.rollback()
                self._log_rollback(tenant_id, operation_name, exc)
                raise
            except StaleDataError as exc:
                session.rollback()
                conflict = TransactionConflictError(tenant_id, operation_name, str(exc))
                self._log_rollback(tenant_id, operation_name, conflict)
                raise conflict from exc
            except IntegrityError as exc:
                session.rollback()
                self._log_rollback(tenant_id, operation_name, exc)
                raise
            except DBAPIError as exc:
                session.rollback()
                translated = self._translate_dbapi_error(tenant_id, operation_name, exc)
                if translated is None:
                    self._log_rollback(tenant_id, operation_name, exc)
                    raise
                self._log_rollback(tenant_id, operation_name, translated)
                raise translated from exc
            except Exception as exc:
                session.rollback()
                self._log_rollback(tenant_id, operation_name, exc)
                raise

        logger.info(
            "transaction_committed",
            extra={"tenant_id": tenant_id, "operation": operation_name},
        )
        return result

    @staticmethod
    def _translate_dbapi_error(
        tenant_id: str, operation_name: str, exc: DBAPIError
    ) -> ShopTrackError | None:
        """Map a driver error to a kernel error; None means re-raise as is."""
        sqlstate = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
        if sqlstate in _CONFLICT_SQLSTATES:
            return TransactionConflictError(tenant_id, operation_name, str(exc.orig))
        if isinstance(exc, (OperationalError, InterfaceError)):
            return StorageUnavailableError(operation_name, str(exc.orig))
        return None

    @staticmethod
    def _log_rollback(tenant_id: str, operation_name: str, exc: Exception) -> None:
        logger.warning(
            "transaction_rolled_back",
            extra={
                "tenant_id": tenant_id,
                "operation": operation_name,
                "error_code": (
                    exc.code if isinstance(exc, ShopTrackError) else type(exc).__name__
                ),
                "error": str(exc),
            },
        )
