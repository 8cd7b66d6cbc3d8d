"""
Module: shoptrack_kernel.models.product
Responsibility: ORM persistence for catalog products and services.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - stock >= 0 for every row (check constraint); the stock ledger makes
      sure no sale ever tries to write a negative value.
    - Services store stock, purchase_price and low_stock_threshold as 0.
    - version is an optimistic lock counter: an UPDATE or DELETE that finds a
      different version raises StaleDataError, which the repository reports
      as a transaction conflict.

Failure modes:
    - IntegrityError if a write violates the non-negative checks.
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from shoptrack_kernel.db.base import TenantScopedBase
from shoptrack_kernel.db.types import LongText, Money, ShortCode


class ProductRecord(TenantScopedBase):
    """
    A product (stocked item) or service in one tenant's catalog.

    Contract:
        Exclusively owned by one tenant.  Sale records refer to products by id
        only; deleting a product never touches historical sales.
    """

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_product_tenant_name", "tenant_id", "name", "id"),
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("purchase_price >= 0", name="ck_product_purchase_price"),
        CheckConstraint("selling_price >= 0", name="ck_product_selling_price"),
        CheckConstraint(
            "low_stock_threshold >= 0", name="ck_product_threshold_non_negative"
        ),
    )

    name: Mapped[str] = mapped_column(LongText, nullable=False)

    # "item" or "service"
    kind: Mapped[str] = mapped_column(ShortCode, nullable=False, default="item")

    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    purchase_price: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0")
    )

    selling_price: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0")
    )

    category: Mapped[str] = mapped_column(LongText, nullable=False, default="")

    low_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<ProductRecord {self.name} ({self.kind}) stock={self.stock}>"
