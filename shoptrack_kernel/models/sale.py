"""
Module: shoptrack_kernel.models.sale
Responsibility: ORM persistence for recorded sales with their embedded line
    items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Sales are immutable after insert.  The only deletion path is the bulk
      clear of a tenant's whole sales history.
    - items is a JSON list of line snapshots (product id, product name,
      quantity, price per item, purchase price per item).  Amounts are stored
      as decimal strings so no float rounding can creep in.
    - total_amount equals the sum of price x quantity over items; it is
      computed once when the sale is recorded.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from shoptrack_kernel.db.base import TenantScopedBase
from shoptrack_kernel.db.types import Money, ShortCode


class SaleRecord(TenantScopedBase):
    """A recorded sale for one tenant."""

    __tablename__ = "sales"

    __table_args__ = (
        Index("idx_sale_tenant_sold_at", "tenant_id", "sold_at", "id"),
    )

    # Assigned by the coordinator's clock, always UTC
    sold_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    payment_mode: Mapped[str] = mapped_column(ShortCode, nullable=False)

    def __repr__(self) -> str:
        return f"<SaleRecord {self.id} {self.total_amount} {self.payment_mode}>"
