"""
Module: shoptrack_kernel.models.analytics_summary
Responsibility: ORM persistence for the per-tenant analytics summary
    document, the materialized view behind the dashboard.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Exactly one row per tenant (uq_summary_tenant).  The row is created when
      the tenant signs up and is never deleted while the tenant exists.
    - The row is rewritten by every product or sale mutation, inside the same
      transaction as that mutation.
    - version is an optimistic lock counter; two transactions that both read
      version N cannot both commit.

Audit relevance:
    The JSON columns hold the document produced by
    shoptrack_kernel.domain.analytics.summary_to_document; the repository
    never interprets them beyond that converter.
"""

from typing import Any

from sqlalchemy import JSON, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shoptrack_kernel.db.base import TenantScopedBase


class AnalyticsSummaryRecord(TenantScopedBase):
    """The single analytics summary document for one tenant."""

    __tablename__ = "analytics_summaries"

    __table_args__ = (
        UniqueConstraint("tenant_id", name="uq_summary_tenant"),
    )

    all_time: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    daily: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    monthly: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<AnalyticsSummaryRecord tenant={self.tenant_id} v{self.version}>"
