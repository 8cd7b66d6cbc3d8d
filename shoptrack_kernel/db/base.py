"""
Module: shoptrack_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the string-UUID primary key convention, the type annotation map for
    consistent column types, and the TenantScopedBase mixin.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, repository/, services/, selectors/, or domain/.

Invariants enforced:
    - Opaque string identifiers: every record gets a uuid4 string id; the
      domain layer treats ids as opaque text.
    - Decimal precision: type_annotation_map maps Python Decimal to
      Numeric(38, 9).  NEVER use float for monetary amounts.
    - Tenant scoping: every tenant-owned table carries a non-null, indexed
      tenant_id column.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import uuid4

from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shoptrack_kernel.db.types import Identifier


def new_id() -> str:
    """Generate a new opaque record identifier."""
    return str(uuid4())


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is a uuid4 string stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: Integer,
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_id,
    )


class TenantScopedBase(Base):
    """
    Abstract base for records exclusively owned by one tenant.

    Contract:
        Every row belongs to exactly one tenant; no cross-tenant sharing.
        Queries against these tables must always filter by tenant_id.

    Guarantees:
        - tenant_id is required and indexed.
        - created_at / updated_at are server timestamps.
    """

    __abstract__ = True

    tenant_id: Mapped[str] = mapped_column(
        Identifier,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
