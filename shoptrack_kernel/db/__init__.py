"""Database layer - engine, base classes and column types."""

from shoptrack_kernel.db.base import Base, TenantScopedBase, new_id
from shoptrack_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from shoptrack_kernel.db.types import Identifier, LongText, Money, ShortCode

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TenantScopedBase",
    "new_id",
    "Money",
    "Identifier",
    "ShortCode",
    "LongText",
]
