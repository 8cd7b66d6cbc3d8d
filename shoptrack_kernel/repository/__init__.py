"""Repository layer - storage contract and its SQLAlchemy implementation."""

from shoptrack_kernel.repository.base import Page, Repository, Transaction
from shoptrack_kernel.repository.sql import SqlRepository, SqlTransaction

__all__ = [
    "Page",
    "Repository",
    "Transaction",
    "SqlRepository",
    "SqlTransaction",
]
