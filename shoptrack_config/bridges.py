"""
Config -> Kernel Bridges.

Functions that turn a ShopTrackConfig into ready kernel objects.  They live
in shoptrack_config because the kernel must NEVER import shoptrack_config.

Usage:
    from shoptrack_config import get_active_config
    from shoptrack_config.bridges import build_coordinator, build_retry_policy

    config = get_active_config()
    coordinator = build_coordinator(config)
    policy = build_retry_policy(config)
"""

from __future__ import annotations

import logging

from shoptrack_config.schema import ShopTrackConfig
from shoptrack_kernel.db.engine import create_tables, init_engine_from_url
from shoptrack_kernel.domain.clock import Clock, SystemClock
from shoptrack_kernel.logging_config import configure_logging
from shoptrack_kernel.repository.sql import SqlRepository
from shoptrack_kernel.selectors import DashboardSelector, InventorySelector
from shoptrack_kernel.services import RetryPolicy, TransactionCoordinator


def configure_kernel_logging(config: ShopTrackConfig) -> None:
    """Install the structured JSON handler at the configured level."""
    configure_logging(level=logging.getLevelName(config.logging.level))


def build_repository(config: ShopTrackConfig) -> SqlRepository:
    """Initialize the engine (and tables, if asked) and return a repository."""
    db = config.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    if db.create_tables:
        create_tables()
    return SqlRepository(top_selling_limit=config.analytics.top_selling_limit)


def build_coordinator(
    config: ShopTrackConfig,
    clock: Clock | None = None,
    repository: SqlRepository | None = None,
) -> TransactionCoordinator:
    """A TransactionCoordinator wired to the configured database."""
    return TransactionCoordinator(
        repository or build_repository(config),
        clock or SystemClock(),
        top_selling_limit=config.analytics.top_selling_limit,
    )


def build_retry_policy(config: ShopTrackConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.retry.max_attempts,
        backoff_seconds=config.retry.backoff_seconds,
        retry_on_unavailable=config.retry.retry_on_unavailable,
    )


def build_selectors(
    config: ShopTrackConfig, repository: SqlRepository
) -> tuple[InventorySelector, DashboardSelector]:
    return (
        InventorySelector(repository, page_size=config.pagination.default_page_size),
        DashboardSelector(repository),
    )
