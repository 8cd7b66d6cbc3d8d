"""
ShopTrackConfig schema.

Typed, frozen view of a configuration set.  YAML documents are parsed into
these types by the loader; nothing at runtime sees the raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection and pool settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800
    create_tables: bool = False


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class AnalyticsConfig:
    top_selling_limit: int = 5


@dataclass(frozen=True)
class PaginationConfig:
    default_page_size: int = 50


@dataclass(frozen=True)
class RetryConfig:
    """Caller retry budget for conflicting coordinator calls."""

    max_attempts: int = 3
    backoff_seconds: float = 0.05
    retry_on_unavailable: bool = False


@dataclass(frozen=True)
class ShopTrackConfig:
    """A complete, validated configuration set."""

    config_id: str
    version: int
    database: DatabaseConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
