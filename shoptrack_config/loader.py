"""
Configuration Loader (``shoptrack_config.loader``).

Responsibility
--------------
Loads a YAML configuration file, applies environment overrides and parses
the result into the frozen ``shoptrack_config.schema`` dataclasses.  This
is internal tooling: the single public entry point for runtime config is
``shoptrack_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; only optional keys fall back to defaults.
* Every parsed object is a frozen dataclass from ``schema.py``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url``  -> ``KeyError`` propagates.
* Out-of-range numbers or unknown log level  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from shoptrack_config.schema import (
    AnalyticsConfig,
    DatabaseConfig,
    LoggingConfig,
    PaginationConfig,
    RetryConfig,
    ShopTrackConfig,
)

# Environment variable -> (section, key) it overrides
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DATABASE_URL": ("database", "url"),
    "SHOPTRACK_LOG_LEVEL": ("logging", "level"),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: Mapping[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Return a copy of ``data`` with the ENV_OVERRIDES keys replaced."""
    merged = copy.deepcopy(dict(data))
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            merged[section] = dict(merged.get(section) or {})
            merged[section][key] = value
    return merged


def _section(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return dict(value)


def _positive_int(section: str, key: str, value: Any, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f"{section}.{key} must be an integer >= {minimum}, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig(url="")
    return DatabaseConfig(
        url=data["url"],
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=_positive_int("database", "pool_size", data.get("pool_size", defaults.pool_size)),
        max_overflow=_positive_int(
            "database", "max_overflow", data.get("max_overflow", defaults.max_overflow), 0
        ),
        pool_pre_ping=bool(data.get("pool_pre_ping", defaults.pool_pre_ping)),
        pool_timeout=_positive_int(
            "database", "pool_timeout", data.get("pool_timeout", defaults.pool_timeout)
        ),
        pool_recycle=_positive_int(
            "database", "pool_recycle", data.get("pool_recycle", defaults.pool_recycle)
        ),
        create_tables=bool(data.get("create_tables", defaults.create_tables)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", LoggingConfig.level)).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"logging.level is not a known level: {level!r}")
    return LoggingConfig(level=level)


def parse_retry(data: dict[str, Any]) -> RetryConfig:
    backoff = data.get("backoff_seconds", RetryConfig.backoff_seconds)
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)) or backoff < 0:
        raise ValueError(f"retry.backoff_seconds must be >= 0, got {backoff!r}")
    return RetryConfig(
        max_attempts=_positive_int(
            "retry", "max_attempts", data.get("max_attempts", RetryConfig.max_attempts)
        ),
        backoff_seconds=float(backoff),
        retry_on_unavailable=bool(
            data.get("retry_on_unavailable", RetryConfig.retry_on_unavailable)
        ),
    )


def parse_config(data: Mapping[str, Any]) -> ShopTrackConfig:
    """
    Parse a full configuration document.

    Raises:
        KeyError: if ``database.url`` is missing.
        ValueError: if any value is out of range.
    """
    analytics = _section(data, "analytics")
    pagination = _section(data, "pagination")
    return ShopTrackConfig(
        config_id=str(data.get("config_id", "default")),
        version=_positive_int("config", "version", data.get("version", 1)),
        database=parse_database(_section(data, "database")),
        logging=parse_logging(_section(data, "logging")),
        analytics=AnalyticsConfig(
            top_selling_limit=_positive_int(
                "analytics",
                "top_selling_limit",
                analytics.get("top_selling_limit", AnalyticsConfig.top_selling_limit),
            )
        ),
        pagination=PaginationConfig(
            default_page_size=_positive_int(
                "pagination",
                "default_page_size",
                pagination.get("default_page_size", PaginationConfig.default_page_size),
            )
        ),
        retry=parse_retry(_section(data, "retry")),
    )
