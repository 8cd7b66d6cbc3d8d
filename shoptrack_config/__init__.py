"""
shoptrack_config -- single public entrypoint for ShopTrack configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``shoptrack_kernel``.  The kernel MUST NEVER
    import from ``shoptrack_config``; ``bridges`` in this package translate
    a configuration into kernel objects.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - The returned ``ShopTrackConfig`` is frozen and fully validated.

Failure modes:
    - ``FileNotFoundError`` -- the selected configuration file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``KeyError`` / ``ValueError`` -- missing or out-of-range settings.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SHOPTRACK_CONFIG_TRACE`` log entry with the config id, version and
    source path.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from shoptrack_config.loader import apply_env_overrides, load_yaml_file, parse_config
from shoptrack_config.schema import ShopTrackConfig

_logger = logging.getLogger("shoptrack_kernel.config")

# Default configuration file
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ShopTrackConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the file: ``path``, then ``SHOPTRACK_CONFIG``, then
    the bundled ``sets/default.yaml``.  ``DATABASE_URL`` and
    ``SHOPTRACK_LOG_LEVEL`` then override single keys.

    Args:
        path: Explicit configuration file.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        ShopTrackConfig -- frozen and validated.
    """
    env = os.environ if environ is None else environ
    source = Path(path or env.get("SHOPTRACK_CONFIG") or DEFAULT_CONFIG_PATH)

    data = apply_env_overrides(load_yaml_file(source), env)
    config = parse_config(data)

    _logger.info(
        "SHOPTRACK_CONFIG_TRACE",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "source": str(source),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ShopTrackConfig",
    "get_active_config",
]
