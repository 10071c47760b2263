"""
mfg_config -- single public entrypoint for costing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``. No other component may read configuration
    files or environment variables directly. Engines receive the returned
    ``CostingConfig`` (or its values) as explicit arguments.

Architecture position:
    Configuration -- YAML-driven, validated at load time.
    Sits above ``mfg_kernel`` and below ``mfg_services``. The kernel and
    the engines MUST NEVER import from ``mfg_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Only ``markup_multiple`` and ``default_yield_pct`` are recognized;
      anything else is an ``InvalidConfigError``.
    - Deterministic: the same YAML document always yields the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``InvalidConfigError`` -- unknown key or invalid value.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``MFG_CONFIG_TRACE`` log entry with config_id, version, checksum and
    the option values, tying every CostBreakdown to the configuration
    that priced it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mfg_config.loader import load_yaml_file, parse_costing_config
from mfg_config.schema import CostingConfig

_logger = logging.getLogger("mfg_kernel.config")

# Default configuration document
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> CostingConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``CostingConfig`` has passed validation.
        - An ``MFG_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - No caching across calls; callers hold the returned config for
          as long as they need it.

    Args:
        config_path: Override path to a configuration document.
            Defaults to mfg_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        InvalidConfigError: If the configuration fails validation.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_costing_config(load_yaml_file(path))

    _logger.info(
        "MFG_CONFIG_TRACE",
        extra={
            "trace_type": "MFG_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "markup_multiple": str(config.markup_multiple),
            "default_yield_pct": str(config.default_yield_pct),
        },
    )
    return config


__all__ = ["CostingConfig", "get_active_config"]
