"""
Configuration Loader (``mfg_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into a frozen
``CostingConfig``. This is build/test tooling; the single runtime entry
point is ``mfg_config.get_active_config()``.

Invariants enforced
-------------------
* Only the enumerated options are accepted. Unknown keys raise
  ``InvalidConfigError`` instead of being silently ignored.
* ``markup_multiple`` must be a finite number >= 0 and
  ``default_yield_pct`` a finite number > 0.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or invalid value  -> ``InvalidConfigError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from mfg_config.schema import (
    COSTING_OPTIONS,
    DEFAULT_MARKUP_MULTIPLE,
    DEFAULT_YIELD_PCT,
    DOCUMENT_KEYS,
    CostingConfig,
)
from mfg_kernel.domain.values import to_decimal
from mfg_kernel.exceptions import InvalidConfigError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        InvalidConfigError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigError(str(path), "document must be a mapping")
    return data


def _option(costing: dict[str, Any], key: str, default: Decimal) -> Decimal:
    raw = costing.get(key)
    if raw is None:
        return default
    value = to_decimal(raw)
    if value is None or not value.is_finite():
        raise InvalidConfigError(key, f"must be a finite number, got {raw!r}")
    return value


def parse_costing_config(data: dict[str, Any]) -> CostingConfig:
    """Parse a configuration document into a ``CostingConfig``."""
    unknown = sorted(set(data) - DOCUMENT_KEYS)
    if unknown:
        raise InvalidConfigError(unknown[0], "unknown configuration key")

    costing = data.get("costing") or {}
    if not isinstance(costing, dict):
        raise InvalidConfigError("costing", "must be a mapping")
    unknown = sorted(set(costing) - COSTING_OPTIONS)
    if unknown:
        raise InvalidConfigError(
            f"costing.{unknown[0]}",
            f"unknown option; recognized options: {', '.join(sorted(COSTING_OPTIONS))}",
        )

    markup = _option(costing, "markup_multiple", DEFAULT_MARKUP_MULTIPLE)
    if markup < 0:
        raise InvalidConfigError("markup_multiple", "must not be negative")
    default_yield = _option(costing, "default_yield_pct", DEFAULT_YIELD_PCT)
    if default_yield <= 0:
        raise InvalidConfigError("default_yield_pct", "must be greater than 0")

    version = data.get("version", 1)
    try:
        version = int(version)
    except (TypeError, ValueError):
        raise InvalidConfigError("version", f"must be an integer, got {version!r}") from None

    return CostingConfig(
        config_id=str(data.get("config_id") or "default"),
        version=version,
        markup_multiple=markup,
        default_yield_pct=default_yield,
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
