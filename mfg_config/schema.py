"""
CostingConfig schema.

The typed, frozen form of a costing configuration set. YAML documents are
parsed into this type by the loader; engines receive it (or its two
values) explicitly and never read configuration on their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_MARKUP_MULTIPLE = Decimal("4")
DEFAULT_YIELD_PCT = Decimal("100")

# Options accepted under the ``costing`` section.
COSTING_OPTIONS = frozenset({"markup_multiple", "default_yield_pct"})

# Keys accepted at the top level of a configuration document.
DOCUMENT_KEYS = frozenset({"config_id", "version", "costing"})


@dataclass(frozen=True)
class CostingConfig:
    """Active costing configuration."""

    config_id: str = "default"
    version: int = 1
    markup_multiple: Decimal = DEFAULT_MARKUP_MULTIPLE
    default_yield_pct: Decimal = DEFAULT_YIELD_PCT
    checksum: str = ""

    def as_dict(self) -> dict[str, str]:
        return {
            "markup_multiple": str(self.markup_multiple),
            "default_yield_pct": str(self.default_yield_pct),
        }
