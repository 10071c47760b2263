"""
Module: mfg_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the canonical import surface for higher
    layers (mfg_services, the kernel container service).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import mfg_kernel.domain, mfg_kernel.exceptions,
    mfg_kernel.logging_config and sibling engine modules.
    MUST NOT import mfg_config or mfg_services.

Invariants enforced:
    - Purity: engines never read the clock. Measurement times are passed
      in by the caller.
    - Decimal-only arithmetic; floats are converted at the boundary.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is traced via ``@traced_engine`` (see
    ``mfg_engines.tracer``), emitting MFG_ENGINE_TRACE records with engine
    name, version, input fingerprint, and duration.

Usage:
    from mfg_engines import CostRollupEngine, PricingAnalyzer, ContainerWeightLedger
"""

from mfg_kernel.logging_config import get_logger

logger = get_logger("engines")

from mfg_engines.component_cost import (
    amortize,
    cost_per_base_unit,
    is_usable_operand,
    line_cost,
)
from mfg_engines.container_weight import (
    BACKSTOCK_LOCATION,
    PRODUCTION_LOCATION,
    ContainerWeightLedger,
    WeightCapture,
    resolve_tare,
)
from mfg_engines.pricing import (
    BREAK_EVEN_UNREACHABLE,
    PricingAnalyzer,
    PricingResult,
)
from mfg_engines.rollup import (
    CostBreakdown,
    CostRollupEngine,
    LineCost,
    RollupTotals,
    UnresolvedLine,
)
from mfg_engines.tracer import traced_engine
from mfg_engines.units import ConversionFailure, ConversionResult, UnitConverter
from mfg_engines.yield_adjust import apply_yield

__all__ = [
    "ConversionFailure",
    "ConversionResult",
    "UnitConverter",
    "apply_yield",
    "line_cost",
    "cost_per_base_unit",
    "amortize",
    "is_usable_operand",
    "CostBreakdown",
    "CostRollupEngine",
    "LineCost",
    "RollupTotals",
    "UnresolvedLine",
    "BREAK_EVEN_UNREACHABLE",
    "PricingAnalyzer",
    "PricingResult",
    "ContainerWeightLedger",
    "WeightCapture",
    "resolve_tare",
    "PRODUCTION_LOCATION",
    "BACKSTOCK_LOCATION",
    "traced_engine",
]

logger.debug("engines_package_loaded", extra={
    "module_count": 6,
    "modules": [
        "units", "yield_adjust", "component_cost",
        "rollup", "pricing", "container_weight",
    ],
})
