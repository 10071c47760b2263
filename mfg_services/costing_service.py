"""
CostingService -- boundary between raw formula records and the roll-up engine.

Responsibility:
    Validates formula and component records into DTOs, checks that every
    referenced record exists, and runs the cost roll-up and pricing
    analysis with the active configuration.

Architecture position:
    Services -- orchestration.  Reads configuration through
    ``mfg_config.get_active_config()`` (unless a config is injected) and
    passes it explicitly to the engines.

Invariants enforced:
    - FormulaNotFoundError / ComponentNotFoundError are raised before any
      computation.
    - Engines only ever see validated DTOs; malformed records fail here
      with InvalidInputError.

Usage:
    service = CostingService()
    breakdown = service.cost_formula(
        "F-100", formulas, components, batch_quantity=Decimal("1000"),
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from mfg_config import CostingConfig, get_active_config
from mfg_engines.component_cost import amortize, cost_per_base_unit
from mfg_engines.pricing import PricingAnalyzer, PricingResult
from mfg_engines.rollup import CostBreakdown, CostRollupEngine
from mfg_kernel.domain.dtos import ComponentMaster, Formula, LaborInputs
from mfg_kernel.exceptions import ComponentNotFoundError, FormulaNotFoundError
from mfg_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.costing")

ComponentRecords = Mapping[str, Any] | Iterable[Any]


def _component(record: Any) -> ComponentMaster:
    if isinstance(record, ComponentMaster):
        return record
    # Pack-priced records: derive the per-base-unit price from the pack.
    if record.get("cost_per_base_unit") is None and record.get("pack_price") is not None:
        record = {
            **record,
            "cost_per_base_unit": cost_per_base_unit(
                record["pack_price"],
                record.get("pack_size_value"),
                record.get("pack_size_unit"),
                record.get("base_unit"),
                density=record.get("density", record.get("density_g_per_ml")),
            ),
        }
    return ComponentMaster.from_record(record)


def _formula(record: Any) -> Formula:
    if isinstance(record, Formula):
        return record
    return Formula.from_record(record)


class CostingService:
    """
    Formula costing with the active configuration.

    Contract:
        Accepts either DTOs or raw mappings for formulas and components.
        Component collections may be a mapping keyed by component id or
        any iterable of records carrying their own id.

    Non-goals:
        - Does NOT persist breakdowns; every call recomputes.
    """

    def __init__(self, config: CostingConfig | None = None):
        self._config = config or get_active_config()
        self._engine = CostRollupEngine.from_config(self._config)

    @property
    def config(self) -> CostingConfig:
        return self._config

    @property
    def pricing(self) -> PricingAnalyzer:
        return self._engine.pricing

    def load_components(self, components: ComponentRecords) -> dict[str, ComponentMaster]:
        """Validate component records into a dict keyed by component id."""
        values = components.values() if isinstance(components, Mapping) else components
        loaded: dict[str, ComponentMaster] = {}
        for record in values:
            component = _component(record)
            loaded[component.component_id] = component
        return loaded

    def load_formula(self, formula_id: str, formulas: Mapping[str, Any]) -> Formula:
        record = formulas.get(formula_id)
        if record is None:
            logger.warning("formula_not_found", extra={"formula_id": formula_id})
            raise FormulaNotFoundError(formula_id)
        return _formula(record)

    def roll_up(
        self,
        formula: Formula | Mapping[str, Any],
        components: ComponentRecords,
        batch_quantity: Any,
        labor: LaborInputs | None = None,
        overhead_pct: Any = None,
        waste_pct: Any = None,
        require_complete: bool = False,
    ) -> CostBreakdown:
        """
        Validate and roll up one formula.

        Args:
            require_complete: Raise UnresolvedConversionError instead of
                returning a breakdown with unresolved lines.
        """
        dto = _formula(formula)
        index = self.load_components(components)

        with LogContext.bind(formula_id=dto.formula_id):
            for line in dto.lines:
                if line.component_ref not in index:
                    logger.warning("component_not_found", extra={
                        "component_id": line.component_ref,
                        "line_id": line.line_id,
                    })
                    raise ComponentNotFoundError(line.component_ref, line.line_id)

            breakdown = self._engine.roll_up(
                dto,
                index,
                batch_quantity,
                labor=labor,
                overhead_pct=overhead_pct,
                waste_pct=waste_pct,
            )
            if require_complete:
                breakdown.require_complete()

            logger.info("formula_costed", extra={
                "formula_version": dto.version,
                "unit_cost": str(breakdown.unit_cost),
                "target_price": str(breakdown.target_price),
                "config_checksum": self._config.checksum,
                "complete": breakdown.is_complete,
            })
            return breakdown

    def cost_formula(
        self,
        formula_id: str,
        formulas: Mapping[str, Any],
        components: ComponentRecords,
        batch_quantity: Any,
        **kwargs: Any,
    ) -> CostBreakdown:
        """Look ``formula_id`` up in ``formulas`` and roll it up."""
        formula = self.load_formula(formula_id, formulas)
        return self.roll_up(formula, components, batch_quantity, **kwargs)

    def estimate_unit_cost(self, **kwargs: Any) -> CostBreakdown:
        """Quick estimate from precomputed subtotals (see CostRollupEngine.calc_unit_cost)."""
        return self._engine.calc_unit_cost(**kwargs)

    def analyze_pricing(self, unit_cost: Any, **kwargs: Any) -> PricingResult:
        """Price and break-even for ``unit_cost`` (see PricingAnalyzer.analyze)."""
        return self._engine.pricing.analyze(unit_cost, **kwargs)

    def break_even(self, fixed_costs: Any, unit_cost: Any, selling_price: Any) -> PricingResult:
        """Break-even at an explicit selling price."""
        return self._engine.pricing.analyze(
            unit_cost, explicit_price=selling_price, fixed_costs=fixed_costs
        )

    def cost_per_base_unit(
        self,
        pack_price: Any,
        pack_size_value: Any,
        pack_size_unit: str,
        base_unit: str,
        density: Any = None,
    ) -> Decimal | None:
        """Per-base-unit price from a supplier pack; None when the pack size cannot be converted."""
        return cost_per_base_unit(
            pack_price, pack_size_value, pack_size_unit, base_unit, density=density
        )

    def amortize(self, value: Any, units: Any) -> Decimal:
        """Spread a one-off cost over ``units``; 0 for non-positive inputs."""
        return amortize(value, units)
