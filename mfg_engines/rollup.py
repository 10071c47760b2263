"""
mfg_engines.rollup -- Bill-of-materials cost roll-up.

Responsibility:
    Turn a Formula (ingredient and packaging lines, labor, overhead and
    waste percentages) plus the component master data into a per-unit
    manufacturing cost, together with the price and margin at the
    configured markup.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Composes UnitConverter, apply_yield, line_cost and PricingAnalyzer.
    Called by CostingService; safe to call concurrently from any number of
    threads (no instance state is mutated after construction).

Invariants enforced:
    - Full precision until presentation: every intermediate is an exact
      Decimal; rounding (currency 2 dp, percent 1 dp, quantities 6 dp)
      happens once, when the CostBreakdown is built.
    - Fail closed on conversion: a line that cannot be converted to its
      component's base unit is excluded from the sum and reported in
      ``unresolved``. It is never priced from a guessed density.
    - Missing prices are priced at 0 and listed in ``missing_prices``.
    - Deterministic: identical inputs give an identical CostBreakdown; no
      caching, no clock access.

Failure modes:
    - ComponentNotFoundError before any computation when a line refers to
      a component that was not supplied.
    - InvalidInputError for a negative or non-finite batch quantity or
      out-of-range overrides.
    - UnresolvedConversionError only from ``CostBreakdown.require_complete``.

Arithmetic (per batch):
    materials = sum(line costs of resolved lines)
    labor     = rate * hours
    base      = materials + labor
    overhead  = base * overhead_pct
    waste     = base * waste_pct + sum(line_cost * waste_allowance_pct / 100)
    total     = base + overhead + waste
    unit_cost = total / batch_quantity   (0 when batch_quantity == 0)

Usage:
    from mfg_engines.rollup import CostRollupEngine

    engine = CostRollupEngine(markup_multiple=Decimal("4"), default_yield_pct=Decimal("100"))
    breakdown = engine.roll_up(formula, components, batch_quantity=Decimal("1000"))
    breakdown.unit_cost, breakdown.target_price, breakdown.unresolved
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from mfg_engines.component_cost import is_usable_operand, line_cost
from mfg_engines.pricing import PricingAnalyzer
from mfg_engines.tracer import traced_engine
from mfg_engines.units import ConversionFailure, UnitConverter
from mfg_engines.yield_adjust import apply_yield
from mfg_kernel.domain.dtos import ComponentMaster, Formula, FormulaLine, LaborInputs
from mfg_kernel.domain.values import (
    CONTENT_COST_QUANTUM,
    HUNDRED,
    ONE,
    ZERO,
    LineKind,
    UnitKind,
    normalize_unit,
    optional_decimal,
    require_decimal,
    round_currency,
    round_percent,
    round_quantity,
)
from mfg_kernel.exceptions import (
    ComponentNotFoundError,
    InvalidInputError,
    UnresolvedConversionError,
)
from mfg_kernel.logging_config import get_logger

logger = get_logger("engines.rollup")


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class LineCost:
    """A resolved, priced formula line."""

    line_id: str
    component_id: str
    component_name: str
    line_kind: LineKind
    quantity: Decimal
    unit: str
    base_unit: UnitKind
    base_quantity: Decimal
    yield_pct: Decimal
    adjusted_quantity: Decimal
    cost_per_base_unit: Decimal | None
    cost: Decimal
    waste_allowance: Decimal = ZERO
    phase: str | None = None

    @property
    def price_missing(self) -> bool:
        return not is_usable_operand(self.cost_per_base_unit)

    def rounded(self) -> LineCost:
        return replace(
            self,
            base_quantity=round_quantity(self.base_quantity),
            adjusted_quantity=round_quantity(self.adjusted_quantity),
            cost=round_currency(self.cost),
            waste_allowance=round_currency(self.waste_allowance),
        )


@dataclass(frozen=True)
class UnresolvedLine:
    """A formula line that could not be converted to its base unit."""

    line_id: str
    component_id: str
    component_name: str
    quantity: Decimal
    unit: str
    base_unit: UnitKind
    requires_density: bool
    reason: ConversionFailure | None


@dataclass(frozen=True)
class RollupTotals:
    """Full-precision batch totals behind a CostBreakdown."""

    ingredients: Decimal
    packaging: Decimal
    materials: Decimal
    labor: Decimal
    base: Decimal
    overhead: Decimal
    waste: Decimal
    total: Decimal
    unit_cost: Decimal
    batch_quantity: Decimal


@dataclass(frozen=True)
class CostBreakdown:
    """
    Presentation-ready roll-up result.

    Monetary fields are rounded to currency precision, percentages to one
    decimal place. ``totals`` keeps the unrounded figures. Built fresh on
    every call and never mutated.
    """

    formula_id: str | None
    materials: Decimal
    ingredients_subtotal: Decimal
    packaging_subtotal: Decimal
    labor: Decimal
    overhead: Decimal
    waste: Decimal
    total: Decimal
    unit_cost: Decimal
    target_price: Decimal
    gross_margin_pct: Decimal
    batch_quantity: Decimal
    markup_multiple: Decimal
    totals: RollupTotals
    cost_per_content_unit: Decimal | None = None
    lines: tuple[LineCost, ...] = ()
    unresolved: tuple[UnresolvedLine, ...] = ()
    missing_prices: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        """True when every line was converted and priced."""
        return not self.unresolved and not self.missing_prices

    @property
    def requires_density(self) -> tuple[str, ...]:
        return tuple(u.component_id for u in self.unresolved if u.requires_density)

    def require_complete(self) -> CostBreakdown:
        """Return self, or raise UnresolvedConversionError for unresolved lines."""
        if self.unresolved:
            raise UnresolvedConversionError(self.formula_id or "", list(self.unresolved))
        return self


# =============================================================================
# Engine
# =============================================================================


def _fraction(field: str, value: Any) -> Decimal | None:
    d = optional_decimal(field, value, minimum=ZERO)
    if d is not None and d > ONE:
        raise InvalidInputError(field, value, "must be a fraction between 0 and 1")
    return d


def _index_components(
    components: Mapping[str, ComponentMaster] | Iterable[ComponentMaster],
) -> Mapping[str, ComponentMaster]:
    if isinstance(components, Mapping):
        return components
    return {c.component_id: c for c in components}


class CostRollupEngine:
    """
    Pure cost roll-up calculator.

    Contract:
        ``markup_multiple`` and ``default_yield_pct`` come from the active
        configuration and are fixed for the lifetime of the engine.
        ``roll_up`` and ``calc_unit_cost`` take everything else as
        arguments.

    Guarantees:
        - Unresolved lines never abort the roll-up.
        - Line order in the result follows formula line order.

    Non-goals:
        Currency conversion, tax, persistence of results.
    """

    def __init__(
        self,
        markup_multiple: Any,
        default_yield_pct: Any,
        converter: UnitConverter | None = None,
    ):
        self._default_yield_pct = require_decimal(
            "default_yield_pct", default_yield_pct, minimum=ZERO, exclusive_minimum=True
        )
        self._pricing = PricingAnalyzer(markup_multiple)
        self._converter = converter or UnitConverter()

    @classmethod
    def from_config(cls, config: Any) -> CostRollupEngine:
        """Build from any object exposing the two costing options."""
        return cls(
            markup_multiple=config.markup_multiple,
            default_yield_pct=config.default_yield_pct,
        )

    @property
    def pricing(self) -> PricingAnalyzer:
        return self._pricing

    @property
    def default_yield_pct(self) -> Decimal:
        return self._default_yield_pct

    def effective_yield(self, formula: Formula, line: FormulaLine) -> Decimal | None:
        """
        Yield for ``line``: its own, else the formula process yield for
        ingredient lines, else None (the configured default applies).
        """
        if line.yield_pct is not None and line.yield_pct > 0:
            return line.yield_pct
        if line.line_kind == LineKind.INGREDIENT and formula.process_yield_pct is not None:
            return formula.process_yield_pct
        return None

    @traced_engine(
        "rollup",
        "1.0",
        fingerprint_fields=("formula", "batch_quantity", "labor", "overhead_pct", "waste_pct"),
    )
    def roll_up(
        self,
        formula: Formula,
        components: Mapping[str, ComponentMaster] | Iterable[ComponentMaster],
        batch_quantity: Any,
        labor: LaborInputs | None = None,
        overhead_pct: Any = None,
        waste_pct: Any = None,
    ) -> CostBreakdown:
        """
        Roll a formula up into a CostBreakdown.

        Args:
            formula: Validated formula.
            components: Component master data keyed by id (or an iterable).
            batch_quantity: Finished units produced by one batch.
            labor: Overrides the formula's labor fields.
            overhead_pct: Overrides ``formula.overhead_pct`` (fraction).
            waste_pct: Overrides ``formula.waste_pct`` (fraction).
        """
        t0 = time.monotonic()
        batch = require_decimal("batch_quantity", batch_quantity, minimum=ZERO)
        overhead_rate = _fraction("overhead_pct", overhead_pct)
        if overhead_rate is None:
            overhead_rate = formula.overhead_pct or ZERO
        waste_rate = _fraction("waste_pct", waste_pct)
        if waste_rate is None:
            waste_rate = formula.waste_pct or ZERO
        labor_inputs = labor or formula.labor_inputs() or LaborInputs()

        index = _index_components(components)
        for line in formula.lines:
            if line.component_ref not in index:
                logger.error("rollup_component_not_found", extra={
                    "formula_id": formula.formula_id,
                    "line_id": line.line_id,
                    "component_id": line.component_ref,
                })
                raise ComponentNotFoundError(line.component_ref, line.line_id)

        logger.info("rollup_started", extra={
            "formula_id": formula.formula_id,
            "formula_version": formula.version,
            "line_count": len(formula.lines),
            "batch_quantity": str(batch),
        })

        priced: list[LineCost] = []
        unresolved: list[UnresolvedLine] = []
        missing: dict[str, None] = {}

        for line in formula.lines:
            component = index[line.component_ref]
            conversion = self._converter.convert(
                line.quantity, line.unit, component.base_unit, density=component.density
            )
            if not conversion.is_resolved:
                logger.warning("rollup_line_unresolved", extra={
                    "formula_id": formula.formula_id,
                    "line_id": line.line_id,
                    "component_id": component.component_id,
                    "unit": line.unit,
                    "base_unit": component.base_unit.value,
                    "requires_density": conversion.requires_density,
                })
                unresolved.append(UnresolvedLine(
                    line_id=line.line_id,
                    component_id=component.component_id,
                    component_name=component.display_name,
                    quantity=line.quantity,
                    unit=line.unit,
                    base_unit=component.base_unit,
                    requires_density=conversion.requires_density,
                    reason=conversion.reason,
                ))
                continue

            yield_pct = self.effective_yield(formula, line)
            adjusted = apply_yield(
                conversion.quantity, yield_pct, default_yield_pct=self._default_yield_pct
            )
            if not is_usable_operand(component.cost_per_base_unit):
                missing.setdefault(component.component_id, None)
            cost = line_cost(adjusted, component.cost_per_base_unit)
            allowance = ZERO
            if line.waste_allowance_pct:
                allowance = cost * line.waste_allowance_pct / HUNDRED

            priced.append(LineCost(
                line_id=line.line_id,
                component_id=component.component_id,
                component_name=component.display_name,
                line_kind=line.line_kind,
                quantity=line.quantity,
                unit=line.unit,
                base_unit=component.base_unit,
                base_quantity=conversion.quantity,
                yield_pct=yield_pct if yield_pct is not None else self._default_yield_pct,
                adjusted_quantity=adjusted,
                cost_per_base_unit=component.cost_per_base_unit,
                cost=cost,
                waste_allowance=allowance,
                phase=line.phase,
            ))

        ingredients = sum(
            (lc.cost for lc in priced if lc.line_kind == LineKind.INGREDIENT), ZERO
        )
        packaging = sum(
            (lc.cost for lc in priced if lc.line_kind == LineKind.PACKAGING), ZERO
        )
        line_waste = sum((lc.waste_allowance for lc in priced), ZERO)

        totals = self._totals(
            ingredients=ingredients,
            packaging=packaging,
            labor=labor_inputs.cost,
            overhead_pct=overhead_rate,
            waste_pct=waste_rate,
            batch=batch,
            line_waste=line_waste,
        )
        breakdown = self._present(
            formula_id=formula.formula_id,
            totals=totals,
            lines=tuple(lc.rounded() for lc in priced),
            unresolved=tuple(unresolved),
            missing_prices=tuple(missing),
            unit_size_value=formula.unit_size_value,
            unit_size_unit=formula.unit_size_unit,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("rollup_completed", extra={
            "formula_id": formula.formula_id,
            "total": str(breakdown.total),
            "unit_cost": str(breakdown.unit_cost),
            "unresolved_count": len(unresolved),
            "missing_price_count": len(missing),
            "duration_ms": duration_ms,
        })
        return breakdown

    @traced_engine(
        "rollup",
        "1.0",
        fingerprint_fields=(
            "ingredients_cost",
            "packaging_cost",
            "labor_rate",
            "labor_hours",
            "overhead_pct",
            "waste_pct",
            "batch_qty",
        ),
    )
    def calc_unit_cost(
        self,
        *,
        ingredients_cost: Any,
        packaging_cost: Any = ZERO,
        labor_rate: Any = ZERO,
        labor_hours: Any = ZERO,
        overhead_pct: Any = ZERO,
        waste_pct: Any = ZERO,
        batch_qty: Any,
    ) -> CostBreakdown:
        """
        Same arithmetic as ``roll_up`` from precomputed material subtotals.

        Used for quick estimates where no line-level formula exists.
        """
        ingredients = require_decimal("ingredients_cost", ingredients_cost, minimum=ZERO)
        packaging = require_decimal("packaging_cost", packaging_cost, minimum=ZERO)
        labor = LaborInputs(rate=labor_rate, hours=labor_hours)
        batch = require_decimal("batch_qty", batch_qty, minimum=ZERO)

        logger.info("unit_cost_estimate_started", extra={
            "ingredients_cost": str(ingredients),
            "packaging_cost": str(packaging),
            "batch_qty": str(batch),
        })

        totals = self._totals(
            ingredients=ingredients,
            packaging=packaging,
            labor=labor.cost,
            overhead_pct=_fraction("overhead_pct", overhead_pct) or ZERO,
            waste_pct=_fraction("waste_pct", waste_pct) or ZERO,
            batch=batch,
        )
        breakdown = self._present(formula_id=None, totals=totals)

        logger.info("unit_cost_estimate_completed", extra={
            "total": str(breakdown.total),
            "unit_cost": str(breakdown.unit_cost),
        })
        return breakdown

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _totals(
        *,
        ingredients: Decimal,
        packaging: Decimal,
        labor: Decimal,
        overhead_pct: Decimal,
        waste_pct: Decimal,
        batch: Decimal,
        line_waste: Decimal = ZERO,
    ) -> RollupTotals:
        materials = ingredients + packaging
        base = materials + labor
        overhead = base * overhead_pct
        waste = base * waste_pct + line_waste
        total = base + overhead + waste
        unit_cost = total / batch if batch > 0 else ZERO
        return RollupTotals(
            ingredients=ingredients,
            packaging=packaging,
            materials=materials,
            labor=labor,
            base=base,
            overhead=overhead,
            waste=waste,
            total=total,
            unit_cost=unit_cost,
            batch_quantity=batch,
        )

    def _present(
        self,
        *,
        formula_id: str | None,
        totals: RollupTotals,
        lines: tuple[LineCost, ...] = (),
        unresolved: tuple[UnresolvedLine, ...] = (),
        missing_prices: tuple[str, ...] = (),
        unit_size_value: Decimal | None = None,
        unit_size_unit: str | None = None,
    ) -> CostBreakdown:
        unit_cost = round_currency(totals.unit_cost)
        # Price from the presented unit cost so price = displayed cost x markup.
        pricing = self._pricing.analyze(unit_cost).rounded()

        content_cost = None
        if unit_size_value and normalize_unit(unit_size_unit) in (UnitKind.MASS, UnitKind.VOLUME):
            content_cost = (totals.unit_cost / unit_size_value).quantize(
                CONTENT_COST_QUANTUM, rounding=ROUND_HALF_UP
            )

        return CostBreakdown(
            formula_id=formula_id,
            materials=round_currency(totals.materials),
            ingredients_subtotal=round_currency(totals.ingredients),
            packaging_subtotal=round_currency(totals.packaging),
            labor=round_currency(totals.labor),
            overhead=round_currency(totals.overhead),
            waste=round_currency(totals.waste),
            total=round_currency(totals.total),
            unit_cost=unit_cost,
            target_price=pricing.target_price,
            gross_margin_pct=round_percent(pricing.gross_margin_pct),
            batch_quantity=totals.batch_quantity,
            markup_multiple=self._pricing.markup_multiple,
            totals=totals,
            cost_per_content_unit=content_cost,
            lines=lines,
            unresolved=unresolved,
            missing_prices=missing_prices,
        )
