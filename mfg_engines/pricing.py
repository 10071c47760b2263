"""
mfg_engines.pricing -- Target price, margin, and break-even analysis.

Responsibility:
    Derive a selling price from a unit cost (markup multiple or explicit
    price) and report gross margin, contribution margin after channel fees,
    and the number of units needed to recover fixed costs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by CostRollupEngine (target price on every breakdown) and by
    CostingService for stand-alone price checks.

Invariants enforced:
    - Markup and explicit price are mutually exclusive. When neither is
      supplied the configured markup multiple applies; the analyzer never
      falls back to a module-level default.
    - Zero or negative price gives a 0 margin, never a division error.
    - Break-even with a non-positive contribution margin is
      BREAK_EVEN_UNREACHABLE (Decimal Infinity), never NaN and never a
      large finite number.

Failure modes:
    - InvalidInputError for non-finite or negative inputs, channel fees
      outside 0-100, or both markup and explicit price supplied.

Usage:
    from mfg_engines.pricing import PricingAnalyzer

    analyzer = PricingAnalyzer(markup_multiple=Decimal("4"))
    result = analyzer.analyze(Decimal("0.35"), fixed_costs=Decimal("1000"))
    result.target_price        # Decimal("1.40")
    result.rounded().gross_margin_pct  # Decimal("75.0")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Any

from mfg_engines.tracer import traced_engine
from mfg_kernel.domain.values import (
    HUNDRED,
    ZERO,
    optional_decimal,
    require_decimal,
    round_currency,
    round_percent,
)
from mfg_kernel.exceptions import InvalidInputError
from mfg_kernel.logging_config import get_logger

logger = get_logger("engines.pricing")

BREAK_EVEN_UNREACHABLE = Decimal("Infinity")


def gross_margin_pct(price: Decimal, unit_cost: Decimal) -> Decimal:
    """``(price - cost) / price * 100``; 0 when price is not positive."""
    if price <= 0:
        return ZERO
    return (price - unit_cost) / price * HUNDRED


def break_even_units(fixed_costs: Decimal, contribution_margin: Decimal) -> Decimal:
    """Whole units needed to recover ``fixed_costs`` (rounded up)."""
    if contribution_margin <= 0:
        return BREAK_EVEN_UNREACHABLE
    return (fixed_costs / contribution_margin).to_integral_value(rounding=ROUND_CEILING)


@dataclass(frozen=True)
class PricingResult:
    """Full-precision pricing figures for one unit cost."""

    unit_cost: Decimal
    target_price: Decimal
    gross_margin_pct: Decimal
    channel_fees: Decimal
    contribution_margin: Decimal
    contribution_margin_pct: Decimal
    fixed_costs: Decimal
    break_even_units: Decimal
    break_even_revenue: Decimal
    markup_multiple: Decimal | None = None

    @property
    def break_even_reachable(self) -> bool:
        return self.break_even_units.is_finite()

    def rounded(self) -> PricingResult:
        """Presentation copy: currency 2 dp, percentages 1 dp."""

        def money(value: Decimal) -> Decimal:
            return round_currency(value) if value.is_finite() else value

        return PricingResult(
            unit_cost=money(self.unit_cost),
            target_price=money(self.target_price),
            gross_margin_pct=round_percent(self.gross_margin_pct),
            channel_fees=money(self.channel_fees),
            contribution_margin=money(self.contribution_margin),
            contribution_margin_pct=round_percent(self.contribution_margin_pct),
            fixed_costs=money(self.fixed_costs),
            break_even_units=self.break_even_units,
            break_even_revenue=money(self.break_even_revenue),
            markup_multiple=self.markup_multiple,
        )


class PricingAnalyzer:
    """
    Pure pricing calculator.

    Contract:
        ``markup_multiple`` is supplied by configuration when the analyzer
        is built; each call may override it or supply an explicit price.

    Non-goals:
        Tax, currency conversion, tiered or volume pricing.
    """

    def __init__(self, markup_multiple: Any):
        self._markup_multiple = require_decimal(
            "markup_multiple", markup_multiple, minimum=ZERO
        )

    @property
    def markup_multiple(self) -> Decimal:
        return self._markup_multiple

    def resolve_price(
        self,
        unit_cost: Decimal,
        markup_multiple: Any = None,
        explicit_price: Any = None,
    ) -> tuple[Decimal, Decimal | None]:
        """Return ``(price, markup_used)``; markup is None for explicit prices."""
        if markup_multiple is not None and explicit_price is not None:
            raise InvalidInputError(
                "explicit_price",
                explicit_price,
                "cannot be combined with markup_multiple",
            )
        if explicit_price is not None:
            return require_decimal("explicit_price", explicit_price, minimum=ZERO), None
        markup = optional_decimal("markup_multiple", markup_multiple, minimum=ZERO)
        if markup is None:
            markup = self._markup_multiple
        return unit_cost * markup, markup

    @traced_engine(
        "pricing",
        "1.0",
        fingerprint_fields=("markup_multiple", "explicit_price", "fixed_costs", "channel_fees_pct"),
    )
    def analyze(
        self,
        unit_cost: Any,
        *,
        markup_multiple: Any = None,
        explicit_price: Any = None,
        fixed_costs: Any = None,
        channel_fees_pct: Any = None,
    ) -> PricingResult:
        """
        Price one unit and compute its break-even point.

        Args:
            unit_cost: Cost of one finished unit.
            markup_multiple: Overrides the configured multiple.
            explicit_price: Selling price; excludes ``markup_multiple``.
            fixed_costs: Costs to recover before profit (default 0).
            channel_fees_pct: Marketplace / distributor fee as 0-100.
        """
        cost = require_decimal("unit_cost", unit_cost, minimum=ZERO)
        fixed = optional_decimal("fixed_costs", fixed_costs, minimum=ZERO) or ZERO
        fees_pct = optional_decimal("channel_fees_pct", channel_fees_pct, minimum=ZERO) or ZERO
        if fees_pct > HUNDRED:
            raise InvalidInputError("channel_fees_pct", channel_fees_pct, "must not exceed 100")

        price, markup = self.resolve_price(cost, markup_multiple, explicit_price)

        logger.info("pricing_analysis_started", extra={
            "unit_cost": str(cost),
            "price": str(price),
            "explicit_price": explicit_price is not None,
        })

        channel_fees = price * fees_pct / HUNDRED
        contribution = price - cost - channel_fees
        contribution_pct = contribution / price * HUNDRED if price > 0 else ZERO
        units = break_even_units(fixed, contribution)
        if units.is_finite():
            revenue = units * price
        else:
            revenue = BREAK_EVEN_UNREACHABLE
            logger.warning("pricing_break_even_unreachable", extra={
                "price": str(price),
                "unit_cost": str(cost),
                "contribution_margin": str(contribution),
            })

        result = PricingResult(
            unit_cost=cost,
            target_price=price,
            gross_margin_pct=gross_margin_pct(price, cost),
            channel_fees=channel_fees,
            contribution_margin=contribution,
            contribution_margin_pct=contribution_pct,
            fixed_costs=fixed,
            break_even_units=units,
            break_even_revenue=revenue,
            markup_multiple=markup,
        )

        logger.info("pricing_analysis_completed", extra={
            "target_price": str(price),
            "gross_margin_pct": str(result.gross_margin_pct),
            "break_even_units": str(units),
        })
        return result
