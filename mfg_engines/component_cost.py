"""
mfg_engines.component_cost -- Prices per base unit and per bill-of-materials line.

``line_cost`` is plain multiplication of the yield-adjusted base quantity
by the component's cost per base unit. A missing or non-finite operand is
priced as 0 so one bad line cannot turn the batch total into NaN; callers
use ``is_usable_operand`` to flag the line instead of hiding it.

``cost_per_base_unit`` derives that per-unit price from a supplier pack
(price and pack size), and ``amortize`` spreads a one-off cost such as a
mould or a label plate over a number of units.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from mfg_engines.units import UnitConverter
from mfg_kernel.domain.values import ZERO, UnitKind, to_decimal
from mfg_kernel.logging_config import get_logger

logger = get_logger("engines.component_cost")


def is_usable_operand(value: Any) -> bool:
    """True when ``value`` is a finite number."""
    d = to_decimal(value)
    return d is not None and d.is_finite()


def _positive(value: Any) -> Decimal | None:
    d = to_decimal(value)
    if d is None or not d.is_finite() or d <= 0:
        return None
    return d


def line_cost(adjusted_base_qty: Any, cost_per_base_unit: Any) -> Decimal:
    """Return ``adjusted_base_qty * cost_per_base_unit`` at full precision."""
    qty = to_decimal(adjusted_base_qty)
    cost = to_decimal(cost_per_base_unit)
    if qty is None or not qty.is_finite():
        qty = ZERO
    if cost is None or not cost.is_finite():
        cost = ZERO
    return qty * cost


def cost_per_base_unit(
    pack_price: Any,
    pack_size_value: Any,
    pack_size_unit: str,
    base_unit: UnitKind | str,
    density: Any = None,
    converter: UnitConverter | None = None,
) -> Decimal | None:
    """
    Price of one base unit bought in a pack of ``pack_size_value pack_size_unit``.

    Returns 0 when the price or the pack size is not a positive number.
    Returns None when the pack size cannot be expressed in ``base_unit``
    (a volume pack for a mass-priced component without a density, or a
    count pack for a weighed one); the component then stays unpriced.
    """
    price = _positive(pack_price)
    size = _positive(pack_size_value)
    if price is None or size is None:
        return ZERO

    result = (converter or UnitConverter()).convert(
        size, pack_size_unit, base_unit, density=density
    )
    if not result.is_resolved:
        logger.info("pack_size_unconvertible", extra={
            "pack_size_value": str(size),
            "pack_size_unit": pack_size_unit,
            "base_unit": str(getattr(base_unit, "value", base_unit)),
            "requires_density": result.requires_density,
        })
        return None
    if result.quantity == 0:
        return ZERO
    return price / result.quantity


def amortize(value: Any, units: Any) -> Decimal:
    """``value / units``; 0 when either is missing or not positive."""
    amount = _positive(value)
    count = _positive(units)
    if amount is None or count is None:
        return ZERO
    return amount / count
