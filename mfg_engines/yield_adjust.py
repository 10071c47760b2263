"""
mfg_engines.yield_adjust -- Inflate required input for expected process loss.

Formula: adjusted = base_qty / (yield_pct / 100)

A yield below 100 increases the required input; above 100 (over-recovery)
decreases it. Neither direction is clamped. An absent or non-positive yield
falls back to the configured default so a misconfigured "0% yield" never
produces an infinite requirement.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from mfg_kernel.domain.values import HUNDRED, require_decimal, to_decimal
from mfg_kernel.exceptions import InvalidInputError


def apply_yield(
    base_qty: Any,
    yield_pct: Any = None,
    *,
    default_yield_pct: Decimal = HUNDRED,
) -> Decimal:
    """
    Return the input quantity needed so that ``base_qty`` survives processing.

    Raises:
        InvalidInputError: if ``base_qty`` is not a finite number, or the
            yield is not a finite number after defaulting.
    """
    qty = require_decimal("base_qty", base_qty)

    pct = to_decimal(yield_pct)
    if yield_pct is not None and pct is None:
        raise InvalidInputError("yield_pct", yield_pct, "must be a number")
    if pct is not None and not pct.is_finite():
        raise InvalidInputError("yield_pct", yield_pct, "must be a finite number")
    if pct is None or pct <= 0:
        pct = require_decimal("default_yield_pct", default_yield_pct)
        if pct <= 0:
            raise InvalidInputError("default_yield_pct", default_yield_pct, "must be positive")

    if pct == HUNDRED:
        return qty
    return qty / (pct / HUNDRED)
