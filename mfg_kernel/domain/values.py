"""
Values -- Decimal coercion, unit kinds, and presentation rounding.

Responsibility:
    Provides the primitive vocabulary shared by every engine: the three
    base-unit kinds, safe Decimal coercion for values arriving from
    collaborators, and the single place where presentation rounding is
    defined.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by dtos, engines, and services. No outward dependencies.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str()`` so
      0.1 becomes Decimal("0.1"), never the binary expansion.
    - Rounding is ROUND_HALF_UP and happens only through the ``round_*``
      helpers; engines carry full precision between steps.

Failure modes:
    - ``to_decimal`` returns None for None/bool/unparseable input;
      ``require_decimal`` raises InvalidInputError instead.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from mfg_kernel.exceptions import InvalidInputError

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

# Presentation precision
CURRENCY_QUANTUM = Decimal("0.01")
PERCENT_QUANTUM = Decimal("0.1")
QUANTITY_QUANTUM = Decimal("0.000001")
CONTENT_COST_QUANTUM = Decimal("0.001")


class UnitKind(str, Enum):
    """Base kind a unit token normalizes to."""

    MASS = "mass"
    VOLUME = "volume"
    COUNT = "count"


UNIT_SYNONYMS: dict[str, UnitKind] = {
    "g": UnitKind.MASS,
    "gram": UnitKind.MASS,
    "grams": UnitKind.MASS,
    "ml": UnitKind.VOLUME,
    "milliliter": UnitKind.VOLUME,
    "milliliters": UnitKind.VOLUME,
    "millilitre": UnitKind.VOLUME,
    "millilitres": UnitKind.VOLUME,
    "each": UnitKind.COUNT,
    "ea": UnitKind.COUNT,
    "unit": UnitKind.COUNT,
    "units": UnitKind.COUNT,
}


def normalize_unit(unit: str | UnitKind | None) -> UnitKind | None:
    """
    Normalize a unit token to its base kind.

    Case-insensitive and whitespace-trimmed. Kind names themselves
    ("mass", "volume", "count") are accepted. Returns None for unknown
    tokens; no scale factor is ever implied (kg is not a synonym of g).
    """
    if unit is None:
        return None
    if isinstance(unit, UnitKind):
        return unit
    token = str(unit).strip().lower()
    if not token:
        return None
    kind = UNIT_SYNONYMS.get(token)
    if kind is not None:
        return kind
    try:
        return UnitKind(token)
    except ValueError:
        return None


class LineKind(str, Enum):
    """Whether a bill-of-materials line is an ingredient or packaging."""

    INGREDIENT = "ingredient"
    PACKAGING = "packaging"


def to_decimal(value: Any) -> Decimal | None:
    """
    Coerce a collaborator-supplied number to Decimal.

    Returns None for None, booleans, and values that do not parse. Non-finite
    values (NaN, Infinity) are returned as Decimal so callers can decide
    how to treat them.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        if isinstance(value, int):
            return Decimal(value)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            return Decimal(stripped)
    except (InvalidOperation, ValueError):
        return None
    return None


def require_decimal(
    field: str,
    value: Any,
    *,
    minimum: Decimal | None = None,
    exclusive_minimum: bool = False,
) -> Decimal:
    """
    Coerce ``value`` to a finite Decimal or raise InvalidInputError.

    Args:
        field: Name reported in the error.
        value: Raw input.
        minimum: Optional lower bound.
        exclusive_minimum: When True the bound itself is rejected.
    """
    d = to_decimal(value)
    if d is None:
        raise InvalidInputError(field, value, "a number is required")
    if not d.is_finite():
        raise InvalidInputError(field, value, "must be a finite number")
    if minimum is not None:
        if exclusive_minimum and d <= minimum:
            raise InvalidInputError(field, value, f"must be greater than {minimum}")
        if not exclusive_minimum and d < minimum:
            raise InvalidInputError(field, value, f"must be at least {minimum}")
    return d


def optional_decimal(
    field: str,
    value: Any,
    *,
    minimum: Decimal | None = None,
    exclusive_minimum: bool = False,
) -> Decimal | None:
    """Like ``require_decimal`` but None passes through."""
    if value is None:
        return None
    return require_decimal(
        field, value, minimum=minimum, exclusive_minimum=exclusive_minimum
    )


def round_currency(value: Decimal) -> Decimal:
    """Round to currency precision (2 dp, half up)."""
    return value.quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    """Round a percentage to one decimal place."""
    return value.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def round_quantity(value: Decimal) -> Decimal:
    """Round a base-unit quantity for display (6 dp)."""
    return value.quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP)
