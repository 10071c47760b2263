"""
mfg_engines.units -- Conversion of line quantities to a component's base unit.

Responsibility:
    Normalize unit tokens to one of three base kinds (mass, volume, count)
    and convert a quantity into the kind a component is priced in, using
    the component's density for mass <-> volume.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by CostRollupEngine once per formula line.

Invariants enforced:
    - Same kind is a no-op: the quantity is returned unchanged, never
      rescaled.
    - Fail closed: mass <-> volume without a density > 0 yields
      ``quantity=None, requires_density=True``. No default density is ever
      assumed.
    - Count never converts to or from mass/volume.

Failure modes:
    None raised. Every failure is expressed in the ConversionResult so a
    roll-up can keep going and report the line.

Usage:
    from mfg_engines.units import UnitConverter

    result = UnitConverter().convert(Decimal("500"), "g", "ml", density=Decimal("0.92"))
    if result.requires_density:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from mfg_kernel.domain.values import UnitKind, normalize_unit, to_decimal
from mfg_kernel.logging_config import get_logger

logger = get_logger("engines.units")


class ConversionFailure(str, Enum):
    """Why a conversion produced no quantity."""

    INVALID_QUANTITY = "invalid_quantity"
    UNRECOGNIZED_UNIT = "unrecognized_unit"
    REQUIRES_DENSITY = "requires_density"
    INCOMPATIBLE_KINDS = "incompatible_kinds"


@dataclass(frozen=True)
class ConversionResult:
    """
    Outcome of a single conversion.

    ``quantity`` is None whenever the conversion could not be performed;
    ``requires_density`` is True only for the mass/volume case with a
    missing or non-positive density.
    """

    quantity: Decimal | None
    requires_density: bool = False
    reason: ConversionFailure | None = None

    @property
    def is_resolved(self) -> bool:
        return self.quantity is not None


class UnitConverter:
    """
    Pure converter between mass, volume and count bases.

    Contract:
        No I/O, fully deterministic, no configuration. Density is grams per
        millilitre and always comes from the component being priced.
    """

    def convert(
        self,
        quantity: Any,
        from_unit: str | UnitKind | None,
        to_base_unit: str | UnitKind | None,
        density: Any = None,
    ) -> ConversionResult:
        """
        Convert ``quantity`` expressed in ``from_unit`` to ``to_base_unit``.

        Postconditions:
            - same kind: quantity unchanged
            - mass -> volume: quantity / density
            - volume -> mass: quantity * density
            - anything involving count across kinds: unsupported
        """
        qty = to_decimal(quantity)
        if qty is None or not qty.is_finite():
            return ConversionResult(None, False, ConversionFailure.INVALID_QUANTITY)

        source = normalize_unit(from_unit)
        target = normalize_unit(to_base_unit)
        if source is None or target is None:
            logger.debug("unit_unrecognized", extra={
                "from_unit": str(from_unit),
                "to_base_unit": str(to_base_unit),
            })
            return ConversionResult(None, False, ConversionFailure.UNRECOGNIZED_UNIT)

        if source == target:
            return ConversionResult(qty)

        if UnitKind.COUNT in (source, target):
            return ConversionResult(None, False, ConversionFailure.INCOMPATIBLE_KINDS)

        d = to_decimal(density)
        if d is None or not d.is_finite() or d <= 0:
            logger.debug("unit_conversion_requires_density", extra={
                "from_kind": source.value,
                "to_kind": target.value,
                "density": str(density),
            })
            return ConversionResult(None, True, ConversionFailure.REQUIRES_DENSITY)

        if source == UnitKind.MASS:
            return ConversionResult(qty / d)
        return ConversionResult(qty * d)
