"""
DTOs -- Boundary data transfer objects for costing and weighing.

Responsibility:
    Defines the immutable, validated structures that flow from the record
    collaborators into the engines: ComponentMaster, FormulaLine, Formula,
    LaborInputs (costing side) and ContainerSnapshot,
    WeightMeasurementRecord (weighing side).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_record()`` class methods turn untyped mappings (rows, JSON
    payloads) into typed DTOs; ``from_model()`` class methods convert ORM
    rows and are only invoked from the service/selector layer.

Invariants enforced:
    - Every numeric field is a Decimal (never float) once constructed.
    - Quantities > 0, costs >= 0, densities > 0, percentages in range.
    - Unknown base units on a ComponentMaster are rejected here, so engines
      never see an unknown shape.
    - Line units stay raw tokens: an unrecognized line unit is a per-line
      "cannot price yet" condition reported by the roll-up, not a reason to
      reject the whole formula.

Failure modes:
    - InvalidInputError on any field that fails validation.

Data flow:
    raw record -> from_record() -> DTO -> engine -> CostBreakdown / WeightCapture
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from mfg_kernel.domain.values import (
    HUNDRED,
    ONE,
    ZERO,
    LineKind,
    UnitKind,
    normalize_unit,
    optional_decimal,
    require_decimal,
)
from mfg_kernel.exceptions import InvalidInputError

if TYPE_CHECKING:
    from mfg_kernel.models.container import ContainerModel
    from mfg_kernel.models.weight_measurement import WeightMeasurementModel


# =============================================================================
# Enumerations
# =============================================================================


class FormulaStatus(str, Enum):
    """Formula lifecycle (owned by the collaborator, informational here)."""

    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class ContainerStatus(str, Enum):
    """Physical container lifecycle status."""

    ACTIVE = "active"
    BACKSTOCK = "backstock"
    QUARANTINE = "quarantine"
    EMPTY = "empty"
    ARCHIVED = "archived"


class MeasurementType(str, Enum):
    """Why a weight was captured."""

    INVENTORY_COUNT = "inventory_count"
    PRODUCTION_USE = "production_use"
    ADJUSTMENT = "adjustment"
    REFILL = "refill"
    INITIAL_SETUP = "initial_setup"


def _require_text(field_name: str, value: Any) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputError(field_name, value, "a non-empty value is required")
    return str(value).strip()


def _coerce_enum(enum_cls: type[Enum], field_name: str, value: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInputError(field_name, value, f"must be one of: {allowed}") from None


def _percent(field_name: str, value: Any, *, upper: Decimal | None) -> Decimal | None:
    d = optional_decimal(field_name, value, minimum=ZERO)
    if d is not None and upper is not None and d > upper:
        raise InvalidInputError(field_name, value, f"must not exceed {upper}")
    return d


# =============================================================================
# Costing DTOs
# =============================================================================


@dataclass(frozen=True)
class ComponentMaster:
    """
    Inventory item as seen by the costing engine (read-only input).

    Contract:
        ``cost_per_base_unit`` is the price of one base unit (one gram, one
        millilitre, one each). None means the price has not been entered
        yet; the roll-up prices such lines at 0 and flags them.
        ``density`` is grams per millilitre. Zero or negative densities are
        stored as None.
    """

    component_id: str
    base_unit: UnitKind
    cost_per_base_unit: Decimal | None = None
    density: Decimal | None = None
    name: str | None = None
    kind: LineKind = LineKind.INGREDIENT

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "component_id", _require_text("component_id", self.component_id)
        )
        kind = normalize_unit(self.base_unit)
        if kind is None:
            raise InvalidInputError("base_unit", self.base_unit, "unrecognized unit")
        object.__setattr__(self, "base_unit", kind)
        object.__setattr__(
            self,
            "cost_per_base_unit",
            optional_decimal("cost_per_base_unit", self.cost_per_base_unit, minimum=ZERO),
        )
        # Non-positive density counts as absent.
        density = optional_decimal("density", self.density)
        if density is not None and density <= 0:
            density = None
        object.__setattr__(self, "density", density)
        object.__setattr__(self, "kind", _coerce_enum(LineKind, "kind", self.kind))

    @property
    def display_name(self) -> str:
        return self.name or self.component_id

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> ComponentMaster:
        """Build from an inventory row (``id`` or ``component_id`` key)."""
        return cls(
            component_id=record.get("component_id", record.get("id")),
            base_unit=record.get("base_unit"),
            cost_per_base_unit=record.get("cost_per_base_unit"),
            density=record.get("density", record.get("density_g_per_ml")),
            name=record.get("name"),
            kind=record.get("kind") or LineKind.INGREDIENT,
        )


@dataclass(frozen=True)
class FormulaLine:
    """
    One bill-of-materials line.

    ``yield_pct`` None means "inherit" (formula process yield for
    ingredient lines, then the configured default). ``waste_allowance_pct``
    is a per-line percentage added to the waste bucket.
    """

    line_id: str
    component_ref: str
    quantity: Decimal
    unit: str
    yield_pct: Decimal | None = None
    waste_allowance_pct: Decimal | None = None
    line_kind: LineKind = LineKind.INGREDIENT
    phase: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "line_id", _require_text("line_id", self.line_id))
        object.__setattr__(
            self, "component_ref", _require_text("component_ref", self.component_ref)
        )
        object.__setattr__(
            self,
            "quantity",
            require_decimal("quantity", self.quantity, minimum=ZERO, exclusive_minimum=True),
        )
        object.__setattr__(self, "unit", _require_text("unit", self.unit))
        # Yield <= 0 is accepted and later treated as the default; only
        # non-numeric or non-finite yields are rejected.
        if self.yield_pct is not None:
            object.__setattr__(
                self, "yield_pct", require_decimal("yield_pct", self.yield_pct)
            )
        object.__setattr__(
            self,
            "waste_allowance_pct",
            _percent("waste_allowance_pct", self.waste_allowance_pct, upper=HUNDRED),
        )
        object.__setattr__(
            self, "line_kind", _coerce_enum(LineKind, "line_kind", self.line_kind)
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> FormulaLine:
        return cls(
            line_id=record.get("line_id", record.get("id")),
            component_ref=record.get("component_ref", record.get("component_id")),
            quantity=record.get("quantity", record.get("qty_value")),
            unit=record.get("unit", record.get("qty_unit")),
            yield_pct=record.get("yield_pct"),
            waste_allowance_pct=record.get("waste_allowance_pct"),
            line_kind=record.get("line_kind") or LineKind.INGREDIENT,
            phase=record.get("phase"),
        )


@dataclass(frozen=True)
class LaborInputs:
    """Labor rate (per hour) and hours spent on one batch."""

    rate: Decimal = ZERO
    hours: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", require_decimal("labor_rate", self.rate, minimum=ZERO))
        object.__setattr__(self, "hours", require_decimal("labor_hours", self.hours, minimum=ZERO))

    @property
    def cost(self) -> Decimal:
        return self.rate * self.hours


@dataclass(frozen=True)
class Formula:
    """
    A versioned bill of materials.

    ``overhead_pct`` and ``waste_pct`` are fractions (0.15 = 15%).
    ``process_yield_pct`` and line yields are percentages (95 = 95%).
    """

    formula_id: str
    lines: tuple[FormulaLine, ...] = ()
    name: str | None = None
    version: str = "1"
    status: FormulaStatus = FormulaStatus.DRAFT
    labor_rate: Decimal | None = None
    labor_hours: Decimal | None = None
    overhead_pct: Decimal | None = None
    waste_pct: Decimal | None = None
    process_yield_pct: Decimal | None = None
    unit_size_value: Decimal | None = None
    unit_size_unit: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "formula_id", _require_text("formula_id", self.formula_id))
        object.__setattr__(self, "lines", tuple(self.lines))
        for line in self.lines:
            if not isinstance(line, FormulaLine):
                raise InvalidInputError("lines", line, "must contain FormulaLine records")
        object.__setattr__(self, "status", _coerce_enum(FormulaStatus, "status", self.status))
        object.__setattr__(
            self, "labor_rate", optional_decimal("labor_rate", self.labor_rate, minimum=ZERO)
        )
        object.__setattr__(
            self, "labor_hours", optional_decimal("labor_hours", self.labor_hours, minimum=ZERO)
        )
        object.__setattr__(
            self, "overhead_pct", _percent("overhead_pct", self.overhead_pct, upper=ONE)
        )
        object.__setattr__(self, "waste_pct", _percent("waste_pct", self.waste_pct, upper=ONE))
        if self.process_yield_pct is not None:
            object.__setattr__(
                self,
                "process_yield_pct",
                require_decimal("process_yield_pct", self.process_yield_pct),
            )
        object.__setattr__(
            self,
            "unit_size_value",
            optional_decimal(
                "unit_size_value", self.unit_size_value, minimum=ZERO, exclusive_minimum=True
            ),
        )

    @property
    def component_refs(self) -> list[str]:
        """Distinct component ids in line order."""
        seen: dict[str, None] = {}
        for line in self.lines:
            seen.setdefault(line.component_ref, None)
        return list(seen)

    def labor_inputs(self) -> LaborInputs | None:
        if self.labor_rate is None and self.labor_hours is None:
            return None
        return LaborInputs(rate=self.labor_rate or ZERO, hours=self.labor_hours or ZERO)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Formula:
        """Build from a formula row whose ``lines`` hold line mappings."""
        raw_lines = record.get("lines") or ()
        lines = tuple(
            line if isinstance(line, FormulaLine) else FormulaLine.from_record(line)
            for line in raw_lines
        )
        return cls(
            formula_id=record.get("formula_id", record.get("id")),
            lines=lines,
            name=record.get("name"),
            version=str(record.get("version") or "1"),
            status=record.get("status") or FormulaStatus.DRAFT,
            labor_rate=record.get("labor_rate"),
            labor_hours=record.get("labor_hours"),
            overhead_pct=record.get("overhead_pct"),
            waste_pct=record.get("waste_pct"),
            process_yield_pct=record.get("process_yield_pct"),
            unit_size_value=record.get("unit_size_value", record.get("unit_pack_size_value")),
            unit_size_unit=record.get("unit_size_unit", record.get("unit_pack_size_unit")),
        )


# =============================================================================
# Weighing DTOs
# =============================================================================


@dataclass(frozen=True)
class ContainerSnapshot:
    """
    A container's state at read time.

    ``version`` is the optimistic-concurrency counter; every successful
    write increments it.
    """

    container_id: str
    weight_unit: str
    status: ContainerStatus = ContainerStatus.BACKSTOCK
    calculated_tare_weight: Decimal | None = None
    refined_tare_weight: Decimal | None = None
    current_gross_weight: Decimal | None = None
    current_net_weight: Decimal | None = None
    item_id: str | None = None
    lot_id: str | None = None
    container_code: str | None = None
    location: str | None = None
    version: int = 1
    last_weighed_at: datetime | None = None
    last_weighed_by: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "container_id", _require_text("container_id", self.container_id)
        )
        object.__setattr__(self, "weight_unit", _require_text("weight_unit", self.weight_unit))
        object.__setattr__(self, "status", _coerce_enum(ContainerStatus, "status", self.status))
        for name in (
            "calculated_tare_weight",
            "refined_tare_weight",
            "current_gross_weight",
            "current_net_weight",
        ):
            object.__setattr__(self, name, optional_decimal(name, getattr(self, name)))

    @classmethod
    def from_model(cls, model: ContainerModel) -> ContainerSnapshot:
        return cls(
            container_id=str(model.id),
            weight_unit=model.weight_unit,
            status=model.status,
            calculated_tare_weight=model.calculated_tare_weight,
            refined_tare_weight=model.refined_tare_weight,
            current_gross_weight=model.current_gross_weight,
            current_net_weight=model.current_net_weight,
            item_id=model.item_id,
            lot_id=model.lot_id,
            container_code=model.container_code,
            location=model.location,
            version=model.version,
            last_weighed_at=model.last_weighed_at,
            last_weighed_by=(
                str(model.last_weighed_by_id) if model.last_weighed_by_id else None
            ),
        )


@dataclass(frozen=True)
class WeightMeasurementRecord:
    """
    One append-only ledger entry.

    ``container_version`` is the container version produced by the write
    that appended this row; it orders a container's history.
    """

    container_id: str
    gross_weight: Decimal
    tare_weight_used: Decimal
    net_weight: Decimal
    weight_unit: str
    measurement_type: MeasurementType
    measured_by: str
    measured_at: datetime
    source: str = "manual"
    notes: str | None = None
    batch_id: str | None = None
    container_version: int | None = None
    measurement_id: str | None = None

    @classmethod
    def from_model(cls, model: WeightMeasurementModel) -> WeightMeasurementRecord:
        return cls(
            container_id=str(model.container_id),
            gross_weight=model.gross_weight,
            tare_weight_used=model.tare_weight_used,
            net_weight=model.net_weight,
            weight_unit=model.weight_unit,
            measurement_type=MeasurementType(model.measurement_type),
            measured_by=str(model.measured_by_id),
            measured_at=model.measured_at,
            source=model.source,
            notes=model.notes,
            batch_id=model.batch_id,
            container_version=model.container_version,
            measurement_id=str(model.id),
        )
