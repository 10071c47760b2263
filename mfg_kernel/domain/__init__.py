"""
Pure domain layer.

This module contains value helpers, boundary DTOs and the clock
abstraction with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from mfg_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from mfg_kernel.domain.dtos import (
    ComponentMaster,
    ContainerSnapshot,
    ContainerStatus,
    Formula,
    FormulaLine,
    FormulaStatus,
    LaborInputs,
    MeasurementType,
    WeightMeasurementRecord,
)
from mfg_kernel.domain.values import LineKind, UnitKind, normalize_unit

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ComponentMaster",
    "ContainerSnapshot",
    "ContainerStatus",
    "Formula",
    "FormulaLine",
    "FormulaStatus",
    "LaborInputs",
    "MeasurementType",
    "WeightMeasurementRecord",
    "LineKind",
    "UnitKind",
    "normalize_unit",
]
