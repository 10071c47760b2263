"""
Module: mfg_kernel.models.weight_measurement
Responsibility: ORM persistence for the append-only weight measurement
    ledger.  One row per successful weighing (or container registration).
Architecture position: Kernel > Models.  May import from db/base.py and the
    domain enumerations only.

Invariants enforced:
    - Append-only.  ORM listeners in db/immutability.py reject UPDATE and
      DELETE with ImmutabilityViolationError.
    - One row per container version.  (container_id, container_version) is
      unique, so two writers that both read version N cannot both append
      a measurement for version N + 1.
    - net_weight = gross_weight - tare_weight_used, never negative.

Audit relevance:
    tare_weight_used records which tare was applied at the time, so a later
    tare refinement never rewrites what a past reading meant.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mfg_kernel.db.base import Base, UUIDString
from mfg_kernel.domain.dtos import MeasurementType


class WeightMeasurementModel(Base):
    """
    Persistent storage for one weight reading.

    Contract:
        Rows are written only by ContainerWeightService and never change.

    Guarantees:
        - container_version equals the container version produced by the
          write that appended this row.
    """

    __tablename__ = "weight_measurements"

    __table_args__ = (
        UniqueConstraint(
            "container_id", "container_version", name="uq_measurement_container_version"
        ),
        Index("idx_measurement_container", "container_id"),
        Index("idx_measurement_measured_at", "measured_at"),
    )

    container_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_containers.id"),
        nullable=False,
    )
    container_version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    gross_weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    tare_weight_used: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    net_weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    weight_unit: Mapped[str] = mapped_column(String(20), nullable=False)

    measurement_type: Mapped[MeasurementType] = mapped_column(String(30), nullable=False)
    source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    measured_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    measured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<WeightMeasurement {self.id}: container={self.container_id} "
            f"v{self.container_version} net={self.net_weight}{self.weight_unit}>"
        )
