"""
Module: mfg_kernel.models.container
Responsibility: ORM persistence for physical inventory containers (bottles,
    pails, drums) and their current weight state.  A container row is the
    mutable projection of its append-only weight measurement ledger.
Architecture position: Kernel > Models.  May import from db/base.py and the
    domain enumerations only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Optimistic concurrency.  ``version`` is the SQLAlchemy version_id_col:
      every UPDATE is issued as ``... WHERE id = :id AND version = :v`` and
      bumps the version, so a write based on a stale read matches no row and
      fails with StaleDataError.
    - current_net_weight = current_gross_weight - tare used, where tare is
      refined_tare_weight if set, else calculated_tare_weight (enforced by
      the container weight ledger, not by the database).

Failure modes:
    - StaleDataError on flush when another transaction bumped the version
      first (translated to OptimisticLockError by ContainerWeightService).
    - IntegrityError on a duplicate container_code.

Audit relevance:
    initial_gross_weight and intended_net_weight record the supplier label
    the container was registered from; calculated_tare_weight is derived from
    them once.  Every later weight change is backed by a weight measurement.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from mfg_kernel.db.base import TrackedBase, UUIDString
from mfg_kernel.domain.dtos import ContainerStatus


class ContainerModel(TrackedBase):
    """
    Persistent storage for one physical container.

    Contract:
        Weight fields change only through ContainerWeightService, which
        appends a WeightMeasurementModel row in the same flush.

    Guarantees:
        - ``version`` starts at 1 and increases by exactly 1 on every UPDATE.
        - (item_id, status) index supports the per-item container listing.

    Non-goals:
        - Does NOT store measurement history; see WeightMeasurementModel.
    """

    __tablename__ = "inventory_containers"

    __table_args__ = (
        Index("idx_container_item_status", "item_id", "status"),
        Index("idx_container_lot", "lot_id"),
        Index("idx_container_code", "container_code", unique=True),
    )

    item_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lot_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    container_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    label: Mapped[str | None] = mapped_column(String(200), nullable=True)
    container_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Supplier label values captured at registration
    initial_gross_weight: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    intended_net_weight: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    calculated_tare_weight: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    refined_tare_weight: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    current_gross_weight: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    current_net_weight: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    weight_unit: Mapped[str] = mapped_column(String(20), nullable=False, default="g")

    status: Mapped[ContainerStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ContainerStatus.BACKSTOCK.value,
    )
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)

    last_weighed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_weighed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Compare-and-swap counter, managed by SQLAlchemy
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<Container {self.id}: code={self.container_code} "
            f"net={self.current_net_weight}{self.weight_unit} status={self.status} v{self.version}>"
        )
