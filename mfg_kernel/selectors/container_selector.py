"""
Module: mfg_kernel.selectors.container_selector
Responsibility: Read-only queries over containers and their weight
    measurement ledger.
Architecture position: Kernel > Selectors.  Reads ContainerModel and
    WeightMeasurementModel; returns ContainerSnapshot /
    WeightMeasurementRecord DTOs.

Invariants enforced:
    - Archived containers are excluded from per-item listings and summaries.
    - Per-item listings are ordered active -> backstock -> quarantine ->
      empty, newest first within a status.
    - Measurement history is ordered by container version, which is the
      order the writes were applied in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, select

from mfg_kernel.domain.dtos import (
    ContainerSnapshot,
    ContainerStatus,
    WeightMeasurementRecord,
)
from mfg_kernel.domain.values import ZERO
from mfg_kernel.exceptions import ContainerNotFoundError
from mfg_kernel.models.container import ContainerModel
from mfg_kernel.models.weight_measurement import WeightMeasurementModel
from mfg_kernel.selectors.base import BaseSelector

# Listing order; anything else sorts last.
STATUS_ORDER: dict[ContainerStatus, int] = {
    ContainerStatus.ACTIVE: 1,
    ContainerStatus.BACKSTOCK: 2,
    ContainerStatus.QUARANTINE: 3,
    ContainerStatus.EMPTY: 4,
}


@dataclass(frozen=True)
class StatusSummary:
    """Container count and total net weight for one status."""

    status: ContainerStatus
    count: int
    total_net_weight: Decimal


@dataclass(frozen=True)
class ItemContainerSummary:
    """Per-status roll-up of an item's non-archived containers."""

    item_id: str
    statuses: tuple[StatusSummary, ...] = field(default_factory=tuple)

    @property
    def container_count(self) -> int:
        return sum(s.count for s in self.statuses)

    @property
    def total_net_weight(self) -> Decimal:
        return sum((s.total_net_weight for s in self.statuses), ZERO)

    def for_status(self, status: ContainerStatus | str) -> StatusSummary | None:
        wanted = ContainerStatus(status)
        for s in self.statuses:
            if s.status == wanted:
                return s
        return None


def _to_uuid(container_id: UUID | str) -> UUID | None:
    if isinstance(container_id, UUID):
        return container_id
    try:
        return UUID(str(container_id))
    except ValueError:
        return None


class ContainerSelector(BaseSelector[ContainerModel]):
    """Read-only access to containers and measurements."""

    def get(self, container_id: UUID | str) -> ContainerSnapshot | None:
        """Current snapshot, or None if the container does not exist."""
        cid = _to_uuid(container_id)
        if cid is None:
            return None
        model = self.session.get(ContainerModel, cid)
        return ContainerSnapshot.from_model(model) if model is not None else None

    def require(self, container_id: UUID | str) -> ContainerSnapshot:
        snapshot = self.get(container_id)
        if snapshot is None:
            raise ContainerNotFoundError(str(container_id))
        return snapshot

    def measurements(self, container_id: UUID | str) -> list[WeightMeasurementRecord]:
        """A container's ledger, oldest first."""
        cid = _to_uuid(container_id)
        if cid is None:
            return []
        rows = self.session.execute(
            select(WeightMeasurementModel)
            .where(WeightMeasurementModel.container_id == cid)
            .order_by(WeightMeasurementModel.container_version)
        ).scalars().all()
        return [WeightMeasurementRecord.from_model(row) for row in rows]

    def containers_for_item(self, item_id: str) -> list[ContainerSnapshot]:
        """Non-archived containers of ``item_id`` in working order."""
        rank = case(
            {status.value: order for status, order in STATUS_ORDER.items()},
            value=ContainerModel.status,
            else_=99,
        )
        rows = self.session.execute(
            select(ContainerModel)
            .where(ContainerModel.item_id == item_id)
            .where(ContainerModel.status != ContainerStatus.ARCHIVED.value)
            .order_by(rank, ContainerModel.created_at.desc())
        ).scalars().all()
        return [ContainerSnapshot.from_model(row) for row in rows]

    def summary_for_item(self, item_id: str) -> ItemContainerSummary:
        """Count and total net weight per status (archived excluded)."""
        counts: dict[ContainerStatus, int] = {}
        weights: dict[ContainerStatus, Decimal] = {}
        for snapshot in self.containers_for_item(item_id):
            counts[snapshot.status] = counts.get(snapshot.status, 0) + 1
            weights[snapshot.status] = (
                weights.get(snapshot.status, ZERO) + (snapshot.current_net_weight or ZERO)
            )
        statuses = tuple(
            StatusSummary(status=s, count=counts[s], total_net_weight=weights[s])
            for s in sorted(counts, key=lambda s: STATUS_ORDER.get(s, 99))
        )
        return ItemContainerSummary(item_id=item_id, statuses=statuses)
