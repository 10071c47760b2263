"""
mfg_engines.container_weight -- Tare resolution and weight capture for containers.

Responsibility:
    Given a container snapshot and a scale reading, compute the net content
    weight, decide the resulting status, and produce the new snapshot plus
    the append-only measurement record. Also covers manual status moves and
    the registration of a new container from its supplier label.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.
    The caller supplies ``measured_at`` and ``actor_id``; persistence and
    locking live in ContainerWeightService / WeighingService.

Invariants enforced:
    - tare used = refined tare if present, else calculated tare, else 0.
      A refined tare of 0 counts as present.
    - net = gross - tare; a negative net is rejected with
      NegativeNetWeightError and nothing is produced.
    - net <= 0 moves the container to ``empty``; ``archived`` is terminal
      and never changes automatically.
    - Every successful capture yields exactly one measurement whose
      ``container_version`` equals the new container version.

Failure modes:
    - NegativeNetWeightError: gross below tare (carries gross, tare, net).
    - InvalidInputError: negative or non-finite gross, or a reading unit
      different from the container's weight unit.

Usage:
    from mfg_engines.container_weight import ContainerWeightLedger

    capture = ContainerWeightLedger().capture_weight(
        snapshot,
        Decimal("825"),
        measurement_type=MeasurementType.INVENTORY_COUNT,
        actor_id="user-1",
        measured_at=clock.now(),
    )
    capture.container.current_net_weight   # Decimal("705")
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from mfg_engines.tracer import traced_engine
from mfg_kernel.domain.dtos import (
    ContainerSnapshot,
    ContainerStatus,
    MeasurementType,
    WeightMeasurementRecord,
)
from mfg_kernel.domain.values import ZERO, require_decimal
from mfg_kernel.exceptions import InvalidInputError, NegativeNetWeightError
from mfg_kernel.logging_config import get_logger

logger = get_logger("engines.container_weight")

PRODUCTION_LOCATION = "Production Floor"
BACKSTOCK_LOCATION = "Warehouse"
INITIAL_SETUP_NOTE = "Initial container setup - weights from supplier label"


@dataclass(frozen=True)
class WeightCapture:
    """New container state and the measurement that produced it."""

    container: ContainerSnapshot
    measurement: WeightMeasurementRecord
    previous_status: ContainerStatus | None = None

    @property
    def status_changed(self) -> bool:
        return self.previous_status is not None and self.previous_status != self.container.status


def resolve_tare(container: ContainerSnapshot) -> Decimal:
    """Refined tare if present, else calculated tare, else 0."""
    if container.refined_tare_weight is not None:
        return container.refined_tare_weight
    if container.calculated_tare_weight is not None:
        return container.calculated_tare_weight
    return ZERO


def _same_unit(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


class ContainerWeightLedger:
    """
    Pure container weight state machine.

    Contract:
        Snapshots in, snapshots out. The input snapshot is never modified;
        every successful operation returns a snapshot with ``version + 1``.

    Non-goals:
        Unit conversion between scale units (readings must already be in
        the container's unit), tare refinement heuristics.
    """

    def resolve_tare(self, container: ContainerSnapshot) -> Decimal:
        return resolve_tare(container)

    @traced_engine(
        "container_weight",
        "1.0",
        fingerprint_fields=("gross_weight", "measurement_type", "unit"),
    )
    def capture_weight(
        self,
        container: ContainerSnapshot,
        gross_weight: Any,
        measurement_type: MeasurementType | str = MeasurementType.INVENTORY_COUNT,
        actor_id: str | None = None,
        measured_at: datetime | None = None,
        notes: str | None = None,
        unit: str | None = None,
        source: str = "manual",
        batch_id: str | None = None,
    ) -> WeightCapture:
        """
        Record a scale reading against ``container``.

        Raises:
            NegativeNetWeightError: gross below the resolved tare.
            InvalidInputError: bad gross, unit mismatch, missing actor/time.
        """
        gross = require_decimal("gross_weight", gross_weight, minimum=ZERO)
        if unit is not None and not _same_unit(unit, container.weight_unit):
            raise InvalidInputError(
                "unit", unit, f"container {container.container_id} is weighed in {container.weight_unit}"
            )
        if actor_id is None or measured_at is None:
            raise InvalidInputError(
                "actor_id" if actor_id is None else "measured_at",
                None,
                "actor and measurement time are required",
            )
        try:
            mtype = MeasurementType(measurement_type)
        except ValueError:
            raise InvalidInputError(
                "measurement_type", measurement_type, "unknown measurement type"
            ) from None

        tare = resolve_tare(container)
        net = gross - tare

        logger.info("weight_capture_started", extra={
            "container_id": container.container_id,
            "gross_weight": str(gross),
            "tare_weight": str(tare),
            "measurement_type": mtype.value,
        })

        if net < 0:
            logger.warning("weight_capture_negative_net", extra={
                "container_id": container.container_id,
                "gross_weight": str(gross),
                "tare_weight": str(tare),
                "net_weight": str(net),
            })
            raise NegativeNetWeightError(
                container.container_id, gross, tare, net, container.weight_unit
            )

        status = container.status
        if net <= 0 and status != ContainerStatus.ARCHIVED:
            status = ContainerStatus.EMPTY

        new_version = container.version + 1
        updated = replace(
            container,
            current_gross_weight=gross,
            current_net_weight=net,
            status=status,
            version=new_version,
            last_weighed_at=measured_at,
            last_weighed_by=str(actor_id),
        )
        measurement = WeightMeasurementRecord(
            container_id=container.container_id,
            gross_weight=gross,
            tare_weight_used=tare,
            net_weight=net,
            weight_unit=container.weight_unit,
            measurement_type=mtype,
            measured_by=str(actor_id),
            measured_at=measured_at,
            source=source,
            notes=notes,
            batch_id=batch_id,
            container_version=new_version,
        )

        logger.info("weight_capture_completed", extra={
            "container_id": container.container_id,
            "net_weight": str(net),
            "status": status.value,
            "previous_status": container.status.value,
            "version": new_version,
        })
        return WeightCapture(
            container=updated, measurement=measurement, previous_status=container.status
        )

    def set_status(
        self,
        container: ContainerSnapshot,
        status: ContainerStatus | str,
        location: str | None = None,
    ) -> ContainerSnapshot:
        """Explicit business status change; location is kept unless given."""
        try:
            new_status = ContainerStatus(status)
        except ValueError:
            raise InvalidInputError("status", status, "unknown container status") from None
        logger.info("container_status_changed", extra={
            "container_id": container.container_id,
            "from_status": container.status.value,
            "to_status": new_status.value,
            "location": location or container.location,
        })
        return replace(
            container,
            status=new_status,
            location=location if location is not None else container.location,
            version=container.version + 1,
        )

    def move_to_production(self, container: ContainerSnapshot) -> ContainerSnapshot:
        return self.set_status(container, ContainerStatus.ACTIVE, PRODUCTION_LOCATION)

    def move_to_backstock(self, container: ContainerSnapshot) -> ContainerSnapshot:
        return self.set_status(container, ContainerStatus.BACKSTOCK, BACKSTOCK_LOCATION)

    @traced_engine(
        "container_weight",
        "1.0",
        fingerprint_fields=("initial_gross_weight", "intended_net_weight", "weight_unit"),
    )
    def open_container(
        self,
        *,
        container_id: str,
        weight_unit: str,
        initial_gross_weight: Any,
        intended_net_weight: Any,
        actor_id: str,
        measured_at: datetime,
        item_id: str | None = None,
        lot_id: str | None = None,
        container_code: str | None = None,
        location: str | None = None,
        status: ContainerStatus | str = ContainerStatus.BACKSTOCK,
    ) -> WeightCapture:
        """
        Register a new container from its supplier label.

        The calculated tare is the label's gross minus its stated net, and
        the first ledger entry is an ``initial_setup`` measurement.
        """
        gross = require_decimal("initial_gross_weight", initial_gross_weight, minimum=ZERO)
        intended = require_decimal("intended_net_weight", intended_net_weight, minimum=ZERO)
        if intended > gross:
            raise InvalidInputError(
                "intended_net_weight",
                intended_net_weight,
                f"exceeds initial gross weight {gross}",
            )
        tare = gross - intended
        try:
            initial_status = ContainerStatus(status)
        except ValueError:
            raise InvalidInputError("status", status, "unknown container status") from None
        if intended <= 0 and initial_status != ContainerStatus.ARCHIVED:
            initial_status = ContainerStatus.EMPTY

        snapshot = ContainerSnapshot(
            container_id=container_id,
            weight_unit=weight_unit,
            status=initial_status,
            calculated_tare_weight=tare,
            current_gross_weight=gross,
            current_net_weight=intended,
            item_id=item_id,
            lot_id=lot_id,
            container_code=container_code,
            location=location or BACKSTOCK_LOCATION,
            version=1,
            last_weighed_at=measured_at,
            last_weighed_by=str(actor_id),
        )
        measurement = WeightMeasurementRecord(
            container_id=snapshot.container_id,
            gross_weight=gross,
            tare_weight_used=tare,
            net_weight=intended,
            weight_unit=snapshot.weight_unit,
            measurement_type=MeasurementType.INITIAL_SETUP,
            measured_by=str(actor_id),
            measured_at=measured_at,
            notes=INITIAL_SETUP_NOTE,
            container_version=1,
        )

        logger.info("container_opened", extra={
            "container_id": snapshot.container_id,
            "calculated_tare_weight": str(tare),
            "intended_net_weight": str(intended),
            "weight_unit": snapshot.weight_unit,
        })
        return WeightCapture(container=snapshot, measurement=measurement)
