"""
ContainerWeightService -- persistence boundary for container weighing.

Responsibility:
    Loads a container row under a lock, runs the pure ContainerWeightLedger
    against its snapshot, writes the new container state, and appends the
    matching weight measurement -- all inside the caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell around the pure ledger engine.
    Flush-only: the caller (WeighingService or a test harness) owns
    commit/rollback.

Invariants enforced:
    - At most one in-flight mutation per container: the row is read with
      ``SELECT ... FOR UPDATE`` and the UPDATE is a compare-and-swap on
      ``version`` (SQLAlchemy version_id_col).
    - A caller-supplied ``expected_version`` that no longer matches the row
      is rejected before anything is computed.
    - NegativeNetWeightError leaves the session untouched: the ORM row is
      only modified after the ledger has accepted the reading.
    - Exactly one WeightMeasurementModel row per successful capture, with
      ``container_version`` equal to the container's new version.

Failure modes:
    - ContainerNotFoundError: unknown container id (before any computation).
    - OptimisticLockError: stale ``expected_version`` or a concurrent
      writer won the compare-and-swap (StaleDataError on flush).
    - NegativeNetWeightError / InvalidInputError from the ledger.

Audit relevance:
    Every capture logs container_id, actor_id, gross/tare/net, the status
    transition and the resulting version.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from mfg_engines.container_weight import ContainerWeightLedger, WeightCapture
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.domain.dtos import (
    ContainerSnapshot,
    ContainerStatus,
    MeasurementType,
    WeightMeasurementRecord,
)
from mfg_kernel.domain.values import ZERO, require_decimal
from mfg_kernel.exceptions import (
    ContainerNotFoundError,
    InvalidInputError,
    OptimisticLockError,
)
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_kernel.models.container import ContainerModel
from mfg_kernel.models.weight_measurement import WeightMeasurementModel
from mfg_kernel.services.base import BaseService

logger = get_logger("services.container_weight")


def _as_uuid(field: str, value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidInputError(field, value, "must be a UUID") from None


class ContainerWeightService(BaseService[ContainerModel]):
    """
    Weighing, status moves and registration of containers.

    Contract:
        Every public method takes the container id (UUID or its string
        form) and the acting user's id, and returns domain DTOs, never ORM
        rows.

    Guarantees:
        - Measurements are appended, never modified (see db/immutability.py).
        - Containers in ``archived`` are never moved to ``empty`` by a
          weighing.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT serialize callers in-process; WeighingService adds that.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: ContainerWeightLedger | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ledger = ledger or ContainerWeightLedger()

    # ------------------------------------------------------------------
    # Loading and version checks
    # ------------------------------------------------------------------

    def _load_for_update(self, container_id: UUID) -> ContainerModel:
        # Row-level lock; populate_existing so a cached identity is refreshed.
        model = self.session.execute(
            select(ContainerModel)
            .where(ContainerModel.id == container_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            logger.warning("container_not_found", extra={"container_id": str(container_id)})
            raise ContainerNotFoundError(str(container_id))
        return model

    def _check_version(self, model: ContainerModel, expected_version: int | None) -> None:
        if expected_version is not None and model.version != expected_version:
            logger.warning("container_version_conflict", extra={
                "container_id": str(model.id),
                "expected_version": expected_version,
                "actual_version": model.version,
            })
            raise OptimisticLockError(
                "Container", str(model.id), expected_version, model.version
            )

    def _flush_container(self, model: ContainerModel, read_version: int) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning("container_concurrent_update", extra={
                "container_id": str(model.id),
                "read_version": read_version,
            })
            raise OptimisticLockError("Container", str(model.id), read_version) from exc

    def _append_measurement(self, record: WeightMeasurementRecord, container_id: UUID) -> WeightMeasurementRecord:
        row = WeightMeasurementModel(
            container_id=container_id,
            container_version=record.container_version,
            gross_weight=record.gross_weight,
            tare_weight_used=record.tare_weight_used,
            net_weight=record.net_weight,
            weight_unit=record.weight_unit,
            measurement_type=record.measurement_type.value,
            source=record.source,
            measured_by_id=_as_uuid("actor_id", record.measured_by),
            measured_at=record.measured_at,
            notes=record.notes,
            batch_id=record.batch_id,
        )
        self.session.add(row)
        self.session.flush()
        return WeightMeasurementRecord(
            container_id=record.container_id,
            gross_weight=record.gross_weight,
            tare_weight_used=record.tare_weight_used,
            net_weight=record.net_weight,
            weight_unit=record.weight_unit,
            measurement_type=record.measurement_type,
            measured_by=record.measured_by,
            measured_at=record.measured_at,
            source=record.source,
            notes=record.notes,
            batch_id=record.batch_id,
            container_version=record.container_version,
            measurement_id=str(row.id),
        )

    # ------------------------------------------------------------------
    # Weighing
    # ------------------------------------------------------------------

    def capture_weight(
        self,
        container_id: UUID | str,
        gross_weight: Any,
        actor_id: UUID | str,
        measurement_type: MeasurementType | str = MeasurementType.INVENTORY_COUNT,
        notes: str | None = None,
        unit: str | None = None,
        source: str = "manual",
        batch_id: str | None = None,
        expected_version: int | None = None,
    ) -> WeightCapture:
        """
        Record a scale reading and update the container.

        Args:
            container_id: Container being weighed.
            gross_weight: Scale reading (container + contents).
            actor_id: Who weighed it.
            measurement_type: Why it was weighed.
            notes: Free text stored on the measurement.
            unit: Unit of the reading; must match the container's unit.
            source: ``manual``, ``scale``, ``import``...
            batch_id: Production batch consuming the contents, if any.
            expected_version: Version the caller read; rejects stale writes.
        """
        cid = _as_uuid("container_id", container_id)
        actor = _as_uuid("actor_id", actor_id)

        with LogContext.bind(container_id=str(cid), actor_id=str(actor)):
            model = self._load_for_update(cid)
            self._check_version(model, expected_version)
            read_version = model.version
            snapshot = ContainerSnapshot.from_model(model)

            capture = self._ledger.capture_weight(
                snapshot,
                gross_weight,
                measurement_type=measurement_type,
                actor_id=str(actor),
                measured_at=self._clock.now(),
                notes=notes,
                unit=unit,
                source=source,
                batch_id=batch_id,
            )

            updated = capture.container
            model.current_gross_weight = updated.current_gross_weight
            model.current_net_weight = updated.current_net_weight
            model.status = updated.status.value
            model.last_weighed_at = updated.last_weighed_at
            model.last_weighed_by_id = actor
            model.updated_by_id = actor
            self._flush_container(model, read_version)

            measurement = self._append_measurement(capture.measurement, cid)

            logger.info("container_weight_captured", extra={
                "gross_weight": str(updated.current_gross_weight),
                "net_weight": str(updated.current_net_weight),
                "tare_weight": str(capture.measurement.tare_weight_used),
                "status": updated.status.value,
                "status_changed": capture.status_changed,
                "version": model.version,
            })
            return WeightCapture(
                container=ContainerSnapshot.from_model(model),
                measurement=measurement,
                previous_status=capture.previous_status,
            )

    # ------------------------------------------------------------------
    # Status moves
    # ------------------------------------------------------------------

    def set_status(
        self,
        container_id: UUID | str,
        status: ContainerStatus | str,
        actor_id: UUID | str,
        location: str | None = None,
        expected_version: int | None = None,
    ) -> ContainerSnapshot:
        """Change a container's business status (and optionally location)."""
        return self._move(
            container_id,
            actor_id,
            lambda snapshot: self._ledger.set_status(snapshot, status, location),
            expected_version,
        )

    def move_to_production(
        self, container_id: UUID | str, actor_id: UUID | str, expected_version: int | None = None
    ) -> ContainerSnapshot:
        return self._move(container_id, actor_id, self._ledger.move_to_production, expected_version)

    def move_to_backstock(
        self, container_id: UUID | str, actor_id: UUID | str, expected_version: int | None = None
    ) -> ContainerSnapshot:
        return self._move(container_id, actor_id, self._ledger.move_to_backstock, expected_version)

    def _move(self, container_id, actor_id, transition, expected_version) -> ContainerSnapshot:
        cid = _as_uuid("container_id", container_id)
        actor = _as_uuid("actor_id", actor_id)

        with LogContext.bind(container_id=str(cid), actor_id=str(actor)):
            model = self._load_for_update(cid)
            self._check_version(model, expected_version)
            read_version = model.version

            updated = transition(ContainerSnapshot.from_model(model))
            model.status = updated.status.value
            model.location = updated.location
            model.updated_by_id = actor
            self._flush_container(model, read_version)
            return ContainerSnapshot.from_model(model)

    def refine_tare(
        self,
        container_id: UUID | str,
        refined_tare_weight: Any,
        actor_id: UUID | str,
        expected_version: int | None = None,
    ) -> ContainerSnapshot:
        """
        Record a measured tare (e.g. the empty container was weighed).

        Takes precedence over the calculated tare from the next capture on;
        the current net weight is not recomputed.
        """
        cid = _as_uuid("container_id", container_id)
        actor = _as_uuid("actor_id", actor_id)
        tare = require_decimal("refined_tare_weight", refined_tare_weight, minimum=ZERO)

        with LogContext.bind(container_id=str(cid), actor_id=str(actor)):
            model = self._load_for_update(cid)
            self._check_version(model, expected_version)
            read_version = model.version
            previous = model.refined_tare_weight

            model.refined_tare_weight = tare
            model.updated_by_id = actor
            self._flush_container(model, read_version)

            logger.info("container_tare_refined", extra={
                "previous_refined_tare": str(previous) if previous is not None else None,
                "refined_tare_weight": str(tare),
                "calculated_tare_weight": str(model.calculated_tare_weight),
            })
            return ContainerSnapshot.from_model(model)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_container(
        self,
        *,
        initial_gross_weight: Any,
        intended_net_weight: Any,
        weight_unit: str,
        actor_id: UUID | str,
        item_id: str | None = None,
        lot_id: str | None = None,
        container_code: str | None = None,
        label: str | None = None,
        container_type: str | None = None,
        location: str | None = None,
        status: ContainerStatus | str = ContainerStatus.BACKSTOCK,
    ) -> WeightCapture:
        """
        Register a new container from its supplier label.

        The calculated tare is ``initial_gross_weight - intended_net_weight``
        and an ``initial_setup`` measurement is appended at version 1.
        """
        actor = _as_uuid("actor_id", actor_id)
        cid = uuid4()

        with LogContext.bind(container_id=str(cid), actor_id=str(actor)):
            capture = self._ledger.open_container(
                container_id=str(cid),
                weight_unit=weight_unit,
                initial_gross_weight=initial_gross_weight,
                intended_net_weight=intended_net_weight,
                actor_id=str(actor),
                measured_at=self._clock.now(),
                item_id=item_id,
                lot_id=lot_id,
                container_code=container_code,
                location=location,
                status=status,
            )
            snapshot = capture.container

            model = ContainerModel(
                id=cid,
                item_id=item_id,
                lot_id=lot_id,
                container_code=container_code,
                label=label,
                container_type=container_type,
                initial_gross_weight=snapshot.current_gross_weight,
                intended_net_weight=snapshot.current_net_weight,
                calculated_tare_weight=snapshot.calculated_tare_weight,
                current_gross_weight=snapshot.current_gross_weight,
                current_net_weight=snapshot.current_net_weight,
                weight_unit=snapshot.weight_unit,
                status=snapshot.status.value,
                location=snapshot.location,
                last_weighed_at=snapshot.last_weighed_at,
                last_weighed_by_id=actor,
                created_by_id=actor,
            )
            self.session.add(model)
            self.session.flush()

            measurement = self._append_measurement(capture.measurement, cid)

            logger.info("container_registered", extra={
                "item_id": item_id,
                "lot_id": lot_id,
                "container_code": container_code,
                "calculated_tare_weight": str(snapshot.calculated_tare_weight),
                "weight_unit": snapshot.weight_unit,
            })
            return WeightCapture(
                container=ContainerSnapshot.from_model(model),
                measurement=measurement,
            )
