"""
WeighingService -- transaction-owning entry point for container weighing.

Responsibility:
    Wraps ContainerWeightService so that each operation runs in its own
    committed transaction, and serializes operations on the same container
    inside the process with a KeyedLockRegistry.

Architecture position:
    Services -- orchestration.  Owns session lifecycle (session_scope) and
    the keyed lock; delegates all weighing rules to the kernel service and,
    through it, to the pure ContainerWeightLedger.

Invariants enforced:
    - At most one in-flight mutation per container in this process; the
      database row lock and version compare-and-swap cover other processes.
    - Operations on different containers never share a lock.
    - A failed operation (negative net, stale version) is rolled back
      completely: no container update, no measurement.

Usage:
    service = WeighingService(session_factory=get_session_factory())
    capture = service.capture_weight(container_id, Decimal("825"), actor_id)
    capture.container.current_net_weight
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from mfg_kernel.db.engine import get_session_factory, session_scope
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.domain.dtos import (
    ContainerSnapshot,
    ContainerStatus,
    MeasurementType,
    WeightMeasurementRecord,
)
from mfg_kernel.logging_config import get_logger
from mfg_kernel.selectors.container_selector import ContainerSelector, ItemContainerSummary
from mfg_kernel.services.container_weight_service import ContainerWeightService
from mfg_kernel.utils.keyed_lock import KeyedLockRegistry
from mfg_engines.container_weight import WeightCapture

logger = get_logger("services.weighing")


def _lock_key(container_id: UUID | str) -> str:
    return str(container_id).strip().lower()


class WeighingService:
    """
    Weighing operations with transaction and per-container serialization.

    Contract:
        Each public call opens a session from ``session_factory``, runs one
        ContainerWeightService operation, and commits (or rolls back on any
        exception, which is re-raised).

    Non-goals:
        - Does NOT retry on OptimisticLockError; the caller re-reads and
          decides whether the reading still applies.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        locks: KeyedLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._locks = locks or KeyedLockRegistry()

    @property
    def locks(self) -> KeyedLockRegistry:
        return self._locks

    def _factory(self) -> sessionmaker[Session]:
        return self._session_factory or get_session_factory()

    def _kernel(self, session: Session) -> ContainerWeightService:
        return ContainerWeightService(session, self._clock)

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
        """Capture a reading; see ContainerWeightService.capture_weight."""
        with self._locks.hold(_lock_key(container_id)):
            with session_scope(self._factory()) as session:
                return self._kernel(session).capture_weight(
                    container_id,
                    gross_weight,
                    actor_id,
                    measurement_type=measurement_type,
                    notes=notes,
                    unit=unit,
                    source=source,
                    batch_id=batch_id,
                    expected_version=expected_version,
                )

    def set_status(
        self,
        container_id: UUID | str,
        status: ContainerStatus | str,
        actor_id: UUID | str,
        location: str | None = None,
        expected_version: int | None = None,
    ) -> ContainerSnapshot:
        with self._locks.hold(_lock_key(container_id)):
            with session_scope(self._factory()) as session:
                return self._kernel(session).set_status(
                    container_id, status, actor_id, location, expected_version
                )

    def move_to_production(
        self,
        container_id: UUID | str,
        actor_id: UUID | str,
        expected_version: int | None = None,
    ) -> ContainerSnapshot:
        with self._locks.hold(_lock_key(container_id)):
            with session_scope(self._factory()) as session:
                return self._kernel(session).move_to_production(
                    container_id, actor_id, expected_version
                )

    def move_to_backstock(
        self,
        container_id: UUID | str,
        actor_id: UUID | str,
        expected_version: int | None = None,
    ) -> ContainerSnapshot:
        with self._locks.hold(_lock_key(container_id)):
            with session_scope(self._factory()) as session:
                return self._kernel(session).move_to_backstock(
                    container_id, actor_id, expected_version
                )

    def refine_tare(
        self,
        container_id: UUID | str,
        refined_tare_weight: Any,
        actor_id: UUID | str,
        expected_version: int | None = None,
    ) -> ContainerSnapshot:
        with self._locks.hold(_lock_key(container_id)):
            with session_scope(self._factory()) as session:
                return self._kernel(session).refine_tare(
                    container_id, refined_tare_weight, actor_id, expected_version
                )

    def register_container(self, **kwargs: Any) -> WeightCapture:
        """Register a container; arguments as ContainerWeightService.register_container."""
        with session_scope(self._factory()) as session:
            capture = self._kernel(session).register_container(**kwargs)
        logger.info("container_registration_committed", extra={
            "container_id": capture.container.container_id,
        })
        return capture

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_container(self, container_id: UUID | str) -> ContainerSnapshot:
        with session_scope(self._factory()) as session:
            return ContainerSelector(session).require(container_id)

    def measurements(self, container_id: UUID | str) -> list[WeightMeasurementRecord]:
        with session_scope(self._factory()) as session:
            return ContainerSelector(session).measurements(container_id)

    def containers_for_item(self, item_id: str) -> list[ContainerSnapshot]:
        with session_scope(self._factory()) as session:
            return ContainerSelector(session).containers_for_item(item_id)

    def summary_for_item(self, item_id: str) -> ItemContainerSummary:
        with session_scope(self._factory()) as session:
            return ContainerSelector(session).summary_for_item(item_id)
