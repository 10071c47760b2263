"""
ORM-Level Immutability Enforcement for the weight measurement ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

A container's current net weight is only as trustworthy as the history that
produced it.  Weight measurements are therefore append-only: a wrong reading
is corrected by capturing a new measurement (type ``adjustment``), never by
editing or deleting the old one.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_measurement_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_measurement_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable         | Why
---------------------|------------------------|--------------------------------
WeightMeasurement    | ALWAYS (from creation) | Ledger history of every weighing

Containers are NOT protected here: they are the mutable projection of the
ledger and are guarded by the version compare-and-swap instead.

===============================================================================
USAGE
===============================================================================

    from mfg_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

Registration is idempotent.  Tests that need to write corrupt history call
``unregister_immutability_listeners()`` and re-register afterwards.
"""

from sqlalchemy import event

from mfg_kernel.exceptions import ImmutabilityViolationError
from mfg_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_measurement_immutability(mapper, connection, target):
    """Prevent any updates to WeightMeasurement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "WeightMeasurement",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="WeightMeasurement",
        entity_id=str(target.id),
        reason="Weight measurements are append-only and cannot be modified",
    )


def _check_measurement_delete(mapper, connection, target):
    """Prevent deletion of WeightMeasurement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "WeightMeasurement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="WeightMeasurement",
        entity_id=str(target.id),
        reason="Weight measurements cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the append-only listeners on WeightMeasurementModel.

    Call after the models are imported and before any database work.
    """
    from mfg_kernel.models.weight_measurement import WeightMeasurementModel

    if not event.contains(WeightMeasurementModel, "before_update", _check_measurement_immutability):
        event.listen(WeightMeasurementModel, "before_update", _check_measurement_immutability)
    if not event.contains(WeightMeasurementModel, "before_delete", _check_measurement_delete):
        event.listen(WeightMeasurementModel, "before_delete", _check_measurement_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    from mfg_kernel.models.weight_measurement import WeightMeasurementModel

    _safe_remove_listener(WeightMeasurementModel, "before_update", _check_measurement_immutability)
    _safe_remove_listener(WeightMeasurementModel, "before_delete", _check_measurement_delete)
