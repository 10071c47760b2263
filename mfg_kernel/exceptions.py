"""
Typed Exception Hierarchy for the Manufacturing Costing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Costing and inventory-weight errors ask for very different corrective
actions. A missing density is a data-correction problem (someone has to
enter the density of an ingredient); a negative net weight is a
physical-process problem (wrong container on the scale, stale tare).
Callers must be able to tell them apart without parsing message text.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.capture_weight(...)
    except Exception as e:
        if "negative" in str(e):  # FRAGILE - message might change
            ask_operator_to_reweigh()

Example - RIGHT way (what this module enables):
    try:
        service.capture_weight(...)
    except NegativeNetWeightError as e:
        api_response(code=e.code, net=str(e.net_weight), tare=str(e.tare_weight))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from MfgKernelError:

    MfgKernelError (base)
    |
    +-- InputError
    |   +-- InvalidInputError
    |
    +-- ConversionError
    |   +-- UnresolvedConversionError
    |
    +-- NotFoundError
    |   +-- FormulaNotFoundError
    |   +-- ComponentNotFoundError
    |   +-- ContainerNotFoundError
    |
    +-- WeightError
    |   +-- NegativeNetWeightError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigError
        +-- InvalidConfigError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_INPUT               | Non-finite / out-of-range numeric input
----------------|-----------------------------|-----------------------------------------
Conversion      | UNRESOLVED_CONVERSION       | Strict caller demanded a complete roll-up
----------------|-----------------------------|-----------------------------------------
Not found       | FORMULA_NOT_FOUND           | Formula record missing
                | COMPONENT_NOT_FOUND         | Formula line references unknown component
                | CONTAINER_NOT_FOUND         | Container ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Weight          | NEGATIVE_NET_WEIGHT         | Gross reading below resolved tare
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Container changed since it was read
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of a weight measurement
----------------|-----------------------------|-----------------------------------------
Config          | INVALID_CONFIG              | Unknown key or invalid config value

===============================================================================
HANDLING PATTERNS
===============================================================================

1. UNRESOLVED CONVERSIONS ARE NOT FATAL:

    breakdown = engine.roll_up(...)
    if not breakdown.is_complete:
        prompt_for_density([u.component_id for u in breakdown.unresolved])

   Strict callers (exports, price sheets) call
   ``breakdown.require_complete()`` which raises UnresolvedConversionError.

2. NEGATIVE NET WEIGHT ABORTS THE CAPTURE:

    except NegativeNetWeightError as e:
        show(f"Net weight is negative ({e.net_weight}{e.unit})")

3. OPTIMISTIC LOCK CONFLICTS MEAN "RE-READ, THEN DECIDE":

    except OptimisticLockError:
        container = selector.get(container_id)  # fresh state
        # let the operator confirm again; the engine never retries

===============================================================================
"""

from __future__ import annotations

from typing import Any


class MfgKernelError(Exception):
    """
    Base exception for all manufacturing costing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MFG_KERNEL_ERROR"


# Input-related exceptions


class InputError(MfgKernelError):
    """Base exception for input validation errors."""

    code: str = "INPUT_ERROR"


class InvalidInputError(InputError):
    """A required numeric or enumerated input is missing, non-finite, or out of range."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


# Conversion-related exceptions


class ConversionError(MfgKernelError):
    """Base exception for unit conversion errors."""

    code: str = "CONVERSION_ERROR"


class UnresolvedConversionError(ConversionError):
    """
    One or more formula lines could not be converted to their component's
    base unit.

    Raised only by strict callers; the roll-up itself reports unresolved
    lines on the CostBreakdown and keeps going.
    """

    code: str = "UNRESOLVED_CONVERSION"

    def __init__(self, formula_id: str, unresolved: list[Any]):
        self.formula_id = formula_id
        self.unresolved = unresolved
        self.requires_density = [
            u.component_id for u in unresolved if getattr(u, "requires_density", False)
        ]
        super().__init__(
            f"Formula {formula_id} has {len(unresolved)} unresolved line(s); "
            f"density required for: {', '.join(self.requires_density) or 'none'}"
        )


# Not-found exceptions


class NotFoundError(MfgKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class FormulaNotFoundError(NotFoundError):
    """Formula with given ID was not found."""

    code: str = "FORMULA_NOT_FOUND"

    def __init__(self, formula_id: str):
        self.formula_id = formula_id
        super().__init__(f"Formula not found: {formula_id}")


class ComponentNotFoundError(NotFoundError):
    """A formula line references a component that was not supplied."""

    code: str = "COMPONENT_NOT_FOUND"

    def __init__(self, component_id: str, line_id: str | None = None):
        self.component_id = component_id
        self.line_id = line_id
        suffix = f" (line {line_id})" if line_id else ""
        super().__init__(f"Component not found: {component_id}{suffix}")


class ContainerNotFoundError(NotFoundError):
    """Container with given ID was not found."""

    code: str = "CONTAINER_NOT_FOUND"

    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(f"Container not found: {container_id}")


# Weight-related exceptions


class WeightError(MfgKernelError):
    """Base exception for container weight errors."""

    code: str = "WEIGHT_ERROR"


class NegativeNetWeightError(WeightError):
    """
    Gross weight reading is below the resolved tare.

    Nothing is written when this is raised: the container keeps its previous
    weights and status, and no measurement is appended.
    """

    code: str = "NEGATIVE_NET_WEIGHT"

    def __init__(
        self,
        container_id: str,
        gross_weight: Any,
        tare_weight: Any,
        net_weight: Any,
        unit: str,
    ):
        self.container_id = container_id
        self.gross_weight = gross_weight
        self.tare_weight = tare_weight
        self.net_weight = net_weight
        self.unit = unit
        super().__init__(
            f"Net weight is negative ({net_weight}{unit}) for container "
            f"{container_id}: gross {gross_weight} < tare {tare_weight}. "
            "Wrong container or tare needs adjustment?"
        )


# Concurrency-related exceptions


class ConcurrencyError(MfgKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityError(MfgKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration-related exceptions


class ConfigError(MfgKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class InvalidConfigError(ConfigError):
    """Configuration contains an unknown key or an invalid value."""

    code: str = "INVALID_CONFIG"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")
