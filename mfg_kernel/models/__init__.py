"""ORM models for the manufacturing costing kernel."""

from mfg_kernel.models.container import ContainerModel
from mfg_kernel.models.weight_measurement import WeightMeasurementModel

__all__ = [
    "ContainerModel",
    "WeightMeasurementModel",
]
