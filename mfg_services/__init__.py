"""
mfg_services -- Package init and public API.

Responsibility:
    Orchestration services that compose the pure calculation engines
    (mfg_engines/) with configuration, database sessions and wall-clock
    time.  This is the layer that owns transactions and in-process
    serialization.

Architecture position:
    Services -- stateful orchestration over engines + kernel + config.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        mfg_services/ -> mfg_engines/, mfg_kernel/, mfg_config/  (allowed)
        mfg_engines/  -> mfg_services/, mfg_config/              (FORBIDDEN)
        mfg_kernel/   -> mfg_services/, mfg_config/              (FORBIDDEN)
"""

from mfg_kernel.logging_config import get_logger

logger = get_logger("services")

from mfg_services.costing_service import CostingService
from mfg_services.weighing_service import WeighingService

__all__ = [
    "CostingService",
    "WeighingService",
]
