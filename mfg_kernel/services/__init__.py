"""Kernel write services (flush-only; the caller owns the transaction)."""

from mfg_kernel.services.container_weight_service import ContainerWeightService

__all__ = ["ContainerWeightService"]
