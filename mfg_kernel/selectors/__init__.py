"""Read-only selectors returning domain DTOs."""

from mfg_kernel.selectors.container_selector import (
    ContainerSelector,
    ItemContainerSummary,
    StatusSummary,
)

__all__ = ["ContainerSelector", "ItemContainerSummary", "StatusSummary"]
