"""Read-only selectors over the repository."""

from shoptrack_kernel.selectors.base import BaseSelector
from shoptrack_kernel.selectors.dashboard_selector import DashboardSelector
from shoptrack_kernel.selectors.inventory_selector import InventorySelector

__all__ = [
    "BaseSelector",
    "DashboardSelector",
    "InventorySelector",
]
