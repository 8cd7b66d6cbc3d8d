"""ORM records for the shoptrack kernel."""

from shoptrack_kernel.models.analytics_summary import AnalyticsSummaryRecord
from shoptrack_kernel.models.product import ProductRecord
from shoptrack_kernel.models.sale import SaleRecord

__all__ = [
    "AnalyticsSummaryRecord",
    "ProductRecord",
    "SaleRecord",
]
