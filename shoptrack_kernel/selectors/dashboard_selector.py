"""
Module: shoptrack_kernel.selectors.dashboard_selector
Responsibility: Dashboard reads served from the materialized analytics
    summary, so no query ever scans the sales table.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Results are derived only from the stored summary (plus the first page
      of sales for the recent-sales list).
    - Date ranges are inclusive and use the same UTC day keys as the
      aggregator.
"""

from datetime import date

from shoptrack_kernel.domain.analytics import AllTimeStats, PeriodStats
from shoptrack_kernel.domain.entities import Sale
from shoptrack_kernel.selectors.base import BaseSelector


class DashboardSelector(BaseSelector):
    """Read-only analytics queries for one tenant."""

    def overview(self, tenant_id: str) -> AllTimeStats:
        """The all-time tier: revenue, profit, counts, top sellers, payment modes."""
        return self.repository.get_analytics_summary(tenant_id).all_time

    def totals_between(
        self,
        tenant_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> PeriodStats:
        """
        Sum the daily tier over ``start`` .. ``end`` inclusive.

        A missing bound leaves that side of the range open.
        """
        low = start.isoformat() if start is not None else None
        high = end.isoformat() if end is not None else None
        total = PeriodStats()
        for key, stats in self.repository.get_analytics_summary(tenant_id).daily.items():
            if low is not None and key < low:
                continue
            if high is not None and key > high:
                continue
            total = total.plus(stats.revenue, stats.profit)
        return total

    def monthly_series(self, tenant_id: str) -> list[tuple[str, PeriodStats]]:
        """(month key, stats) pairs in calendar order."""
        monthly = self.repository.get_analytics_summary(tenant_id).monthly
        return sorted(monthly.items())

    def recent_sales(self, tenant_id: str, limit: int = 10) -> list[Sale]:
        """The newest ``limit`` sales."""
        return list(self.repository.list_sales_page(tenant_id, limit).items)
