"""Inventory views: the full catalog and the low-stock list."""

from shoptrack_kernel.domain.entities import Product
from shoptrack_kernel.logging_config import get_logger
from shoptrack_kernel.repository.base import Repository
from shoptrack_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.inventory")


class InventorySelector(BaseSelector):
    """Read-only catalog queries for one tenant."""

    def __init__(self, repository: Repository, page_size: int = 100):
        super().__init__(repository)
        self.page_size = page_size

    def all_products(self, tenant_id: str) -> list[Product]:
        """Every product, ordered by name, walking all pages."""
        products: list[Product] = []
        cursor = None
        while True:
            page = self.repository.list_products_page(tenant_id, self.page_size, cursor)
            products.extend(page.items)
            if page.next_cursor is None:
                return products
            cursor = page.next_cursor

    def low_stock_products(self, tenant_id: str) -> list[Product]:
        """Items at or below their threshold, lowest stock first."""
        low = [p for p in self.all_products(tenant_id) if p.is_low_stock]
        low.sort(key=lambda p: (p.stock, p.name))
        logger.debug(
            "low_stock_listed",
            extra={"tenant_id": tenant_id, "count": len(low)},
        )
        return low
