"""
ShopTrack Kernel

Transactional core of a small-business inventory and point-of-sale tracker:
- Product catalog with item/service kinds
- Sales recorded atomically with their stock decrements
- Per-tenant pre-aggregated analytics summary kept in step with every mutation
- Explicit reconciliation of the summary against the live records
"""

__version__ = "0.1.0"
