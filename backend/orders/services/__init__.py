"""
Orders services package.

- OrderService: creation (pricing, numbering, idempotency) and lookups
- OrderStatusService: guarded status transitions with optimistic concurrency
"""

from .order_service import OrderLineRequest, OrderRequest, OrderService
from .status_service import OrderStatusService

__all__ = [
    "OrderLineRequest",
    "OrderRequest",
    "OrderService",
    "OrderStatusService",
]
