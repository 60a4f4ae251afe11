"""
Orders views package - viewset plus action mixins.
"""

from .order_viewset import OrderViewSet
from .tracking_view import OrderTrackingView

__all__ = [
    "OrderViewSet",
    "OrderTrackingView",
]
