"""
Orders serializers package.
"""

from .fields import (
    CoercedChoiceField,
    OrderStatusField,
    PaymentStatusField,
    coerce_order_status,
    coerce_payment_status,
)
from .order_serializers import (
    OrderCreateSerializer,
    OrderItemSerializer,
    OrderLineInputSerializer,
    OrderSerializer,
    OrderTrackingSerializer,
)
from .status_serializers import OrderStatusHistorySerializer, UpdateOrderStatusSerializer

__all__ = [
    "CoercedChoiceField",
    "OrderStatusField",
    "PaymentStatusField",
    "coerce_order_status",
    "coerce_payment_status",
    "OrderCreateSerializer",
    "OrderItemSerializer",
    "OrderLineInputSerializer",
    "OrderSerializer",
    "OrderTrackingSerializer",
    "OrderStatusHistorySerializer",
    "UpdateOrderStatusSerializer",
]
