from rest_framework import generics
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from orders.serializers import OrderTrackingSerializer
from orders.services import OrderService

from .errors import order_error_response


class OrderTrackingView(generics.GenericAPIView):
    """
    Public order tracking by order number.
    Returns the contact-free tracking view of the order, or 404.
    """

    permission_classes = [AllowAny]
    serializer_class = OrderTrackingSerializer

    def get(self, request: Request, order_number: str) -> Response:
        result = OrderService.get_order_by_number(order_number)
        if not result.ok:
            return order_error_response(result.error)
        return Response(self.get_serializer(result.order).data)
