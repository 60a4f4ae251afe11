import logging

from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response

from orders.permissions import IsStaff
from orders.serializers import OrderSerializer, UpdateOrderStatusSerializer
from orders.services import OrderStatusService

from .errors import invalid_order_response, order_error_response

logger = logging.getLogger(__name__)


class StatusActionsMixin:
    """
    Mixin for order status transition actions.

    This mixin provides action methods for OrderViewSet.
    """

    def get_status_service(self) -> OrderStatusService:
        return OrderStatusService()

    @action(detail=True, methods=["post"], url_path="status", permission_classes=[IsStaff])
    def update_status(self, request: Request, pk=None) -> Response:
        """
        Moves the order to the requested status.

        Returns:
        - 200: transition applied, body is the updated order
        - 400: malformed status
        - 404: unknown order
        - 409: transition not allowed, or the order changed concurrently
        """
        serializer = UpdateOrderStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_order_response(serializer.errors, "Invalid status update.")

        result = self.get_status_service().transition(
            int(pk),
            serializer.validated_data["status"],
            actor=request.user,
            note=serializer.validated_data["note"],
        )
        if not result.ok:
            return order_error_response(result.error)

        return Response(OrderSerializer(result.order).data)
