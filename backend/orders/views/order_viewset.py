import logging
import uuid

from django.conf import settings
from django.utils.decorators import method_decorator
from django_filters.rest_framework import DjangoFilterBackend
from django_ratelimit.decorators import ratelimit
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from orders.filters import OrderFilter
from orders.permissions import IsStaff, IsStaffOrOrderOwner
from orders.serializers import OrderCreateSerializer, OrderSerializer, OrderStatusHistorySerializer
from orders.services import OrderService

from .errors import invalid_order_response, order_error_response
from .status_actions import StatusActionsMixin

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


def order_create_rate(group, request):
    return settings.ORDERING.get("ORDER_CREATE_RATE", "30/m")


def parse_idempotency_key(request):
    raw = request.headers.get(IDEMPOTENCY_HEADER)
    if not raw:
        return None
    return uuid.UUID(raw.strip())


class OrderViewSet(StatusActionsMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    ViewSet for orders.

    - create: anyone (guests included), rate limited per IP
    - list / pending: staff
    - retrieve / history: staff or the owning customer
    - status (StatusActionsMixin): staff
    """

    serializer_class = OrderSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = OrderFilter
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        return OrderService.list_orders()

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        if self.action in ("list", "pending"):
            return [IsStaff()]
        if self.action in ("retrieve", "history"):
            return [IsStaffOrOrderOwner()]
        return super().get_permissions()

    def get_order_service(self) -> OrderService:
        return OrderService()

    @method_decorator(ratelimit(key="ip", rate=order_create_rate, method="POST", block=True))
    def create(self, request: Request, *args, **kwargs) -> Response:
        """
        Places a new order.

        Returns 201 with the order, or 200 with the previously stored order
        when the Idempotency-Key header repeats an earlier submission.
        """
        serializer = OrderCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_order_response(serializer.errors)

        try:
            idempotency_key = parse_idempotency_key(request)
        except ValueError:
            return invalid_order_response(
                {IDEMPOTENCY_HEADER: ["Must be a UUID."]}, "Invalid Idempotency-Key header."
            )

        customer = request.user if request.user.is_authenticated else None
        result = self.get_order_service().create_order(
            serializer.to_request(customer=customer, idempotency_key=idempotency_key)
        )
        if not result.ok:
            return order_error_response(result.error)

        response_status = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        return Response(OrderSerializer(result.order).data, status=response_status)

    def _load_order(self, request: Request, pk):
        result = OrderService.get_order(int(pk))
        if result.ok:
            self.check_object_permissions(request, result.order)
        return result

    def retrieve(self, request: Request, pk=None) -> Response:
        result = self._load_order(request, pk)
        if not result.ok:
            return order_error_response(result.error)
        return Response(OrderSerializer(result.order).data)

    @action(detail=True, methods=["get"])
    def history(self, request: Request, pk=None) -> Response:
        """Status transitions of the order, oldest first."""
        result = self._load_order(request, pk)
        if not result.ok:
            return order_error_response(result.error)
        serializer = OrderStatusHistorySerializer(result.order.status_history.all(), many=True)
        return Response(serializer.data)

    @action(detail=False, methods=["get"])
    def pending(self, request: Request) -> Response:
        """Open orders (not completed or cancelled), oldest first. Not paginated."""
        orders = OrderService.list_pending_orders()
        return Response(OrderSerializer(orders, many=True).data)
