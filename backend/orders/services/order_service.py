import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone

from orders.calculators import PricingBreakdown, PricingCalculator
from orders.config import OrderingConfig
from orders.models import LineSource, Order, OrderItem, generate_order_number
from orders.results import ErrorKind, InvalidOrderError, OrderResult
from orders.signals import order_created

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLineRequest:
    source: LineSource
    name: str
    quantity: int
    unit_price: Decimal
    notes: str = ""


@dataclass(frozen=True)
class OrderRequest:
    """Validated input for a new order. Money fields are never part of it."""

    order_type: str
    items: List[OrderLineRequest] = field(default_factory=list)
    customer: Any = None
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    delivery_address: str = ""
    delivery_instructions: str = ""
    payment_method: str = Order.PaymentMethod.STRIPE
    notes: str = ""
    idempotency_key: Optional[UUID] = None


class OrderService:
    """Order creation and lookup. Status changes live in OrderStatusService."""

    PENDING_STATUSES = [
        Order.OrderStatus.RECEIVED,
        Order.OrderStatus.ACCEPTED,
        Order.OrderStatus.IN_PREPARATION,
        Order.OrderStatus.READY,
        Order.OrderStatus.OUT_FOR_DELIVERY,
    ]

    def __init__(self, publisher=None, config: Optional[OrderingConfig] = None, calculator=None):
        self.config = config or OrderingConfig.from_settings()
        self.calculator = calculator or PricingCalculator.from_config(self.config)
        self._publisher = publisher

    @property
    def publisher(self):
        if self._publisher is None:
            from notifications.apps import get_event_publisher

            self._publisher = get_event_publisher()
        return self._publisher

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_order(self, request: OrderRequest) -> OrderResult:
        """
        Price and persist a new order in RECEIVED / PENDING state.

        Returns ``created=False`` with the stored order when the idempotency
        key was already used. Creation writes no status history row.
        """
        if request.idempotency_key:
            existing = self._find_by_idempotency_key(request.idempotency_key)
            if existing is not None:
                logger.info(
                    f"Idempotent replay for key {request.idempotency_key}: returning order {existing.order_number}"
                )
                return OrderResult.success(existing, created=False)

        try:
            self.validate_request(request)
            breakdown = self.calculator.calculate(request.items, request.order_type)
        except InvalidOrderError as e:
            logger.warning(f"Rejected order: {e}")
            return OrderResult.failure(ErrorKind.INVALID_ORDER, str(e), errors=e.field_errors)

        try:
            order = self._persist(request, breakdown)
        except IntegrityError:
            # Another request carrying the same key won the insert race.
            if request.idempotency_key:
                existing = self._find_by_idempotency_key(request.idempotency_key)
                if existing is not None:
                    logger.info(f"Idempotency key {request.idempotency_key} raced; returning {existing.order_number}")
                    return OrderResult.success(existing, created=False)
            raise

        logger.info(
            f"Created order {order.order_number} ({order.order_type}) total={order.total} "
            f"for {order.customer_display_name}"
        )
        return OrderResult.success(order, created=True)

    @staticmethod
    def validate_request(request: OrderRequest) -> None:
        errors = {}
        if request.order_type not in Order.OrderType.values:
            errors["order_type"] = [f"'{request.order_type}' is not a valid order type."]
        if request.order_type == Order.OrderType.DELIVERY and not (request.delivery_address or "").strip():
            errors["delivery_address"] = ["A delivery address is required for delivery orders."]
        if request.payment_method not in Order.PaymentMethod.values:
            errors["payment_method"] = [f"'{request.payment_method}' is not a valid payment method."]
        if request.customer is None and not (request.customer_name or "").strip():
            errors["customer_name"] = ["Guest orders need a customer name."]

        if errors:
            raise InvalidOrderError("Order data is invalid.", errors)

    @transaction.atomic
    def _persist(self, request: OrderRequest, breakdown: PricingBreakdown) -> Order:
        now = timezone.now()
        order = self._insert_order(request, breakdown, now)

        OrderItem.objects.bulk_create(
            [
                OrderItem.for_source(
                    line.source,
                    order=order,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    notes=line.notes,
                    created_at=now,
                )
                for line in request.items
            ]
        )

        order = Order.objects.with_details().get(pk=order.pk)
        self.publisher.order_created(order)
        transaction.on_commit(lambda: order_created.send(sender=Order, order=order))
        return order

    def _insert_order(self, request: OrderRequest, breakdown: PricingBreakdown, now) -> Order:
        customer = request.customer
        fields = dict(
            idempotency_key=request.idempotency_key,
            customer=customer,
            customer_name=request.customer_name or (customer.get_full_name() if customer else ""),
            customer_email=request.customer_email or (customer.email if customer else ""),
            customer_phone=request.customer_phone,
            order_type=request.order_type,
            delivery_address=request.delivery_address if request.order_type == Order.OrderType.DELIVERY else "",
            delivery_instructions=request.delivery_instructions,
            payment_method=request.payment_method,
            notes=request.notes,
            created_at=now,
            estimated_delivery_time=now + self._estimated_lead_time(request.order_type),
            **breakdown.as_dict(),
        )

        max_attempts = self.config.order_number_max_attempts
        for attempt in range(1, max_attempts + 1):
            order_number = generate_order_number(self.config.order_number_prefix, now)
            try:
                with transaction.atomic():
                    return Order.objects.create(order_number=order_number, **fields)
            except IntegrityError:
                if request.idempotency_key and Order.objects.filter(
                    idempotency_key=request.idempotency_key
                ).exists():
                    raise
                logger.warning(f"Order number collision on {order_number} (attempt {attempt}/{max_attempts})")

        raise IntegrityError(f"Could not allocate a unique order number after {max_attempts} attempts")

    def _estimated_lead_time(self, order_type: str) -> timedelta:
        if order_type == Order.OrderType.DELIVERY:
            return timedelta(minutes=self.config.estimated_delivery_minutes)
        return timedelta(minutes=self.config.estimated_pickup_minutes)

    @staticmethod
    def _find_by_idempotency_key(key) -> Optional[Order]:
        return Order.objects.with_details().filter(idempotency_key=key).first()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def get_order(order_id) -> OrderResult:
        order = Order.objects.with_details().filter(pk=order_id).first()
        if order is None:
            return OrderResult.not_found(order_id)
        return OrderResult.success(order)

    @staticmethod
    def get_order_by_number(order_number: str) -> OrderResult:
        order = Order.objects.with_details().filter(order_number=order_number).first()
        if order is None:
            return OrderResult.not_found(order_number, lookup="order_number")
        return OrderResult.success(order)

    @staticmethod
    def list_orders(status: Optional[str] = None, from_date=None):
        """Orders newest first, optionally narrowed by status and a created_at lower bound."""
        queryset = Order.objects.with_details()
        if status:
            queryset = queryset.with_status(status)
        if from_date is not None:
            queryset = queryset.created_since(from_date)
        return queryset.order_by("-created_at")

    @classmethod
    def list_pending_orders(cls):
        """Open orders, oldest first (kitchen queue order)."""
        return Order.objects.with_details().filter(status__in=cls.PENDING_STATUSES).order_by("created_at")
