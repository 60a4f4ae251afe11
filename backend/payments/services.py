import logging
from dataclasses import dataclass
from typing import Any, Optional

from django.db import transaction
from django.utils import timezone

from orders.models import Order
from orders.results import ErrorKind, OrderError
from orders.signals import order_payment_status_changed

logger = logging.getLogger(__name__)


@dataclass
class PaymentUpdateResult:
    ok: bool
    changed: bool = False
    order: Any = None
    error: Optional[OrderError] = None


class PaymentReconciler:
    """
    Applies payment-status updates reported by providers or staff.

    Payment status is independent of the order's fulfillment status. Updates
    are idempotent (repeating the current status is a successful no-op) and
    use the same version compare-and-swap as status transitions.
    """

    def __init__(self, publisher=None):
        self._publisher = publisher

    @property
    def publisher(self):
        if self._publisher is None:
            from notifications.apps import get_event_publisher

            self._publisher = get_event_publisher()
        return self._publisher

    def update_payment_status(self, order_id, new_status, provider_reference: Optional[str] = None) -> PaymentUpdateResult:
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            # Providers retry on errors; an unknown order is reported, not raised.
            logger.warning(f"Payment update to {new_status} for unknown order {order_id}")
            return PaymentUpdateResult(
                ok=False,
                error=OrderError(ErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found.", {"order_id": order_id}),
            )
        return self.apply_payment_status(order, new_status, provider_reference)

    def apply_payment_status(self, order: Order, new_status, provider_reference: Optional[str] = None) -> PaymentUpdateResult:
        new_status = Order.PaymentStatus(new_status)

        same_reference = not provider_reference or provider_reference == order.payment_reference
        if order.payment_status == new_status and same_reference:
            logger.info(f"Payment status of order {order.order_number} already {new_status}; nothing to do")
            return PaymentUpdateResult(ok=True, changed=False, order=order)

        return self._commit_payment_status(order, new_status, provider_reference)

    @transaction.atomic
    def _commit_payment_status(self, order: Order, new_status, provider_reference: Optional[str]) -> PaymentUpdateResult:
        previous_status = order.payment_status
        changes = {"payment_status": new_status, "updated_at": timezone.now()}
        if provider_reference:
            changes["payment_reference"] = provider_reference

        updated, version = Order.objects.update_if_version(
            order.pk, order.version, guard={"payment_status": previous_status}, **changes
        )
        if not updated:
            logger.warning(
                f"Concurrent modification while updating payment of order {order.order_number}: "
                f"expected version {order.version}, found {version}"
            )
            return PaymentUpdateResult(
                ok=False,
                order=order,
                error=OrderError(
                    ErrorKind.CONCURRENT_MODIFICATION,
                    f"Order {order.order_number} was modified by another request.",
                    {"order_id": order.pk, "expected_version": order.version, "current_version": version},
                ),
            )

        for field_name, value in changes.items():
            setattr(order, field_name, value)
        order.version = version

        self.publisher.payment_status_changed(order)
        transaction.on_commit(
            lambda: order_payment_status_changed.send(
                sender=Order, order=order, previous_status=previous_status, new_status=new_status
            )
        )

        logger.info(f"Order {order.order_number} payment: {previous_status} -> {new_status} (version {version})")
        return PaymentUpdateResult(ok=True, changed=True, order=order)
