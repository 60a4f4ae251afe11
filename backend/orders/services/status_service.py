import logging
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from orders.models import Order, OrderStatusHistory
from orders.results import ErrorKind, OrderResult
from orders.signals import order_status_changed

logger = logging.getLogger(__name__)


class OrderStatusService:
    """
    Guarded order status state machine.

    Every transition is a compare-and-swap on (version, status): the write
    only lands when nobody else changed the order since it was read. A lost
    race is reported as CONCURRENT_MODIFICATION and never retried here.
    """

    # Valid status transitions for the fulfillment state machine
    ALLOWED_TRANSITIONS = {
        Order.OrderStatus.RECEIVED: [
            Order.OrderStatus.ACCEPTED,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.ACCEPTED: [
            Order.OrderStatus.IN_PREPARATION,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.IN_PREPARATION: [
            Order.OrderStatus.READY,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.READY: [
            Order.OrderStatus.OUT_FOR_DELIVERY,
            Order.OrderStatus.COMPLETED,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.OUT_FOR_DELIVERY: [
            Order.OrderStatus.COMPLETED,
        ],
        Order.OrderStatus.COMPLETED: [],
        Order.OrderStatus.CANCELLED: [],
    }

    # Timestamp stamped when an order enters the status
    LIFECYCLE_TIMESTAMPS = {
        Order.OrderStatus.ACCEPTED: "accepted_at",
        Order.OrderStatus.IN_PREPARATION: "preparation_started_at",
        Order.OrderStatus.READY: "preparation_completed_at",
        Order.OrderStatus.COMPLETED: "actual_delivery_time",
    }

    def __init__(self, publisher=None):
        self._publisher = publisher

    @property
    def publisher(self):
        if self._publisher is None:
            from notifications.apps import get_event_publisher

            self._publisher = get_event_publisher()
        return self._publisher

    @classmethod
    def allowed_statuses(cls, current_status) -> List[str]:
        return [str(status) for status in cls.ALLOWED_TRANSITIONS.get(current_status, [])]

    @classmethod
    def can_transition(cls, current_status, target_status) -> bool:
        return target_status in cls.ALLOWED_TRANSITIONS.get(current_status, [])

    def transition(self, order_id, target_status, actor=None, note: str = "") -> OrderResult:
        """Load the order by id and apply the transition."""
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            logger.warning(f"Status change to {target_status} requested for unknown order {order_id}")
            return OrderResult.not_found(order_id)
        return self.apply_transition(order, target_status, actor=actor, note=note)

    def apply_transition(self, order: Order, target_status, actor=None, note: str = "") -> OrderResult:
        """
        Apply a transition to an already-loaded order.

        The instance's ``version`` and ``status`` are the values the write is
        conditioned on. On success the instance is updated in place.
        """
        current_status = order.status
        if not self.can_transition(current_status, target_status):
            allowed = self.allowed_statuses(current_status)
            logger.warning(
                f"Rejected transition for order {order.order_number}: {current_status} -> {target_status} "
                f"(allowed: {allowed or 'none'})"
            )
            return OrderResult.failure(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot change order {order.order_number} from {current_status} to {target_status}.",
                order_id=order.pk,
                current_status=str(current_status),
                attempted_status=str(target_status),
                allowed_statuses=allowed,
            )

        return self._commit_transition(order, current_status, Order.OrderStatus(target_status), actor, note)

    @transaction.atomic
    def _commit_transition(self, order: Order, current_status, target_status, actor, note: str) -> OrderResult:
        actor = self._actor_or_none(actor)
        now = timezone.now()

        changes = {"status": target_status, "updated_at": now}
        timestamp_field = self.LIFECYCLE_TIMESTAMPS.get(target_status)
        if timestamp_field:
            changes[timestamp_field] = now
        if target_status == Order.OrderStatus.ACCEPTED:
            changes["accepted_by"] = actor

        updated, version = Order.objects.update_if_version(
            order.pk, order.version, guard={"status": current_status}, **changes
        )
        if not updated:
            if version is None:
                return OrderResult.not_found(order.pk)
            logger.warning(
                f"Concurrent modification of order {order.order_number}: expected version {order.version}, "
                f"found {version}"
            )
            return OrderResult.failure(
                ErrorKind.CONCURRENT_MODIFICATION,
                f"Order {order.order_number} was modified by another request. Reload and try again.",
                order_id=order.pk,
                expected_version=order.version,
                current_version=version,
            )

        OrderStatusHistory.objects.create(
            order=order,
            previous_status=current_status,
            new_status=target_status,
            changed_by=actor,
            notes=note or "",
            created_at=now,
        )

        for field_name, value in changes.items():
            setattr(order, field_name, value)
        order.version = version

        self.publisher.order_status_changed(order)
        transaction.on_commit(
            lambda: order_status_changed.send(
                sender=Order, order=order, previous_status=current_status, new_status=target_status
            )
        )

        logger.info(
            f"Order {order.order_number}: {current_status} -> {target_status} (version {version}, "
            f"by {actor or 'system'})"
        )
        return OrderResult.success(order)

    @staticmethod
    def _actor_or_none(actor) -> Optional[object]:
        if actor is not None and getattr(actor, "is_authenticated", False):
            return actor
        return None
