"""
Real-time order event fan-out over the Channels layer.

Events are registered inside the database transaction that produced them
and sent from ``transaction.on_commit``: observers never see state that was
rolled back, and per-order events go out in commit order. Delivery is
best-effort; a failing group send is logged and never reaches the caller.
"""
import json
import logging
from typing import Dict, Iterable, List, Tuple

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

logger = logging.getLogger(__name__)

ORDER_CREATED = "OrderCreated"
ORDER_STATUS_CHANGED = "OrderStatusChanged"
PAYMENT_STATUS_CHANGED = "PaymentStatusChanged"

# Channel layer message type, dispatched to ``order_event`` on consumers
MESSAGE_TYPE = "order.event"


class OrderEventPublisher:
    """Centralized event publishing for order events."""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    # --- Group names ---

    @staticmethod
    def admin_group() -> str:
        return "admins"

    @staticmethod
    def customer_group(customer_id) -> str:
        return f"customer_{customer_id}"

    @staticmethod
    def order_group(order_number: str) -> str:
        return f"order_{order_number}"

    def audience_for(self, order) -> List[str]:
        groups = [self.admin_group(), self.order_group(order.order_number)]
        if order.customer_id:
            groups.append(self.customer_group(order.customer_id))
        return groups

    # --- Event entry points (called by services inside their transaction) ---

    def order_created(self, order):
        self._publish_on_commit(ORDER_CREATED, order, self.audience_for(order))

    def order_status_changed(self, order):
        self._publish_on_commit(ORDER_STATUS_CHANGED, order, self.audience_for(order))

    def payment_status_changed(self, order):
        self._publish_on_commit(PAYMENT_STATUS_CHANGED, order, [self.admin_group()])

    # --- Delivery ---

    def build_message(self, event_type: str, order, group: str) -> Dict:
        # Local import: serializers import services, which import this module lazily
        from orders.serializers import OrderSerializer, OrderTrackingSerializer

        # The order-number group is open to anonymous trackers; it gets the contact-free view.
        if group.startswith("order_"):
            data = OrderTrackingSerializer(order).data
        else:
            data = OrderSerializer(order).data

        # Round-trip through JSON so the layer only ever carries plain types
        payload = json.loads(json.dumps({"eventType": event_type, "order": data}, cls=DjangoJSONEncoder))
        return {"type": MESSAGE_TYPE, "event": payload}

    def publish(self, event_type: str, order, groups: Iterable[str]) -> int:
        """Send the event to every group immediately. Returns the number of successful sends."""
        messages = self._build_messages(event_type, order, groups)
        return self.send_messages(messages)

    def send_messages(self, messages: List[Tuple[str, Dict]]) -> int:
        layer = self.channel_layer
        if layer is None:
            logger.warning("Channel layer not available. Order events are not broadcast.")
            return 0

        delivered = 0
        for group, message in messages:
            try:
                async_to_sync(layer.group_send)(group, message)
                delivered += 1
            except Exception as e:
                logger.error(f"Failed to send {message['event']['eventType']} to group {group}: {e}")
        return delivered

    def _build_messages(self, event_type: str, order, groups: Iterable[str]) -> List[Tuple[str, Dict]]:
        messages = []
        for group in groups:
            try:
                messages.append((group, self.build_message(event_type, order, group)))
            except Exception as e:
                logger.error(f"Could not build {event_type} event for order {order.order_number}: {e}")
        return messages

    def _publish_on_commit(self, event_type: str, order, groups: List[str]):
        # Snapshot now: the instance may be mutated again before commit.
        messages = self._build_messages(event_type, order, groups)
        logger.info(f"Publishing {event_type} for order {order.order_number} (version {order.version}) after commit")
        transaction.on_commit(lambda: self.send_messages(messages))

