import json
import logging
from datetime import datetime, timezone

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from .publishers import OrderEventPublisher

logger = logging.getLogger(__name__)

# Close codes sent before the handshake is accepted
CLOSE_UNAUTHENTICATED = 4001
CLOSE_FORBIDDEN = 4003
CLOSE_NOT_FOUND = 4004


class OrderFeedConsumer(AsyncWebsocketConsumer):
    """
    Base consumer for live order feeds.

    Subclasses decide which channel groups a connection may join. Every
    feed forwards ``order.event`` messages from the channel layer and drops
    events older than the last one it forwarded for the same order.
    """

    feed_name = "orders"

    async def connect(self):
        self.feed_groups = []
        self.last_versions = {}

        groups = await self.resolve_groups()
        if not groups:
            return

        for group in groups:
            await self.channel_layer.group_add(group, self.channel_name)
        self.feed_groups = groups

        await self.accept()
        logger.info(f"{self.__class__.__name__} connected to {', '.join(groups)}")

        await self.send_json(
            {
                "type": "connection_established",
                "feed": self.feed_name,
                "timestamp": self.get_timestamp(),
            }
        )
        await self.on_connected()

    async def resolve_groups(self):
        """Return the groups to join, or close the socket and return None."""
        raise NotImplementedError

    async def on_connected(self):
        pass

    async def disconnect(self, close_code):
        for group in getattr(self, "feed_groups", []):
            await self.channel_layer.group_discard(group, self.channel_name)
        logger.info(f"{self.__class__.__name__} disconnected (code {close_code})")

    async def receive(self, text_data=None, bytes_data=None):
        """
        Handle client-side messages. Only ``{"type": "ping"}`` is understood.
        """
        try:
            data = json.loads(text_data or "")
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON received on {self.feed_name} feed")
            return

        message_type = data.get("type") if isinstance(data, dict) else None
        if message_type == "ping":
            await self.send_json({"type": "pong", "timestamp": self.get_timestamp()})
        else:
            logger.warning(f"Unknown message type on {self.feed_name} feed: {message_type}")

    # WebSocket event handlers (called by channel layer)

    async def order_event(self, event):
        payload = event["event"]
        order = payload.get("order") or {}
        order_key = order.get("order_number")
        version = order.get("version")

        if order_key is not None and version is not None:
            last_version = self.last_versions.get(order_key)
            if last_version is not None and version < last_version:
                logger.debug(
                    f"Dropping stale {payload.get('eventType')} for {order_key}: "
                    f"version {version} < {last_version}"
                )
                return
            self.last_versions[order_key] = version

        await self.send_json(payload)

    async def send_json(self, content):
        await self.send(text_data=json.dumps(content))

    def get_timestamp(self):
        return datetime.now(timezone.utc).isoformat()


class AdminOrderFeedConsumer(OrderFeedConsumer):
    """All order events, for staff dashboards and the kitchen display."""

    feed_name = "admin"

    async def resolve_groups(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated and user.is_staff):
            logger.warning("Admin order feed rejected: not a staff user")
            await self.close(code=CLOSE_FORBIDDEN)
            return None
        return [OrderEventPublisher.admin_group()]


class CustomerOrderFeedConsumer(OrderFeedConsumer):
    """Events for the authenticated customer's own orders."""

    feed_name = "customer"

    async def resolve_groups(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            logger.warning("Customer order feed rejected: anonymous connection")
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return None
        return [OrderEventPublisher.customer_group(user.pk)]


class OrderTrackingConsumer(OrderFeedConsumer):
    """
    Anonymous tracking of a single order by its order number.
    Sends the current state as an ``OrderSnapshot`` right after connecting.
    """

    feed_name = "tracking"

    async def resolve_groups(self):
        self.order_number = self.scope["url_route"]["kwargs"]["order_number"]
        self.snapshot = await self.load_snapshot(self.order_number)
        if self.snapshot is None:
            logger.warning(f"Tracking feed rejected: unknown order {self.order_number}")
            await self.close(code=CLOSE_NOT_FOUND)
            return None
        return [OrderEventPublisher.order_group(self.order_number)]

    async def on_connected(self):
        self.last_versions[self.order_number] = self.snapshot["version"]
        await self.send_json({"eventType": "OrderSnapshot", "order": self.snapshot})

    @database_sync_to_async
    def load_snapshot(self, order_number):
        from orders.models import Order
        from orders.serializers import OrderTrackingSerializer

        order = Order.objects.prefetch_related("items").filter(order_number=order_number).first()
        if order is None:
            return None
        return json.loads(json.dumps(OrderTrackingSerializer(order).data, default=str))
