import logging

from django.dispatch import receiver
from django.utils import timezone

from orders.models import Order
from orders.signals import order_created, order_payment_status_changed, order_status_changed

from .services import AnalyticsService

logger = logging.getLogger(__name__)


@receiver(order_created, sender=Order)
@receiver(order_status_changed, sender=Order)
@receiver(order_payment_status_changed, sender=Order)
def invalidate_order_day_snapshot(sender, order, **kwargs):
    """
    Drop the cached analytics of the local day the order was created on.
    The snapshot is recomputed on the next read.
    """
    day = timezone.localtime(order.created_at, timezone.get_default_timezone()).date()
    AnalyticsService.invalidate(day)
