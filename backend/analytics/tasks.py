import logging
from datetime import date as date_cls, timedelta

from celery import shared_task
from django.utils import timezone

from .services import AnalyticsService

logger = logging.getLogger(__name__)


@shared_task
def compute_daily_analytics_task(date=None):
    """
    Recompute and store the analytics snapshot for ``date`` (ISO string),
    defaulting to yesterday in the local time zone. Scheduled nightly.
    """
    day = date_cls.fromisoformat(date) if date else timezone.localdate() - timedelta(days=1)

    logger.info(f"Refreshing daily analytics for {day}")
    data = AnalyticsService().refresh_daily_analytics(day)
    logger.info(
        f"Daily analytics for {day} refreshed: {data['total_orders']} orders, revenue {data['total_revenue']}"
    )
    return {"status": "completed", "date": day.isoformat(), "total_orders": data["total_orders"]}
