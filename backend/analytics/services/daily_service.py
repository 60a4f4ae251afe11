import logging
from collections import Counter
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from django.db import transaction
from django.db.models import Count, DecimalField, ExpressionWrapper, F, IntegerField, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from orders.models import Order, OrderItem

from ..models import DailyAnalytics
from .base import BaseAnalyticsService

logger = logging.getLogger(__name__)


class AnalyticsService(BaseAnalyticsService):
    """
    Read-only aggregation over historical orders.

    Results contain no wall-clock values: computing the same window twice
    over unchanged orders gives identical output. Revenue and averages only
    count COMPLETED orders; order counts include every status.
    """

    def compute_daily_analytics(self, day: date) -> Dict[str, Any]:
        start, end = self.day_bounds(day)
        return {"date": day.isoformat(), **self.compute_metrics(start, end)}

    def compute_window(self, from_date: date, to_date: date) -> Dict[str, Any]:
        start, end = self.window_bounds(from_date, to_date)
        return {
            "from_date": from_date.isoformat(),
            "to_date": to_date.isoformat(),
            **self.compute_metrics(start, end),
        }

    def compute_metrics(self, start: datetime, end: datetime) -> Dict[str, Any]:
        logger.debug(f"Computing analytics for [{start.isoformat()}, {end.isoformat()})")
        return self.run_query(lambda: self._aggregate(start, end))

    def _aggregate(self, start: datetime, end: datetime) -> Dict[str, Any]:
        orders = Order.objects.created_between(start, end)

        totals = orders.aggregate(
            total_orders=Count("id"),
            delivery_orders=Count("id", filter=Q(order_type=Order.OrderType.DELIVERY)),
            pickup_orders=Count("id", filter=Q(order_type=Order.OrderType.PICKUP)),
            completed_orders=Count("id", filter=Q(status=Order.OrderStatus.COMPLETED)),
            cancelled_orders=Count("id", filter=Q(status=Order.OrderStatus.CANCELLED)),
            total_revenue=self.completed_revenue_expression(),
        )

        return {
            "total_orders": totals["total_orders"],
            "total_revenue": self.money(totals["total_revenue"]),
            "delivery_orders": totals["delivery_orders"],
            "pickup_orders": totals["pickup_orders"],
            "completed_orders": totals["completed_orders"],
            "cancelled_orders": totals["cancelled_orders"],
            "average_order_value": self.average_order_value(totals["total_revenue"], totals["completed_orders"]),
            "average_preparation_seconds": self._average_preparation_seconds(orders),
            "popular_items": self._popular_items(start, end),
            "hourly_order_counts": self._hourly_order_counts(orders),
        }

    @staticmethod
    def _average_preparation_seconds(orders) -> float:
        stamps = orders.filter(
            preparation_started_at__isnull=False, preparation_completed_at__isnull=False
        ).values_list("preparation_started_at", "preparation_completed_at")

        durations = [(completed - started).total_seconds() for started, completed in stamps]
        if not durations:
            return 0.0
        return round(sum(durations) / len(durations), 2)

    def _popular_items(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        line_revenue = ExpressionWrapper(
            F("unit_price") * F("quantity"), output_field=DecimalField(max_digits=12, decimal_places=2)
        )
        rows = list(
            OrderItem.objects.filter(
                order__created_at__gte=start,
                order__created_at__lt=end,
                order__status=Order.OrderStatus.COMPLETED,
            )
            .values("name")
            .annotate(count=Sum("quantity"), revenue=Sum(line_revenue))
            .order_by("-count", "name")[: self.config.popular_items_limit]
        )

        # Percentages are relative to the returned set, not to all items sold
        returned_quantity = sum(row["count"] for row in rows)
        return [
            {
                "name": row["name"],
                "count": row["count"],
                "revenue": self.money(Decimal(row["revenue"] or 0)),
                "percentage": self.percentage(row["count"], returned_quantity),
            }
            for row in rows
        ]

    def _hourly_order_counts(self, orders) -> List[Dict[str, int]]:
        tz = self.local_timezone()
        hours = Counter(
            timezone.localtime(created_at, tz).hour for created_at in orders.values_list("created_at", flat=True)
        )
        return [{"hour": hour, "order_count": hours[hour]} for hour in sorted(hours)]

    # --- Snapshot cache ---

    def get_daily_analytics(self, day: date, use_cache: bool = True) -> Dict[str, Any]:
        """
        Daily analytics, served from the DailyAnalytics snapshot when present.
        With ``use_cache=False`` the snapshot is recomputed and replaced.

        The day's orders are fingerprinted before computing and again after
        storing. If an order was created or changed in between, its own
        invalidation may already have run against the old snapshot, so the
        freshly stored one is dropped and rebuilt on the next read.
        """
        if use_cache:
            snapshot = self.run_query(lambda: DailyAnalytics.objects.filter(date=day).first())
            if snapshot is not None:
                logger.debug(f"Serving cached analytics for {day}")
                return snapshot.data

        watermark = self.day_watermark(day)
        data = self.compute_daily_analytics(day)
        self.run_query(lambda: self._store_snapshot(day, data))

        if self.day_watermark(day) != watermark:
            logger.info(f"Orders for {day} changed while computing analytics; dropping snapshot")
            self.invalidate(day)
        else:
            logger.info(f"Stored analytics snapshot for {day}: {data['total_orders']} orders")
        return data

    def refresh_daily_analytics(self, day: date) -> Dict[str, Any]:
        return self.get_daily_analytics(day, use_cache=False)

    def day_watermark(self, day: date) -> Tuple[int, int]:
        """(order count, sum of versions) for the day; every creation and every write moves it."""
        start, end = self.day_bounds(day)
        totals = self.run_query(
            lambda: Order.objects.created_between(start, end).aggregate(
                order_count=Count("id"), versions=Coalesce(Sum("version"), 0, output_field=IntegerField())
            )
        )
        return totals["order_count"], totals["versions"]

    @staticmethod
    @transaction.atomic
    def _store_snapshot(day: date, data: Dict[str, Any]) -> DailyAnalytics:
        snapshot, _ = DailyAnalytics.objects.update_or_create(date=day, defaults={"data": data})
        return snapshot

    @staticmethod
    def invalidate(day: date) -> int:
        deleted, _ = DailyAnalytics.objects.filter(date=day).delete()
        if deleted:
            logger.info(f"Invalidated analytics snapshot for {day}")
        return deleted
