"""
Base service class for analytics with shared date-window and money helpers.
"""
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Optional, Tuple

from django.db import DatabaseError
from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from orders.config import OrderingConfig
from orders.models import Order
from payments.money import quantize

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class AnalyticsComputationError(Exception):
    """The order store could not be read while computing analytics."""


class BaseAnalyticsService:
    """
    Common functionality for analytics services.

    Day boundaries are local midnights in the configured TIME_ZONE; every
    window is half-open, [start, end).
    """

    def __init__(self, config: Optional[OrderingConfig] = None):
        self.config = config or OrderingConfig.from_settings()

    # --- Date windows ---

    @staticmethod
    def local_timezone():
        return timezone.get_default_timezone()

    @classmethod
    def local_midnight(cls, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=cls.local_timezone())

    @classmethod
    def day_bounds(cls, day: date) -> Tuple[datetime, datetime]:
        return cls.local_midnight(day), cls.local_midnight(day + timedelta(days=1))

    @classmethod
    def window_bounds(cls, from_date: date, to_date: date) -> Tuple[datetime, datetime]:
        """[from_date, to_date): to_date itself is excluded, equal dates give an empty window."""
        if from_date > to_date:
            raise ValueError(f"from_date {from_date} is after to_date {to_date}")
        return cls.local_midnight(from_date), cls.local_midnight(to_date)

    @classmethod
    def _inclusive_bounds(cls, first_day: date, last_day: date) -> Tuple[datetime, datetime]:
        return cls.window_bounds(first_day, last_day + timedelta(days=1))

    @staticmethod
    def today() -> date:
        return timezone.localdate()

    # --- Formatting ---

    def money(self, value) -> str:
        return str(quantize(self.config.currency, value or ZERO))

    @staticmethod
    def percentage(part, whole) -> float:
        if not whole:
            return 0.0
        ratio = Decimal(part) * 100 / Decimal(whole)
        return float(ratio.quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN))

    # --- Shared aggregates ---

    @staticmethod
    def completed_revenue_expression():
        return Coalesce(
            Sum("total", filter=Q(status=Order.OrderStatus.COMPLETED)),
            Value(ZERO),
            output_field=DecimalField(max_digits=12, decimal_places=2),
        )

    def summarize(self, start: datetime, end: datetime) -> dict:
        """Order count, completed count, completed revenue and average order value."""
        totals = self.run_query(
            lambda: Order.objects.created_between(start, end).aggregate(
                order_count=Count("id"),
                completed_orders=Count("id", filter=Q(status=Order.OrderStatus.COMPLETED)),
                revenue=self.completed_revenue_expression(),
            )
        )
        return {
            "order_count": totals["order_count"],
            "completed_orders": totals["completed_orders"],
            "revenue": self.money(totals["revenue"]),
            "average_order_value": self.average_order_value(totals["revenue"], totals["completed_orders"]),
        }

    def average_order_value(self, revenue, completed_orders: int) -> str:
        if not completed_orders:
            return self.money(ZERO)
        return self.money(Decimal(revenue) / completed_orders)

    @staticmethod
    def run_query(query):
        """Run a read against the order store, translating failures to AnalyticsComputationError."""
        try:
            return query()
        except DatabaseError as e:
            logger.error(f"Analytics query failed: {e}")
            raise AnalyticsComputationError(f"Analytics could not be computed: {e}") from e
