"""
Period reports built on top of the daily aggregation: dashboard, weekly,
monthly and sales trend.
"""
import calendar
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db.models import Count, Q
from django.db.models.functions import ExtractIsoWeekDay, TruncDate

from orders.models import Order

from .daily_service import AnalyticsService

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = list(calendar.day_name)

# The day after the last day of a report must still be a valid date
MIN_YEAR = date.min.year
MAX_YEAR = date.max.year - 1


class AnalyticsReportService(AnalyticsService):

    def dashboard(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Order count, completed revenue and average order value for today, this week and this month."""
        today = today or self.today()
        week_start = today - timedelta(days=today.weekday())
        month_start = today.replace(day=1)

        return {
            "date": today.isoformat(),
            "today": self.summarize(*self._inclusive_bounds(today, today)),
            "this_week": {"start": week_start.isoformat(), **self.summarize(*self._inclusive_bounds(week_start, today))},
            "this_month": {
                "start": month_start.isoformat(),
                **self.summarize(*self._inclusive_bounds(month_start, today)),
            },
        }

    def weekly_report(self, week_start: date) -> Dict[str, Any]:
        week_end = week_start + timedelta(days=6)
        report = self._period_report(week_start, week_end)
        report["orders_by_weekday"] = self._orders_by_weekday(week_start, week_end)
        return report

    def _period_report(self, first_day: date, last_day: date) -> Dict[str, Any]:
        """Window metrics over whole local days, both ends included."""
        return {
            "from_date": first_day.isoformat(),
            "to_date": last_day.isoformat(),
            **self.compute_metrics(*self._inclusive_bounds(first_day, last_day)),
        }

    def _orders_by_weekday(self, from_date: date, to_date: date) -> List[Dict[str, Any]]:
        start, end = self._inclusive_bounds(from_date, to_date)
        rows = self.run_query(
            lambda: list(
                Order.objects.created_between(start, end)
                .annotate(weekday=ExtractIsoWeekDay("created_at", tzinfo=self.local_timezone()))
                .values("weekday")
                .annotate(order_count=Count("id"))
                .order_by("weekday")
            )
        )
        counts = {row["weekday"]: row["order_count"] for row in rows}

        # ISO weekdays: Monday is 1
        return [
            {"weekday": WEEKDAY_NAMES[iso_day - 1], "order_count": counts.get(iso_day, 0)}
            for iso_day in range(1, 8)
        ]

    def monthly_report(self, year: int, month: int) -> Dict[str, Any]:
        if not MIN_YEAR <= year <= MAX_YEAR:
            raise ValueError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
        if not 1 <= month <= 12:
            raise ValueError("month must be between 1 and 12")

        month_start = date(year, month, 1)
        month_end = date(year, month, calendar.monthrange(year, month)[1])

        report = self._period_report(month_start, month_end)
        if month_start == date.min:
            previous = {"revenue": self.money(None)}
        else:
            previous_end = month_start - timedelta(days=1)
            previous = self.summarize(*self._inclusive_bounds(previous_end.replace(day=1), previous_end))

        report["year"] = year
        report["month"] = month
        report["unique_customers"] = self._unique_customers(month_start, month_end)
        report["previous_month_revenue"] = previous["revenue"]
        report["revenue_growth"] = self.growth(Decimal(previous["revenue"]), Decimal(report["total_revenue"]))
        report["daily_breakdown"] = self.daily_series(month_start, month_end)
        return report

    @classmethod
    def growth(cls, previous: Decimal, current: Decimal) -> float:
        """Percentage change; 100 when growing from nothing, 0 when both are zero."""
        if not previous:
            return 100.0 if current else 0.0
        return cls.percentage(current - previous, previous)

    def _unique_customers(self, from_date: date, to_date: date) -> int:
        start, end = self._inclusive_bounds(from_date, to_date)
        return self.run_query(
            lambda: Order.objects.created_between(start, end)
            .filter(customer__isnull=False)
            .order_by()
            .values("customer_id")
            .distinct()
            .count()
        )

    def sales_trend(self, days: int = 30, today: Optional[date] = None) -> Dict[str, Any]:
        if days < 1:
            raise ValueError("days must be at least 1")
        today = today or self.today()
        from_date = today - timedelta(days=days - 1)
        return {
            "from_date": from_date.isoformat(),
            "to_date": today.isoformat(),
            "days": self.daily_series(from_date, today),
        }

    def daily_series(self, from_date: date, to_date: date) -> List[Dict[str, Any]]:
        """Completed orders and revenue per local day, including days without orders."""
        start, end = self._inclusive_bounds(from_date, to_date)
        rows = self.run_query(
            lambda: list(
                Order.objects.created_between(start, end)
                .annotate(day=TruncDate("created_at", tzinfo=self.local_timezone()))
                .values("day")
                .annotate(
                    order_count=Count("id"),
                    completed_orders=Count("id", filter=Q(status=Order.OrderStatus.COMPLETED)),
                    revenue=self.completed_revenue_expression(),
                )
                .order_by("day")
            )
        )
        by_day = {row["day"]: row for row in rows}

        series = []
        day = from_date
        while day <= to_date:
            row = by_day.get(day)
            series.append(
                {
                    "date": day.isoformat(),
                    "order_count": row["order_count"] if row else 0,
                    "completed_orders": row["completed_orders"] if row else 0,
                    "revenue": self.money(row["revenue"] if row else None),
                }
            )
            day += timedelta(days=1)
        return series
