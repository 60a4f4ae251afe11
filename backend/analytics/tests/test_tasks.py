from datetime import timedelta

import pytest
from django.utils import timezone

from analytics.models import DailyAnalytics
from analytics.tasks import compute_daily_analytics_task

from .conftest import BUSY_DAY


@pytest.mark.django_db
class TestComputeDailyAnalyticsTask:

    def test_refreshes_given_date(self, busy_day):
        result = compute_daily_analytics_task("2026-03-10")

        assert result == {"status": "completed", "date": "2026-03-10", "total_orders": 3}
        assert DailyAnalytics.objects.get(date=BUSY_DAY).data["total_revenue"] == "45.05"

    def test_replaces_stale_snapshot(self, busy_day):
        DailyAnalytics.objects.create(date=BUSY_DAY, data={"total_orders": 99})

        compute_daily_analytics_task.apply(args=["2026-03-10"])

        assert DailyAnalytics.objects.get(date=BUSY_DAY).data["total_orders"] == 3

    def test_defaults_to_yesterday(self):
        yesterday = timezone.localdate() - timedelta(days=1)

        result = compute_daily_analytics_task()

        assert result["date"] == yesterday.isoformat()
        assert DailyAnalytics.objects.filter(date=yesterday).exists()
