"""
HTTP API tests for /api/analytics/.
"""
import pytest
from django.db import DatabaseError

from analytics.models import DailyAnalytics
from orders.models import Order

from .conftest import BUSY_DAY


@pytest.mark.django_db
class TestAnalyticsPermissions:

    @pytest.mark.parametrize(
        "url",
        [
            "/api/analytics/daily/2026-03-10/",
            "/api/analytics/dashboard/",
            "/api/analytics/window/?from=2026-03-01&to=2026-03-10",
            "/api/analytics/monthly/2026/3/",
        ],
    )
    def test_customers_are_forbidden(self, customer_client, url):
        assert customer_client.get(url).status_code == 403

    def test_anonymous_is_rejected(self, api_client):
        assert api_client.get("/api/analytics/dashboard/").status_code in (401, 403)


@pytest.mark.django_db
class TestDailyEndpoints:

    def test_daily(self, staff_client, busy_day):
        response = staff_client.get("/api/analytics/daily/2026-03-10/")

        assert response.status_code == 200
        assert response.data["total_orders"] == 3
        assert response.data["total_revenue"] == "45.05"
        assert DailyAnalytics.objects.filter(date=BUSY_DAY).exists()

    def test_invalid_date(self, staff_client):
        response = staff_client.get("/api/analytics/daily/2026-02-30/")

        assert response.status_code == 400

    def test_refresh_recomputes_snapshot(self, staff_client, busy_day, make_order, local_dt):
        staff_client.get("/api/analytics/daily/2026-03-10/")
        make_order(created_at=local_dt(BUSY_DAY, 20))

        cached = staff_client.get("/api/analytics/daily/2026-03-10/")
        refreshed = staff_client.post("/api/analytics/daily/2026-03-10/refresh/")

        assert cached.data["total_orders"] == 3
        assert refreshed.status_code == 200
        assert refreshed.data["total_orders"] == 4

    def test_store_failure_is_service_unavailable(self, staff_client, monkeypatch):
        def unavailable(*args, **kwargs):
            raise DatabaseError("connection refused")

        monkeypatch.setattr(Order.objects, "created_between", unavailable)

        response = staff_client.get("/api/analytics/daily/2026-03-10/?use_cache=false")

        assert response.status_code == 503


@pytest.mark.django_db
class TestReportEndpoints:

    def test_window(self, staff_client, busy_day):
        response = staff_client.get("/api/analytics/window/", {"from": "2026-03-09", "to": "2026-03-10"})

        assert response.status_code == 200
        assert response.data["total_orders"] == 1

    def test_window_with_equal_dates_is_empty(self, staff_client, busy_day):
        response = staff_client.get("/api/analytics/window/", {"from": "2026-03-10", "to": "2026-03-10"})

        assert response.status_code == 200
        assert response.data["total_orders"] == 0

    def test_window_requires_both_dates(self, staff_client):
        response = staff_client.get("/api/analytics/window/", {"from": "2026-03-09"})

        assert response.status_code == 400
        assert "to" in response.data

    def test_reversed_window(self, staff_client):
        response = staff_client.get("/api/analytics/window/", {"from": "2026-03-10", "to": "2026-03-01"})

        assert response.status_code == 400

    def test_weekly(self, staff_client, busy_day):
        response = staff_client.get("/api/analytics/weekly/", {"week_start": "2026-03-09"})

        assert response.status_code == 200
        assert len(response.data["orders_by_weekday"]) == 7

    def test_weekly_defaults_to_current_week(self, staff_client):
        response = staff_client.get("/api/analytics/weekly/")

        assert response.status_code == 200
        assert response.data["total_orders"] == 0

    def test_monthly(self, staff_client, busy_day):
        response = staff_client.get("/api/analytics/monthly/2026/3/")

        assert response.status_code == 200
        assert response.data["revenue_growth"] == 100.0

    def test_monthly_rejects_bad_month(self, staff_client):
        assert staff_client.get("/api/analytics/monthly/2026/13/").status_code == 400

    @pytest.mark.parametrize("year", ["0000", "9999"])
    def test_monthly_rejects_unrepresentable_year(self, staff_client, year):
        response = staff_client.get(f"/api/analytics/monthly/{year}/1/")

        assert response.status_code == 400
        assert response.data == {"error": f"Invalid year: {int(year)}"}

    def test_dashboard(self, staff_client):
        response = staff_client.get("/api/analytics/dashboard/")

        assert response.status_code == 200
        assert set(response.data) == {"date", "today", "this_week", "this_month"}

    def test_sales_trend(self, staff_client):
        response = staff_client.get("/api/analytics/sales-trend/", {"days": 7})

        assert response.status_code == 200
        assert len(response.data["days"]) == 7

    def test_sales_trend_bounds(self, staff_client):
        assert staff_client.get("/api/analytics/sales-trend/", {"days": 0}).status_code == 400
