from datetime import date, timedelta

import pytest

from analytics.services import AnalyticsReportService, AnalyticsService
from orders.models import Order

BUSY_DAY = date(2026, 3, 10)


@pytest.fixture
def analytics_service():
    return AnalyticsService()


@pytest.fixture
def report_service():
    return AnalyticsReportService()


@pytest.fixture
def busy_day(make_order, make_line, local_dt):
    """
    Three orders on BUSY_DAY plus one just before midnight of the previous day.

    A: pickup, completed, 2 x Dragon Roll + 1 x Miso Soup, total 28.62, 10 min prep
    B: delivery, completed, 1 x Dragon Roll, total 16.43, 20 min prep
    C: pickup, cancelled, 5 x Salmon Nigiri, total 26.50
    """
    opened = local_dt(BUSY_DAY, 9, 30)
    orders = {
        "A": make_order(
            lines=[
                make_line(name="Dragon Roll", quantity=2, unit_price="12.00", item_id=1),
                make_line(name="Miso Soup", quantity=1, unit_price="3.00", item_id=2),
            ],
            status=Order.OrderStatus.COMPLETED,
            created_at=opened,
            preparation_started_at=opened + timedelta(minutes=5),
            preparation_completed_at=opened + timedelta(minutes=15),
        ),
        "B": make_order(
            lines=[make_line(name="Dragon Roll", quantity=1, unit_price="12.00", item_id=1)],
            order_type=Order.OrderType.DELIVERY,
            status=Order.OrderStatus.COMPLETED,
            created_at=local_dt(BUSY_DAY, 12, 15),
            preparation_started_at=local_dt(BUSY_DAY, 12, 20),
            preparation_completed_at=local_dt(BUSY_DAY, 12, 40),
        ),
        "C": make_order(
            lines=[make_line(name="Salmon Nigiri", quantity=5, unit_price="5.00", item_id=3)],
            status=Order.OrderStatus.CANCELLED,
            created_at=local_dt(BUSY_DAY, 12, 45),
        ),
        "previous_day": make_order(created_at=local_dt(BUSY_DAY - timedelta(days=1), 23, 59)),
    }
    return orders
