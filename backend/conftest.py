"""
Root conftest.py for all backend tests.

This file makes fixtures available to all test files across all apps.
"""
from datetime import datetime, time
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone


# ============================================================================
# AUTO-USE FIXTURES (Run automatically for every test)
# ============================================================================

@pytest.fixture(autouse=True)
def clear_cache_after_test():
    """
    Clear cache after each test to prevent cache pollution.

    Rate limit counters live in the cache, so leftovers would throttle the next test.
    """
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def ordering_settings(settings):
    """Pin pricing configuration so money assertions do not depend on the environment."""
    settings.ORDERING = {
        "TAX_RATE": "0.06",
        "DELIVERY_FEE": "3.50",
        "CURRENCY": "EUR",
        "ORDER_NUMBER_PREFIX": "HS",
        "ORDER_NUMBER_MAX_ATTEMPTS": 5,
        "ESTIMATED_PICKUP_MINUTES": 30,
        "ESTIMATED_DELIVERY_MINUTES": 60,
        "POPULAR_ITEMS_LIMIT": 10,
        "ORDER_CREATE_RATE": "1000/m",
    }
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    return settings.ORDERING


# ============================================================================
# USER AND API CLIENT FIXTURES
# ============================================================================

@pytest.fixture
def api_client():
    """
    Provide DRF API client for API tests.

    Usage:
        def test_my_api(api_client):
            response = api_client.get('/api/orders/track/HS123/')
            assert response.status_code == 200
    """
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def staff_user(django_user_model):
    return django_user_model.objects.create_user(
        username="kitchen", password="test-pass-123", email="kitchen@example.com", is_staff=True
    )


@pytest.fixture
def other_staff_user(django_user_model):
    return django_user_model.objects.create_user(
        username="counter", password="test-pass-123", is_staff=True
    )


@pytest.fixture
def customer_user(django_user_model):
    return django_user_model.objects.create_user(
        username="hana",
        password="test-pass-123",
        email="hana@example.com",
        first_name="Hana",
        last_name="Sato",
    )


@pytest.fixture
def other_customer(django_user_model):
    return django_user_model.objects.create_user(username="kenji", password="test-pass-123")


@pytest.fixture
def staff_client(api_client, staff_user):
    api_client.force_authenticate(user=staff_user)
    return api_client


@pytest.fixture
def customer_client(api_client, customer_user):
    api_client.force_authenticate(user=customer_user)
    return api_client


# ============================================================================
# EVENT PUBLISHER FIXTURES
# ============================================================================

class RecordingPublisher:
    """Stands in for OrderEventPublisher and records what services ask it to publish."""

    def __init__(self):
        self.events = []

    def order_created(self, order):
        self.events.append(("OrderCreated", order.order_number, order.version))

    def order_status_changed(self, order):
        self.events.append(("OrderStatusChanged", order.order_number, order.version))

    def payment_status_changed(self, order):
        self.events.append(("PaymentStatusChanged", order.order_number, order.version))

    def of_type(self, event_type):
        return [event for event in self.events if event[0] == event_type]


@pytest.fixture
def publisher():
    return RecordingPublisher()


# ============================================================================
# ORDER FIXTURES
# ============================================================================

@pytest.fixture
def order_service(publisher):
    from orders.services import OrderService
    return OrderService(publisher=publisher)


@pytest.fixture
def status_service(publisher):
    from orders.services import OrderStatusService
    return OrderStatusService(publisher=publisher)


@pytest.fixture
def make_line():
    """Build an OrderLineRequest; catalog lines by default."""
    from orders.models import CatalogSource, CustomSource
    from orders.services import OrderLineRequest

    def _make_line(name="Salmon Nigiri", quantity=1, unit_price="5.00", item_id=1, build=None, notes=""):
        source = CustomSource(build=build) if build is not None else CatalogSource(item_id=item_id)
        return OrderLineRequest(
            source=source, name=name, quantity=quantity, unit_price=Decimal(unit_price), notes=notes
        )

    return _make_line


@pytest.fixture
def make_order(order_service, make_line):
    """
    Create an order through OrderService.

    ``created_at`` (an aware datetime) backdates the order; ``status`` moves it
    directly to a status without history, for analytics scenarios.
    """
    from orders.models import Order
    from orders.services import OrderRequest

    def _make_order(
        lines=None,
        order_type=Order.OrderType.PICKUP,
        customer=None,
        customer_name="Walk-in Guest",
        delivery_address="",
        created_at=None,
        status=None,
        **extra,
    ):
        request = OrderRequest(
            order_type=order_type,
            items=lines if lines is not None else [make_line()],
            customer=customer,
            customer_name=customer_name,
            delivery_address=delivery_address or ("1 Harbour Street" if order_type == Order.OrderType.DELIVERY else ""),
        )
        result = order_service.create_order(request)
        assert result.ok, result.error

        updates = dict(extra)
        if created_at is not None:
            updates["created_at"] = created_at
        if status is not None:
            updates["status"] = status
        if updates:
            Order.objects.filter(pk=result.order.pk).update(**updates)
            return Order.objects.with_details().get(pk=result.order.pk)
        return result.order

    return _make_order


@pytest.fixture
def local_dt():
    """Aware datetime in the configured TIME_ZONE."""

    def _local_dt(day, hour=12, minute=0):
        return datetime.combine(day, time(hour, minute), tzinfo=timezone.get_default_timezone())

    return _local_dt


@pytest.fixture
def order_payload():
    return {
        "order_type": "PICKUP",
        "customer_name": "Aiko Tanaka",
        "customer_email": "aiko@example.com",
        "items": [
            {"catalog_item_id": 12, "name": "Dragon Roll", "quantity": 2, "unit_price": "12.00"},
            {"custom_build": {"base": "rice", "fish": ["salmon"]}, "name": "Custom Bowl", "quantity": 1, "unit_price": "9.00"},
        ],
    }
