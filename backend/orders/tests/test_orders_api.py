"""
HTTP API tests for /api/orders/.
"""
import uuid
from datetime import date

import pytest

from orders.models import Order, OrderStatusHistory

S = Order.OrderStatus


@pytest.fixture(autouse=True)
def quiet_publisher(monkeypatch, publisher):
    """Route service events to the recording publisher instead of the channel layer."""
    monkeypatch.setattr("notifications.apps.get_event_publisher", lambda: publisher)


@pytest.mark.django_db
class TestCreateOrderEndpoint:

    def test_guest_can_place_order(self, api_client, order_payload, publisher):
        response = api_client.post("/api/orders/", order_payload, format="json")

        assert response.status_code == 201, response.data
        data = response.data
        # 2 x 12.00 + 9.00 = 33.00, tax 6%
        assert data["subtotal"] == "33.00"
        assert data["delivery_fee"] == "0.00"
        assert data["tax_amount"] == "1.98"
        assert data["total"] == "34.98"
        assert data["status"] == "RECEIVED"
        assert data["version"] == 1
        assert data["customer_id"] is None
        assert [item["source_type"] for item in data["items"]] == ["CATALOG", "CUSTOM"]
        assert publisher.of_type("OrderCreated") == [("OrderCreated", data["order_number"], 1)]

    def test_money_fields_in_request_are_ignored(self, api_client, order_payload):
        order_payload["total"] = "0.01"
        order_payload["subtotal"] = "0.01"

        response = api_client.post("/api/orders/", order_payload, format="json")

        assert response.data["total"] == "34.98"

    def test_authenticated_customer_owns_order(self, customer_client, customer_user, order_payload):
        order_payload.pop("customer_name")

        response = customer_client.post("/api/orders/", order_payload, format="json")

        assert response.status_code == 201
        assert response.data["customer_id"] == customer_user.pk
        assert response.data["customer_display_name"] == "Hana Sato"

    def test_delivery_needs_address(self, api_client, order_payload):
        order_payload["order_type"] = "delivery"

        response = api_client.post("/api/orders/", order_payload, format="json")

        assert response.status_code == 400
        assert response.data["code"] == "INVALID_ORDER"
        assert "delivery_address" in response.data["errors"]

    def test_line_needs_exactly_one_source(self, api_client, order_payload):
        order_payload["items"][0]["custom_build"] = {"base": "rice"}

        response = api_client.post("/api/orders/", order_payload, format="json")

        assert response.status_code == 400
        assert "items" in response.data["errors"]

    def test_empty_items_rejected(self, api_client, order_payload):
        order_payload["items"] = []

        response = api_client.post("/api/orders/", order_payload, format="json")

        assert response.status_code == 400
        assert Order.objects.count() == 0

    def test_idempotency_key_replays_order(self, api_client, order_payload):
        key = str(uuid.uuid4())

        first = api_client.post("/api/orders/", order_payload, format="json", HTTP_IDEMPOTENCY_KEY=key)
        second = api_client.post("/api/orders/", order_payload, format="json", HTTP_IDEMPOTENCY_KEY=key)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.data["order_number"] == first.data["order_number"]
        assert Order.objects.count() == 1

    def test_malformed_idempotency_key(self, api_client, order_payload):
        response = api_client.post("/api/orders/", order_payload, format="json", HTTP_IDEMPOTENCY_KEY="not-a-uuid")

        assert response.status_code == 400
        assert "Idempotency-Key" in response.data["errors"]

    def test_creation_is_rate_limited(self, api_client, order_payload, settings):
        settings.ORDERING = {**settings.ORDERING, "ORDER_CREATE_RATE": "2/m"}

        codes = [api_client.post("/api/orders/", order_payload, format="json").status_code for _ in range(3)]

        assert codes == [201, 201, 403]


@pytest.mark.django_db
class TestReadEndpoints:

    def test_list_requires_staff(self, customer_client):
        assert customer_client.get("/api/orders/").status_code == 403

    def test_anonymous_list_is_rejected(self, api_client):
        assert api_client.get("/api/orders/").status_code in (401, 403)

    def test_staff_list_with_status_filter(self, staff_client, make_order):
        make_order()
        ready = make_order(status=S.READY)

        response = staff_client.get("/api/orders/", {"status": "Ready"})

        assert response.status_code == 200
        assert [order["id"] for order in response.data["results"]] == [ready.pk]

    def test_unknown_status_filter_matches_nothing(self, staff_client, make_order):
        make_order()

        response = staff_client.get("/api/orders/", {"status": "Eaten"})

        assert response.data["results"] == []

    def test_created_at_filter(self, staff_client, make_order, local_dt):
        make_order(created_at=local_dt(date(2026, 1, 1)))
        recent = make_order(created_at=local_dt(date(2026, 6, 1)))

        response = staff_client.get("/api/orders/", {"created_at__gte": "2026-03-01T00:00:00Z"})

        assert [order["id"] for order in response.data["results"]] == [recent.pk]

    def test_pending(self, staff_client, make_order):
        open_order = make_order(status=S.ACCEPTED)
        make_order(status=S.COMPLETED)

        response = staff_client.get("/api/orders/pending/")

        assert response.status_code == 200
        assert [order["id"] for order in response.data] == [open_order.pk]

    def test_owner_can_retrieve(self, customer_client, customer_user, make_order):
        order = make_order(customer=customer_user)

        response = customer_client.get(f"/api/orders/{order.pk}/")

        assert response.status_code == 200
        assert response.data["order_number"] == order.order_number

    def test_other_customer_cannot_retrieve(self, api_client, other_customer, customer_user, make_order):
        order = make_order(customer=customer_user)
        api_client.force_authenticate(user=other_customer)

        assert api_client.get(f"/api/orders/{order.pk}/").status_code == 403

    def test_retrieve_unknown(self, staff_client):
        response = staff_client.get("/api/orders/999999/")

        assert response.status_code == 404
        assert response.data == {"error": "Order 999999 not found.", "code": "ORDER_NOT_FOUND", "order_id": 999999}

    def test_history(self, staff_client, make_order, status_service, staff_user):
        order = make_order()
        status_service.transition(order.pk, S.ACCEPTED, actor=staff_user, note="on it")

        response = staff_client.get(f"/api/orders/{order.pk}/history/")

        assert response.status_code == 200
        assert len(response.data) == 1
        assert response.data[0]["previous_status"] == "RECEIVED"
        assert response.data[0]["new_status"] == "ACCEPTED"
        assert response.data[0]["changed_by_username"] == "kitchen"
        assert response.data[0]["notes"] == "on it"


@pytest.mark.django_db
class TestTrackingEndpoint:

    def test_anonymous_tracking_hides_contact_data(self, api_client, make_order):
        order = make_order(customer_name="Aiko Tanaka")

        response = api_client.get(f"/api/orders/track/{order.order_number}/")

        assert response.status_code == 200
        assert response.data["status"] == "RECEIVED"
        assert "customer_name" not in response.data
        assert "customer_email" not in response.data
        assert "delivery_address" not in response.data

    def test_unknown_order_number(self, api_client):
        response = api_client.get("/api/orders/track/HS000/")

        assert response.status_code == 404
        assert response.data["order_number"] == "HS000"


@pytest.mark.django_db
class TestStatusEndpoint:

    def test_staff_moves_order_forward(self, staff_client, make_order, staff_user):
        order = make_order()

        response = staff_client.post(f"/api/orders/{order.pk}/status/", {"status": "accepted"}, format="json")

        assert response.status_code == 200
        assert response.data["status"] == "ACCEPTED"
        assert response.data["version"] == 2
        assert response.data["accepted_by_id"] == staff_user.pk

    def test_numeric_status(self, staff_client, make_order):
        order = make_order()

        response = staff_client.post(f"/api/orders/{order.pk}/status/", {"status": 6}, format="json")

        assert response.data["status"] == "CANCELLED"

    def test_invalid_transition_is_conflict(self, staff_client, make_order):
        order = make_order()

        response = staff_client.post(f"/api/orders/{order.pk}/status/", {"status": "Ready"}, format="json")

        assert response.status_code == 409
        assert response.data["code"] == "INVALID_TRANSITION"
        assert response.data["allowed_statuses"] == ["ACCEPTED", "CANCELLED"]

    def test_malformed_status(self, staff_client, make_order):
        order = make_order()

        response = staff_client.post(f"/api/orders/{order.pk}/status/", {"status": "Eaten"}, format="json")

        assert response.status_code == 400
        assert response.data["code"] == "INVALID_ORDER"

    def test_unknown_order(self, staff_client):
        response = staff_client.post("/api/orders/999999/status/", {"status": "ACCEPTED"}, format="json")

        assert response.status_code == 404

    def test_customers_cannot_change_status(self, customer_client, customer_user, make_order):
        order = make_order(customer=customer_user)

        response = customer_client.post(f"/api/orders/{order.pk}/status/", {"status": "CANCELLED"}, format="json")

        assert response.status_code == 403
        assert OrderStatusHistory.objects.count() == 0

    def test_stale_write_is_conflict(self, staff_client, make_order, monkeypatch):
        order = make_order()
        original = Order.objects.update_if_version

        def lose_race(pk, expected_version, guard=None, **changes):
            # Another request lands first
            original(pk, expected_version, notes="changed elsewhere")
            return original(pk, expected_version, guard=guard, **changes)

        monkeypatch.setattr(Order.objects, "update_if_version", lose_race)

        response = staff_client.post(f"/api/orders/{order.pk}/status/", {"status": "ACCEPTED"}, format="json")

        assert response.status_code == 409
        assert response.data["code"] == "CONCURRENT_MODIFICATION"
        assert response.data["current_version"] == 2
