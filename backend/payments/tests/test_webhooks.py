"""
Stripe webhook and staff payment endpoint tests.

Webhook payloads are signed with the test secret exactly the way Stripe
signs them, so the real signature verification runs.
"""
import hashlib
import hmac
import json
import time

import pytest

from orders.models import Order

P = Order.PaymentStatus
WEBHOOK_URL = "/api/payments/webhooks/stripe/"


@pytest.fixture(autouse=True)
def quiet_publisher(monkeypatch, publisher):
    monkeypatch.setattr("notifications.apps.get_event_publisher", lambda: publisher)


def sign(payload: str, secret: str = "whsec_test_secret") -> str:
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type, order_id=None, **fields):
    obj = {"id": "pi_3Test", "object": "payment_intent", "metadata": {}, **fields}
    if order_id is not None:
        obj["metadata"]["order_id"] = str(order_id)
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}})


def post_event(client, payload, signature=None):
    headers = {}
    if signature is not False:
        headers["HTTP_STRIPE_SIGNATURE"] = signature or sign(payload)
    return client.post(WEBHOOK_URL, data=payload, content_type="application/json", **headers)


@pytest.mark.django_db
class TestStripeWebhook:

    def test_payment_succeeded_marks_order_paid(self, api_client, make_order):
        order = make_order()

        response = post_event(
            api_client,
            stripe_event("payment_intent.succeeded", order.pk, amount_received=500 + 30, currency="eur"),
        )

        assert response.status_code == 200
        assert response.data == {"received": True, "handled": True, "changed": True}
        order.refresh_from_db()
        assert order.payment_status == P.PAID
        assert order.payment_reference == "pi_3Test"

    def test_redelivered_event_is_idempotent(self, api_client, make_order):
        order = make_order()
        payload = stripe_event("payment_intent.succeeded", order.pk)

        post_event(api_client, payload)
        response = post_event(api_client, payload)

        assert response.data["changed"] is False
        order.refresh_from_db()
        assert order.version == 2

    def test_payment_failed(self, api_client, make_order):
        order = make_order()

        post_event(api_client, stripe_event("payment_intent.payment_failed", order.pk))

        order.refresh_from_db()
        assert order.payment_status == P.FAILED

    def test_refund_uses_payment_intent_reference(self, api_client, make_order):
        order = make_order()

        post_event(
            api_client,
            stripe_event("charge.refunded", order.pk, id="ch_1", object="charge", payment_intent="pi_original"),
        )

        order.refresh_from_db()
        assert order.payment_status == P.REFUNDED
        assert order.payment_reference == "pi_original"

    def test_unknown_order_is_acknowledged(self, api_client):
        response = post_event(api_client, stripe_event("payment_intent.succeeded", 777777))

        assert response.status_code == 200
        assert response.data["handled"] is False

    def test_event_without_order_metadata(self, api_client):
        response = post_event(api_client, stripe_event("payment_intent.succeeded"))

        assert response.status_code == 200
        assert response.data == {"received": True, "handled": False}

    def test_unhandled_event_type(self, api_client, make_order):
        order = make_order()

        response = post_event(api_client, stripe_event("customer.created", order.pk))

        assert response.status_code == 200
        assert response.data["handled"] is False
        order.refresh_from_db()
        assert order.payment_status == P.PENDING

    def test_bad_signature(self, api_client, make_order):
        order = make_order()
        payload = stripe_event("payment_intent.succeeded", order.pk)

        response = post_event(api_client, payload, signature=sign(payload, secret="whsec_wrong"))

        assert response.status_code == 400
        order.refresh_from_db()
        assert order.payment_status == P.PENDING

    def test_missing_signature(self, api_client):
        response = post_event(api_client, stripe_event("payment_intent.succeeded", 1), signature=False)

        assert response.status_code == 400

    def test_payload_that_is_not_an_object(self, api_client):
        response = post_event(api_client, json.dumps(["not", "an", "event"]))

        assert response.status_code == 400

    def test_amount_mismatch_is_logged(self, api_client, make_order, caplog):
        order = make_order()

        with caplog.at_level("WARNING", logger="payments.views"):
            post_event(
                api_client,
                stripe_event("payment_intent.succeeded", order.pk, amount_received=1, currency="eur"),
            )

        assert "amount mismatch" in caplog.text
        order.refresh_from_db()
        assert order.payment_status == P.PAID


@pytest.mark.django_db
class TestOrderPaymentStatusEndpoint:

    def test_staff_marks_cash_collected(self, staff_client, make_order):
        order = make_order()

        response = staff_client.post(
            f"/api/payments/orders/{order.pk}/status/", {"payment_status": "paid"}, format="json"
        )

        assert response.status_code == 200
        assert response.data["changed"] is True
        assert response.data["order"]["payment_status"] == "PAID"

    def test_unknown_order(self, staff_client):
        response = staff_client.post("/api/payments/orders/999999/status/", {"payment_status": "PAID"}, format="json")

        assert response.status_code == 404
        assert response.data["code"] == "ORDER_NOT_FOUND"

    def test_invalid_status(self, staff_client, make_order):
        order = make_order()

        response = staff_client.post(
            f"/api/payments/orders/{order.pk}/status/", {"payment_status": "maybe"}, format="json"
        )

        assert response.status_code == 400

    def test_customers_are_forbidden(self, customer_client, customer_user, make_order):
        order = make_order(customer=customer_user)

        response = customer_client.post(
            f"/api/payments/orders/{order.pk}/status/", {"payment_status": "PAID"}, format="json"
        )

        assert response.status_code == 403
