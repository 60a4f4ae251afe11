"""
Payment status endpoints.

- OrderPaymentStatusView: staff sets an order's payment status (cash on
  delivery collected, manual refunds).
- StripeWebhookView: Stripe reports payment outcomes asynchronously.
"""
import json
import logging

import stripe
from django.conf import settings
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.models import Order
from orders.permissions import IsStaff
from orders.results import ErrorKind
from orders.serializers import OrderSerializer
from orders.views.errors import invalid_order_response, order_error_response

from .money import to_minor
from .serializers import UpdatePaymentStatusSerializer
from .services import PaymentReconciler

logger = logging.getLogger(__name__)


class OrderPaymentStatusView(APIView):
    permission_classes = [IsStaff]

    def get_reconciler(self) -> PaymentReconciler:
        return PaymentReconciler()

    def post(self, request: Request, order_id: int) -> Response:
        serializer = UpdatePaymentStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_order_response(serializer.errors, "Invalid payment status update.")

        result = self.get_reconciler().update_payment_status(
            order_id,
            serializer.validated_data["payment_status"],
            provider_reference=serializer.validated_data.get("payment_reference") or None,
        )
        if not result.ok:
            return order_error_response(result.error)

        return Response({"changed": result.changed, "order": OrderSerializer(result.order).data})


@method_decorator(csrf_exempt, name="dispatch")
class StripeWebhookView(APIView):
    """
    Stripe webhook view to handle asynchronous payment events.

    Unknown orders are acknowledged with 200 so Stripe stops retrying;
    version conflicts answer 409 so Stripe retries later.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    # Stripe event type -> payment status
    EVENT_STATUS = {
        "payment_intent.succeeded": Order.PaymentStatus.PAID,
        "payment_intent.payment_failed": Order.PaymentStatus.FAILED,
        "charge.refunded": Order.PaymentStatus.REFUNDED,
    }

    def get_reconciler(self) -> PaymentReconciler:
        return PaymentReconciler()

    def post(self, request, *args, **kwargs):
        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE")
        endpoint_secret = settings.STRIPE_WEBHOOK_SECRET

        if not sig_header:
            logger.error("Stripe webhook: Missing Stripe-Signature header")
            return Response({"error": "Missing signature."}, status=status.HTTP_400_BAD_REQUEST)

        try:
            raw_payload = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(raw_payload, sig_header, endpoint_secret)
            event = json.loads(raw_payload)
            if not isinstance(event, dict):
                raise ValueError("event is not a JSON object")
        except ValueError as e:
            # Invalid payload
            logger.error(f"Stripe webhook: Invalid payload - {e}")
            return Response({"error": "Invalid payload."}, status=status.HTTP_400_BAD_REQUEST)
        except stripe.SignatureVerificationError as e:
            # Invalid signature
            logger.error(f"Stripe webhook: Invalid signature - {e}")
            return Response({"error": "Invalid signature."}, status=status.HTTP_400_BAD_REQUEST)

        event_type = event.get("type")
        new_status = self.EVENT_STATUS.get(event_type)
        if new_status is None:
            logger.info(f"Stripe webhook: ignoring event type {event_type}")
            return Response({"received": True, "handled": False})

        stripe_object = (event.get("data") or {}).get("object") or {}
        order_id = self._order_id_from(stripe_object)
        if order_id is None:
            logger.warning(f"Stripe webhook: {event_type} {stripe_object.get('id')} carries no order_id metadata")
            return Response({"received": True, "handled": False})

        reference = stripe_object.get("payment_intent") or stripe_object.get("id")
        result = self.get_reconciler().update_payment_status(order_id, new_status, provider_reference=reference)

        if not result.ok:
            if result.error.kind == ErrorKind.ORDER_NOT_FOUND:
                return Response({"received": True, "handled": False})
            return order_error_response(result.error)

        if event_type == "payment_intent.succeeded":
            self._check_amount(result.order, stripe_object)

        return Response({"received": True, "handled": True, "changed": result.changed})

    @staticmethod
    def _order_id_from(stripe_object):
        metadata = stripe_object.get("metadata") or {}
        raw = metadata.get("order_id")
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _check_amount(order, payment_intent):
        amount_received = payment_intent.get("amount_received")
        currency = (payment_intent.get("currency") or "eur").upper()
        if amount_received is None:
            return
        expected = to_minor(currency, order.total)
        if amount_received != expected:
            logger.warning(
                f"Stripe amount mismatch for order {order.order_number}: "
                f"received {amount_received}, expected {expected} {currency}"
            )
