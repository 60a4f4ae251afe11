from django.urls import path

from .views import OrderPaymentStatusView, StripeWebhookView

app_name = "payments"

urlpatterns = [
    path("orders/<int:order_id>/status/", OrderPaymentStatusView.as_view(), name="order-payment-status"),
    path("webhooks/stripe/", StripeWebhookView.as_view(), name="stripe-webhook"),
]
