from rest_framework import serializers

from orders.serializers import PaymentStatusField


class UpdatePaymentStatusSerializer(serializers.Serializer):
    payment_status = PaymentStatusField()
    payment_reference = serializers.CharField(required=False, allow_blank=True, max_length=255)
