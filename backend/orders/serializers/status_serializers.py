from rest_framework import serializers

from orders.models import OrderStatusHistory

from .fields import OrderStatusField


class UpdateOrderStatusSerializer(serializers.Serializer):
    """
    Serializer for a requested status change. Transition legality is decided
    by OrderStatusService, not here.
    """

    status = OrderStatusField()
    note = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    changed_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    changed_by_username = serializers.CharField(source="changed_by.username", read_only=True, default=None)

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "previous_status",
            "new_status",
            "changed_by_id",
            "changed_by_username",
            "notes",
            "created_at",
        ]
        read_only_fields = fields
