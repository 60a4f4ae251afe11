from decimal import Decimal

from rest_framework import serializers

from orders.models import CatalogSource, CustomSource, Order, OrderItem
from orders.services.order_service import OrderLineRequest, OrderRequest

from .fields import CoercedChoiceField


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "source_type",
            "catalog_item_id",
            "custom_build",
            "name",
            "quantity",
            "unit_price",
            "line_total",
            "notes",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """
    Full order representation (the order DTO). Used by the staff API, the
    owning customer, and the admin and customer event feeds.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    customer_id = serializers.IntegerField(read_only=True, allow_null=True)
    customer_display_name = serializers.CharField(read_only=True)
    accepted_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "version",
            "status",
            "payment_status",
            "payment_method",
            "payment_reference",
            "order_type",
            "customer_id",
            "customer_display_name",
            "customer_name",
            "customer_email",
            "customer_phone",
            "delivery_address",
            "delivery_instructions",
            "subtotal",
            "delivery_fee",
            "tax_amount",
            "total",
            "notes",
            "items",
            "created_at",
            "updated_at",
            "estimated_delivery_time",
            "accepted_at",
            "accepted_by_id",
            "preparation_started_at",
            "preparation_completed_at",
            "actual_delivery_time",
        ]
        read_only_fields = fields


class OrderTrackingSerializer(serializers.ModelSerializer):
    """Public view of an order for anonymous tracking by order number. No contact data."""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "order_number",
            "version",
            "status",
            "payment_status",
            "order_type",
            "subtotal",
            "delivery_fee",
            "tax_amount",
            "total",
            "items",
            "created_at",
            "estimated_delivery_time",
            "accepted_at",
            "preparation_started_at",
            "preparation_completed_at",
            "actual_delivery_time",
        ]
        read_only_fields = fields


class OrderLineInputSerializer(serializers.Serializer):
    """
    One requested line. A line is either a catalog item (``catalog_item_id``)
    or a custom build (``custom_build``), never both.
    """

    source_type = serializers.ChoiceField(choices=OrderItem.SourceType.choices, required=False)
    catalog_item_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    custom_build = serializers.JSONField(required=False, allow_null=True)
    name = serializers.CharField(max_length=200)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        catalog_item_id = attrs.get("catalog_item_id")
        custom_build = attrs.get("custom_build")

        if (catalog_item_id is None) == (custom_build is None):
            raise serializers.ValidationError("Provide exactly one of catalog_item_id or custom_build.")

        inferred = OrderItem.SourceType.CATALOG if catalog_item_id is not None else OrderItem.SourceType.CUSTOM
        if attrs.get("source_type") and attrs["source_type"] != inferred:
            raise serializers.ValidationError({"source_type": f"Does not match the provided source ({inferred})."})
        if custom_build is not None and not isinstance(custom_build, dict):
            raise serializers.ValidationError({"custom_build": "Must be a JSON object."})

        attrs["source_type"] = inferred
        return attrs

    @staticmethod
    def to_line(attrs) -> OrderLineRequest:
        if attrs["source_type"] == OrderItem.SourceType.CATALOG:
            source = CatalogSource(item_id=attrs["catalog_item_id"])
        else:
            source = CustomSource(build=attrs["custom_build"])
        return OrderLineRequest(
            source=source,
            name=attrs["name"],
            quantity=attrs["quantity"],
            unit_price=attrs["unit_price"],
            notes=attrs.get("notes", ""),
        )


class OrderCreateSerializer(serializers.Serializer):
    """
    Input for POST /api/orders/. Monetary fields are not accepted; the
    pricing calculator derives them.
    """

    order_type = CoercedChoiceField(Order.OrderType)
    items = OrderLineInputSerializer(many=True, allow_empty=False)
    customer_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    delivery_address = serializers.CharField(required=False, allow_blank=True, default="")
    delivery_instructions = serializers.CharField(required=False, allow_blank=True, default="")
    payment_method = CoercedChoiceField(Order.PaymentMethod, required=False, default=Order.PaymentMethod.STRIPE)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def to_request(self, customer=None, idempotency_key=None) -> OrderRequest:
        data = self.validated_data
        return OrderRequest(
            order_type=data["order_type"],
            items=[OrderLineInputSerializer.to_line(line) for line in data["items"]],
            customer=customer,
            customer_name=data["customer_name"],
            customer_email=data["customer_email"],
            customer_phone=data["customer_phone"],
            delivery_address=data["delivery_address"],
            delivery_instructions=data["delivery_instructions"],
            payment_method=data["payment_method"],
            notes=data["notes"],
            idempotency_key=idempotency_key,
        )
