import pytest

from orders.models import Order
from orders.serializers import UpdateOrderStatusSerializer
from orders.serializers.fields import coerce_choice, coerce_order_status, coerce_payment_status

S = Order.OrderStatus


class TestCoerceOrderStatus:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("READY", S.READY),
            ("Ready", S.READY),
            ("ready", S.READY),
            (" ready ", S.READY),
            ("in_preparation", S.IN_PREPARATION),
            ("In Preparation", S.IN_PREPARATION),
            ("out-for-delivery", S.OUT_FOR_DELIVERY),
            ("Out for Delivery", S.OUT_FOR_DELIVERY),
            (0, S.RECEIVED),
            (3, S.READY),
            ("6", S.CANCELLED),
            (S.COMPLETED, S.COMPLETED),
        ],
    )
    def test_accepted_spellings(self, raw, expected):
        assert coerce_order_status(raw) is expected

    @pytest.mark.parametrize("raw", ["", "DONE", "7", -1, 99, True, None, 2.5, ["READY"]])
    def test_rejected_values(self, raw):
        with pytest.raises(ValueError):
            coerce_order_status(raw)

    def test_payment_status(self):
        assert coerce_payment_status("paid") is Order.PaymentStatus.PAID
        assert coerce_payment_status(3) is Order.PaymentStatus.REFUNDED

    def test_generic_choice(self):
        assert coerce_choice("cash on delivery", Order.PaymentMethod) is Order.PaymentMethod.CASH_ON_DELIVERY


class TestUpdateOrderStatusSerializer:

    def test_status_is_coerced(self):
        serializer = UpdateOrderStatusSerializer(data={"status": "in_preparation"})

        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data == {"status": S.IN_PREPARATION, "note": ""}

    def test_unknown_status_is_a_field_error(self):
        serializer = UpdateOrderStatusSerializer(data={"status": "Eaten", "note": "yum"})

        assert not serializer.is_valid()
        assert "status" in serializer.errors

    def test_status_is_required(self):
        serializer = UpdateOrderStatusSerializer(data={"note": "no status"})

        assert not serializer.is_valid()
        assert "status" in serializer.errors
