import django_filters

from .models import Order
from .serializers.fields import coerce_order_status


class OrderFilter(django_filters.FilterSet):
    """
    Filters for the staff order list.

    ``status`` accepts the same spellings as the status endpoint
    ("READY", "Ready", "in_preparation", "3"); unknown values match nothing.
    """

    status = django_filters.CharFilter(method="filter_status")
    created_at__gte = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_at__lt = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lt")
    order_type = django_filters.ChoiceFilter(choices=Order.OrderType.choices)
    payment_status = django_filters.ChoiceFilter(choices=Order.PaymentStatus.choices)

    class Meta:
        model = Order
        fields = ["status", "order_type", "payment_status"]

    def filter_status(self, queryset, name, value):
        try:
            status = coerce_order_status(value)
        except ValueError:
            return queryset.none()
        return queryset.with_status(status)
