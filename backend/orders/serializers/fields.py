"""
Boundary coercion for enum-valued request fields.

Clients send statuses as names in any casing ("Ready", "READY",
"in_preparation", "Out for delivery") or as the numeric index of the value
in declaration order. Everything past this module works with the
TextChoices members only.
"""
import re

from django.db import models
from rest_framework import serializers

from orders.models import Order

_SEPARATORS = re.compile(r"[\s_\-]+")


def _normalize(value: str) -> str:
    return _SEPARATORS.sub("", value).upper()


def coerce_choice(value, choices: type[models.TextChoices]):
    """
    Resolve ``value`` to a member of ``choices``.

    Raises ValueError for anything that does not name a member.
    """
    if isinstance(value, choices):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not a valid {choices.__name__}.")

    members = list(choices)
    if isinstance(value, int):
        if 0 <= value < len(members):
            return members[value]
        raise ValueError(f"{value} is out of range for {choices.__name__}.")

    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return coerce_choice(int(text), choices)
        wanted = _normalize(text)
        for member in members:
            if wanted in (_normalize(member.value), _normalize(member.name), _normalize(str(member.label))):
                return member

    raise ValueError(f"{value!r} is not a valid {choices.__name__}.")


def coerce_order_status(value) -> Order.OrderStatus:
    return coerce_choice(value, Order.OrderStatus)


def coerce_payment_status(value) -> Order.PaymentStatus:
    return coerce_choice(value, Order.PaymentStatus)


class CoercedChoiceField(serializers.Field):
    """DRF field that accepts any spelling ``coerce_choice`` understands."""

    default_error_messages = {
        "invalid_choice": "{input!r} is not a valid choice. Expected one of: {choices}.",
    }

    def __init__(self, choices: type[models.TextChoices], **kwargs):
        self.choices_enum = choices
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        try:
            return coerce_choice(data, self.choices_enum)
        except ValueError:
            self.fail("invalid_choice", input=data, choices=", ".join(self.choices_enum.values))

    def to_representation(self, value):
        return str(value)


class OrderStatusField(CoercedChoiceField):
    def __init__(self, **kwargs):
        super().__init__(Order.OrderStatus, **kwargs)


class PaymentStatusField(CoercedChoiceField):
    def __init__(self, **kwargs):
        super().__init__(Order.PaymentStatus, **kwargs)
