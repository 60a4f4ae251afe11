"""
Ordering configuration.

Values are read once from ``settings.ORDERING`` into an immutable
``OrderingConfig`` that services receive at construction time.
"""
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings


@dataclass(frozen=True)
class OrderingConfig:
    tax_rate: Decimal = Decimal("0.06")
    delivery_fee: Decimal = Decimal("3.50")
    currency: str = "EUR"
    order_number_prefix: str = "HS"
    order_number_max_attempts: int = 5
    estimated_pickup_minutes: int = 30
    estimated_delivery_minutes: int = 60
    popular_items_limit: int = 10

    @classmethod
    def from_settings(cls) -> "OrderingConfig":
        raw = getattr(settings, "ORDERING", {})
        defaults = cls()
        return cls(
            tax_rate=Decimal(str(raw.get("TAX_RATE", defaults.tax_rate))),
            delivery_fee=Decimal(str(raw.get("DELIVERY_FEE", defaults.delivery_fee))),
            currency=raw.get("CURRENCY", defaults.currency),
            order_number_prefix=raw.get("ORDER_NUMBER_PREFIX", defaults.order_number_prefix),
            order_number_max_attempts=int(
                raw.get("ORDER_NUMBER_MAX_ATTEMPTS", defaults.order_number_max_attempts)
            ),
            estimated_pickup_minutes=int(
                raw.get("ESTIMATED_PICKUP_MINUTES", defaults.estimated_pickup_minutes)
            ),
            estimated_delivery_minutes=int(
                raw.get("ESTIMATED_DELIVERY_MINUTES", defaults.estimated_delivery_minutes)
            ),
            popular_items_limit=int(raw.get("POPULAR_ITEMS_LIMIT", defaults.popular_items_limit)),
        )
