"""
Order pricing calculator.

Turns the priced lines of a new order into the four monetary components
stored on the Order. The calculator is pure: it reads nothing from the
database, so it runs on every creation and in tests without fixtures.

Usage:
    from orders.calculators import PricingCalculator
    calculator = PricingCalculator(delivery_fee=Decimal("3.50"), tax_rate=Decimal("0.06"))
    breakdown = calculator.calculate(lines, Order.OrderType.DELIVERY)
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable

from payments.money import quantize

from .results import InvalidOrderError

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    delivery_fee: Decimal
    tax_amount: Decimal
    total: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "tax_amount": self.tax_amount,
            "total": self.total,
        }


class PricingCalculator:
    """
    Derives subtotal, delivery fee, tax and total for an order.

    Lines are duck-typed: anything exposing ``unit_price`` and ``quantity``
    works (creation requests, OrderItem rows).

    Formula:
        subtotal     = sum(unit_price * quantity)
        delivery_fee = flat fee for DELIVERY, else 0
        tax_amount   = (subtotal + delivery_fee) * tax_rate, half-even to 0.01
        total        = subtotal + delivery_fee + tax_amount
    """

    def __init__(self, delivery_fee: Decimal, tax_rate: Decimal, currency: str = "EUR"):
        self.delivery_fee = Decimal(delivery_fee)
        self.tax_rate = Decimal(tax_rate)
        self.currency = currency

    @classmethod
    def from_config(cls, config) -> "PricingCalculator":
        return cls(
            delivery_fee=config.delivery_fee, tax_rate=config.tax_rate, currency=config.currency
        )

    def calculate_subtotal(self, lines: Iterable) -> Decimal:
        lines = list(lines)
        if not lines:
            raise InvalidOrderError("An order needs at least one item.", {"items": ["This list may not be empty."]})

        subtotal = ZERO
        for index, line in enumerate(lines):
            if line.quantity is None or line.quantity <= 0:
                raise InvalidOrderError(
                    f"Item {index} has a non-positive quantity.",
                    {"items": {index: {"quantity": ["Must be greater than zero."]}}},
                )
            if line.unit_price is None or Decimal(line.unit_price) <= 0:
                raise InvalidOrderError(
                    f"Item {index} has a non-positive unit price.",
                    {"items": {index: {"unit_price": ["Must be greater than zero."]}}},
                )
            subtotal += Decimal(line.unit_price) * line.quantity

        return quantize(self.currency, subtotal)

    def calculate_delivery_fee(self, order_type: str) -> Decimal:
        # Local import keeps the calculator importable before the app registry is ready
        from .models import Order

        if order_type == Order.OrderType.DELIVERY:
            return quantize(self.currency, self.delivery_fee)
        return ZERO

    def calculate_tax(self, subtotal: Decimal, delivery_fee: Decimal) -> Decimal:
        return quantize(self.currency, (subtotal + delivery_fee) * self.tax_rate)

    def calculate(self, lines: Iterable, order_type: str) -> PricingBreakdown:
        subtotal = self.calculate_subtotal(lines)
        delivery_fee = self.calculate_delivery_fee(order_type)
        tax_amount = self.calculate_tax(subtotal, delivery_fee)

        # Components are already quantized, so the sum is exact.
        total = subtotal + delivery_fee + tax_amount

        return PricingBreakdown(
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            tax_amount=tax_amount,
            total=total,
        )
