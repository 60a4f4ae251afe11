"""
Monetary precision helpers.

Amounts are Decimals, rounded with ROUND_HALF_EVEN (banker's rounding) to the
currency's minor unit. Providers such as Stripe report integer minor units,
so conversions go through ``to_minor`` / ``from_minor``.
"""

from decimal import Decimal, ROUND_HALF_EVEN
from typing import Union

# Currency minor unit exponents (how many decimal places)
CURRENCY_EXPONENT = {
    "EUR": 2,
    "USD": 2,
    "GBP": 2,
    "CHF": 2,
    "JPY": 0,
    "KRW": 0,
    "KWD": 3,
    "BHD": 3,
}


def currency_exponent(currency: str) -> int:
    """
    >>> currency_exponent("EUR")
    2
    >>> currency_exponent("JPY")
    0
    """
    return CURRENCY_EXPONENT.get(currency.upper(), 2)


def quantize_decimal(currency: str) -> Decimal:
    return Decimal(10) ** -currency_exponent(currency)


def quantize(currency: str, amount: Union[Decimal, str, int, float]) -> Decimal:
    """
    Round to currency decimals using banker's rounding.

    >>> quantize("EUR", "10.125")
    Decimal('10.12')
    >>> quantize("EUR", "10.135")
    Decimal('10.14')
    """
    if isinstance(amount, float):
        # Convert float to string first to avoid binary precision artifacts
        amount = str(amount)

    return Decimal(amount).quantize(quantize_decimal(currency), rounding=ROUND_HALF_EVEN)


def to_minor(currency: str, amount: Union[Decimal, str, int, float]) -> int:
    """
    Convert to minor units (e.g. cents). Always quantizes first.

    >>> to_minor("EUR", "34.98")
    3498
    """
    quantized = quantize(currency, amount)
    return int((quantized * (10 ** currency_exponent(currency))).to_integral_value())


def from_minor(currency: str, minor: int) -> Decimal:
    """
    >>> from_minor("EUR", 3498)
    Decimal('34.98')
    """
    return quantize(currency, Decimal(minor) / (10 ** currency_exponent(currency)))
