"""
Money — fixed-point monetary values.

    from cartfees.money import Money

    subtotal = Money.of("500.00", "USD")
    surcharge = subtotal.scale(Decimal("0.03"))   # 15.00 USD
"""

from cartfees.money._currency import DEFAULT_EXPONENT, minor_exponent
from cartfees.money._money import Money, CurrencyMismatch, Rate

__all__ = (
    "Money",
    "CurrencyMismatch",
    "Rate",
    "DEFAULT_EXPONENT",
    "minor_exponent",
)
