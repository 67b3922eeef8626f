"""
Currency precision table.
"""

from __future__ import annotations

DEFAULT_EXPONENT = 2

# Minor-unit exponent per ISO 4217 code (cents = 2, yen = 0, fils = 3).
_EXPONENTS: dict[str, int] = {
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "CAD": 2,
    "AUD": 2,
    "CHF": 2,
    "JPY": 0,
    "KRW": 0,
    "BHD": 3,
    "KWD": 3,
}


def minor_exponent(currency: str) -> int:
    """Number of decimal places the currency's minor unit carries."""
    return _EXPONENTS.get(currency.upper(), DEFAULT_EXPONENT)


__all__ = ("DEFAULT_EXPONENT", "minor_exponent")
