"""
Money — fixed-point monetary value.

Integer minor units plus a currency code. Floats are rejected at every entry
point; the only rounding happens in scale(), half away from zero.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from cartfees.money._currency import minor_exponent


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class CurrencyMismatch(ValueError):
    """Arithmetic or comparison between two different currencies."""

    def __init__(self, left: str, right: str) -> None:
        super().__init__(f"currency mismatch: {left} vs {right}")
        self.left = left
        self.right = right


type Rate = Decimal | int
"""Multiplier applied to Money. Decimal only: floats are never accepted."""


def _quantize_half_away(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount in minor units.

    Example:
        price = Money.of("99.99", "USD")      # 9999 cents
        fee = price.scale(Decimal("0.03"))    # 300 cents, rounded half away from zero
        total = price + fee
    """

    minor: int
    currency: str = "USD"

    def __post_init__(self) -> None:
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise TypeError(f"minor units must be int, got {type(self.minor).__name__}")
        object.__setattr__(self, "currency", self.currency.upper())

    # ── Construction ─────────────────────────────────────────────────────────

    @classmethod
    def of(cls, value: str | Decimal | int, currency: str = "USD") -> Money:
        """
        Parse a major-unit amount.

            Money.of("500.00")   # 50000 minor units
            Money.of(10)         # 1000 minor units
        """
        if isinstance(value, float):
            raise TypeError("float amounts are not accepted, pass a str or Decimal")
        try:
            major = Decimal(value) if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"not a monetary amount: {value!r}") from e
        if not major.is_finite():
            raise ValueError(f"not a monetary amount: {value!r}")
        exponent = minor_exponent(currency)
        return cls(_quantize_half_away(major.scaleb(exponent)), currency)

    @classmethod
    def zero(cls, currency: str = "USD") -> Money:
        return cls(0, currency)

    @classmethod
    def total(cls, values: Iterable[Money], currency: str = "USD") -> Money:
        """Sum of values; zero in `currency` when empty."""
        result = cls.zero(currency)
        for value in values:
            result = result + value
        return result

    # ── Views ────────────────────────────────────────────────────────────────

    @property
    def amount(self) -> Decimal:
        """Major-unit Decimal, e.g. Decimal('13.50')."""
        exponent = minor_exponent(self.currency)
        return Decimal(self.minor).scaleb(-exponent)

    def is_zero(self) -> bool:
        return self.minor == 0

    def is_negative(self) -> bool:
        return self.minor < 0

    # ── Arithmetic ───────────────────────────────────────────────────────────

    def _check(self, other: Money) -> None:
        if other.currency != self.currency:
            raise CurrencyMismatch(self.currency, other.currency)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(self.minor + other.minor, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(self.minor - other.minor, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.minor, self.currency)

    def __abs__(self) -> Money:
        return Money(abs(self.minor), self.currency)

    def __mul__(self, factor: int) -> Money:
        """Exact multiplication by an integer (quantities)."""
        if isinstance(factor, bool) or not isinstance(factor, int):
            return NotImplemented
        return Money(self.minor * factor, self.currency)

    __rmul__ = __mul__

    def scale(self, rate: Rate) -> Money:
        """
        Multiply by a rate and round to minor units, half away from zero.

            Money.of("450.00").scale(Decimal("0.03"))  # 13.50
            Money.of("0.05").scale(Decimal("0.5"))     # 0.03
        """
        if isinstance(rate, float):
            raise TypeError("float rates are not accepted, pass a Decimal")
        return Money(_quantize_half_away(Decimal(self.minor) * Decimal(rate)), self.currency)

    def clamp_zero(self) -> Money:
        """max(0, self)."""
        return self if self.minor >= 0 else Money.zero(self.currency)

    def min(self, other: Money) -> Money:
        self._check(other)
        return self if self.minor <= other.minor else other

    # ── Ordering ─────────────────────────────────────────────────────────────

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.minor < other.minor

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.minor <= other.minor

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.minor > other.minor

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.minor >= other.minor

    # ── Rendering ────────────────────────────────────────────────────────────

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


__all__ = ("Money", "CurrencyMismatch", "Rate")
