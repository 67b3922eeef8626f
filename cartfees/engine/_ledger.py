"""
Ledger — the last committed cycle.

Replaced wholesale on commit; a failed cycle never touches it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cartfees.cart import CartSnapshot, FeeMap


@dataclass(frozen=True, slots=True)
class Ledger:
    fees: FeeMap = field(default_factory=FeeMap)
    cart: CartSnapshot | None = None
    fingerprint: str | None = None
    cycles: int = 0

    def commit(self, cart: CartSnapshot, fingerprint: str | None) -> Ledger:
        return Ledger(fees=cart.fees, cart=cart, fingerprint=fingerprint, cycles=self.cycles + 1)

    def matches(self, fingerprint: str | None) -> bool:
        return fingerprint is not None and self.cart is not None and fingerprint == self.fingerprint


__all__ = ("Ledger",)
