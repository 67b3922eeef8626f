"""
Customer loyalty input — supplied by the customer-management subsystem.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from cartfees.money import Money


@dataclass(frozen=True, slots=True)
class CustomerLoyalty:
    """
    What the pipeline knows about the shopper.

    tier: precomputed tier name from the loyalty provider. When set it is used
    as-is instead of deriving the tier from lifetime_spend.
    roles: sorted, used by role-restricted bulk discounts.
    """

    customer_id: str | None
    lifetime_spend: Money
    tier: str | None = None
    roles: tuple[str, ...] = ()

    @classmethod
    def of(
        cls,
        customer_id: str | None,
        lifetime_spend: Money,
        tier: str | None = None,
        roles: Iterable[str] = (),
    ) -> CustomerLoyalty:
        return cls(customer_id, lifetime_spend, tier, tuple(sorted(set(roles))))

    @classmethod
    def anonymous(cls, currency: str = "USD") -> CustomerLoyalty:
        """Guest checkout: no history, no roles, never VIP."""
        return cls(None, Money.zero(currency))

    @property
    def is_anonymous(self) -> bool:
        return self.customer_id is None

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return any(role in self.roles for role in roles)


__all__ = ("CustomerLoyalty",)
