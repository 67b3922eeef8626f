"""
Input — the cycle request and the node that checks it before any stage runs.
"""

from dataclasses import dataclass

import nodnod

from cartfees.cart import CartSnapshot, CustomerLoyalty, validate_snapshot
from cartfees.errors import ConfigurationError, InputError
from cartfees.rules import LoyaltyTier, RuleRegistry


@dataclass(frozen=True, slots=True)
class CycleRequest:
    """Everything one cycle reads. Injected into the graph by type."""

    cart: CartSnapshot
    customer: CustomerLoyalty
    payment_method: str | None
    registry: RuleRegistry

    @classmethod
    def of(
        cls,
        cart: CartSnapshot,
        registry: RuleRegistry,
        customer: CustomerLoyalty | None = None,
        payment_method: str | None = None,
    ) -> "CycleRequest":
        return cls(
            cart=cart,
            customer=customer if customer is not None else CustomerLoyalty.anonymous(cart.currency),
            payment_method=payment_method or None,
            registry=registry,
        )


@nodnod.scalar_node
class CycleInputNode:
    """Entry point: a validated request plus the customer's precomputed tier."""

    def __init__(self, request: CycleRequest, tier: LoyaltyTier | None) -> None:
        self.request = request
        self.tier = tier

    @classmethod
    def __compose__(cls, request: CycleRequest) -> "CycleInputNode":
        cart = validate_snapshot(request.cart)
        if request.registry.currency != cart.currency:
            raise ConfigurationError(
                f"rules in {request.registry.currency}, cart in {cart.currency}",
                field="currency",
            )
        if request.customer.lifetime_spend.currency != cart.currency:
            raise InputError(
                f"lifetime spend in {request.customer.lifetime_spend.currency}, cart in {cart.currency}"
            )

        tier = None
        if request.customer.tier is not None:
            tier = request.registry.loyalty.by_name(request.customer.tier)
        return cls(request, tier)


__all__ = ("CycleRequest", "CycleInputNode")
