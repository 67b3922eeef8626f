"""
Threshold hints — which quantity breaks a product has reached and the next
one on offer. Product pages use this for "buy 2 more and save" messaging.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from cartfees.cart import CustomerLoyalty, LineItem
from cartfees.rules import BulkDiscountRule, PricingRule, RuleRegistry


class HintSource(Enum):
    QUANTITY_PRICING = auto()
    BULK_DISCOUNT = auto()


@dataclass(frozen=True, slots=True)
class ThresholdHint:
    source: HintSource
    min_quantity: int
    description: str
    max_quantity: int | None = None

    def applies_at(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity


@dataclass(frozen=True, slots=True)
class ThresholdHints:
    quantity: int
    reached: tuple[ThresholdHint, ...]
    upcoming: ThresholdHint | None

    @property
    def units_to_next(self) -> int | None:
        if self.upcoming is None:
            return None
        return self.upcoming.min_quantity - self.quantity


def _pricing_hint(rule: PricingRule) -> ThresholdHint:
    return ThresholdHint(HintSource.QUANTITY_PRICING, rule.min_quantity, rule.describe(), rule.max_quantity)


def _bulk_hint(rule: BulkDiscountRule, currency: str) -> ThresholdHint:
    return ThresholdHint(
        HintSource.BULK_DISCOUNT,
        rule.min_quantity,
        f"qty {rule.min_quantity}+: {rule.amount_per_unit:f} {currency} off each",
    )


def threshold_hints(
    line: LineItem,
    registry: RuleRegistry,
    customer: CustomerLoyalty | None = None,
) -> ThresholdHints:
    """
    Thresholds for line's product at line.quantity.

    Bulk rules restricted to roles the customer lacks are left out. Pricing
    rules whose range the quantity has already passed are neither reached
    nor upcoming.
    """
    customer = customer or CustomerLoyalty.anonymous(registry.currency)
    hints: list[ThresholdHint] = [_pricing_hint(rule) for rule in registry.scoped_to(line)]
    for rule in registry.bulk_for(line.group_id):
        if rule.roles and not customer.has_any_role(rule.roles):
            continue
        hints.append(_bulk_hint(rule, registry.currency))

    hints.sort(key=lambda hint: hint.min_quantity)
    reached = tuple(hint for hint in hints if hint.applies_at(line.quantity))
    upcoming = next((hint for hint in hints if hint.min_quantity > line.quantity), None)
    return ThresholdHints(line.quantity, reached, upcoming)


__all__ = ("HintSource", "ThresholdHint", "ThresholdHints", "threshold_hints")
