"""
RuleRegistry — the three rule classes the pipeline applies, in stage order.

Fluent builder in the same shape as the engine policy: every with_* returns a
new registry, the original is never touched.

    registry = (
        RuleRegistry.empty("USD")
        .with_pricing(PricingRule(PricingScope.product("80"), 5, None, DiscountType.PERCENTAGE, Decimal("10")))
        .with_loyalty(LoyaltyTable.of([...]))
        .with_surcharges(SurchargeTable((SurchargeRule("card", Decimal("0.03")),)))
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from cartfees.cart import FeeStage, LineItem
from cartfees.errors import ConfigurationError
from cartfees.rules._types import (
    BulkDiscountRule,
    LoyaltyTable,
    PricingRule,
    SurchargeTable,
)


def _check_overlaps(rules: tuple[PricingRule, ...]) -> None:
    """Identical [min, max] in the same scope must agree on the discount."""
    seen: dict[tuple[object, ...], PricingRule] = {}
    for rule in rules:
        earlier = seen.setdefault(rule.range_key, rule)
        if earlier is rule:
            continue
        if (earlier.discount_type, earlier.amount) != (rule.discount_type, rule.amount):
            raise ConfigurationError(
                f"ambiguous pricing rules for {rule.scope.kind.name.lower()} {rule.scope.ref!r}: "
                f"{earlier.describe()} vs {rule.describe()}",
                field="pricing",
            )


@dataclass(frozen=True, slots=True)
class RuleRegistry:
    """
    Read-only rule configuration for one cycle.

    pricing: quantity-pricing rules, declaration order kept for tie-breaks.
    bulk: role/quantity bulk discounts, declaration order kept for tie-breaks.
    """

    currency: str = "USD"
    pricing: tuple[PricingRule, ...] = ()
    loyalty: LoyaltyTable = field(default_factory=LoyaltyTable)
    bulk: tuple[BulkDiscountRule, ...] = ()
    surcharges: SurchargeTable = field(default_factory=SurchargeTable)

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", self.currency.upper())
        object.__setattr__(self, "pricing", tuple(self.pricing))
        object.__setattr__(self, "bulk", tuple(self.bulk))
        _check_overlaps(self.pricing)
        for tier in self.loyalty.tiers:
            if tier.threshold.currency != self.currency:
                raise ConfigurationError(
                    f"tier {tier.name} in {tier.threshold.currency}, registry in {self.currency}",
                    field="loyalty",
                )

    @classmethod
    def empty(cls, currency: str = "USD") -> RuleRegistry:
        return cls(currency=currency)

    # ── Fluent builders ──────────────────────────────────────────────────────

    def with_pricing(self, *rules: PricingRule) -> RuleRegistry:
        return replace(self, pricing=(*self.pricing, *rules))

    def with_loyalty(self, table: LoyaltyTable) -> RuleRegistry:
        return replace(self, loyalty=table)

    def with_bulk(self, *rules: BulkDiscountRule) -> RuleRegistry:
        return replace(self, bulk=(*self.bulk, *rules))

    def with_surcharges(self, table: SurchargeTable) -> RuleRegistry:
        return replace(self, surcharges=table)

    # ── Queries ──────────────────────────────────────────────────────────────

    def classes(self) -> tuple[tuple[FeeStage, object], ...]:
        """Rule classes in the order their stages run."""
        return (
            (FeeStage.QUANTITY_PRICING, self.pricing),
            (FeeStage.DISCOUNT, (self.loyalty, self.bulk)),
            (FeeStage.SURCHARGE, self.surcharges),
        )

    def scoped_to(self, line: LineItem) -> tuple[PricingRule, ...]:
        """Pricing rules whose scope matches the line, whatever the quantity."""
        return tuple(rule for rule in self.pricing if rule.scope.matches(line))

    def bulk_for(self, product_id: str) -> tuple[BulkDiscountRule, ...]:
        return tuple(rule for rule in self.bulk if rule.product_id == product_id)


__all__ = ("RuleRegistry",)
