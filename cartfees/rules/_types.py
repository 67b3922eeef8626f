"""
Rule types — tagged variants validated once, when they are built.

Every constructor raises ConfigurationError on invalid data, so a rule that
exists is a rule the stages can apply without further checks.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum, auto

from cartfees.cart import LineItem
from cartfees.errors import ConfigurationError
from cartfees.money import Money


def as_decimal(value: object, field: str) -> Decimal:
    """Coerce str/int/Decimal to Decimal; floats are rejected."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float) or isinstance(value, bool):
        raise ConfigurationError(f"{field}: pass a string or Decimal, not {type(value).__name__}", field=field)
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigurationError(f"{field}: not a number: {value!r}", field=field) from e


def check_rate(rate: Decimal, field: str) -> Decimal:
    if not rate.is_finite() or rate < 0 or rate >= 1:
        raise ConfigurationError(f"{field}: rate must be in [0, 1), got {rate}", field=field)
    return rate


def format_percent(rate: Decimal) -> str:
    """Decimal('0.10') → '10', Decimal('0.025') → '2.5'."""
    percent = (rate * 100).normalize()
    return f"{percent:f}"


# ═══════════════════════════════════════════════════════════════════════════════
# Quantity pricing
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountType(Enum):
    """
    How a quantity-pricing rule changes the unit price.

    PERCENTAGE: base × (1 − amount/100)
    FIXED: max(0, base − amount)
    FIXED_PRICE: amount becomes the unit price (never above base)
    """

    PERCENTAGE = auto()
    FIXED = auto()
    FIXED_PRICE = auto()


class ScopeKind(Enum):
    PRODUCT = auto()
    CATEGORY = auto()


@dataclass(frozen=True, slots=True)
class PricingScope:
    kind: ScopeKind
    ref: str

    @classmethod
    def product(cls, product_id: str) -> PricingScope:
        return cls(ScopeKind.PRODUCT, product_id)

    @classmethod
    def category(cls, category: str) -> PricingScope:
        return cls(ScopeKind.CATEGORY, category)

    def matches(self, line: LineItem) -> bool:
        match self.kind:
            case ScopeKind.PRODUCT:
                return self.ref in (line.product_id, line.parent_id)
            case ScopeKind.CATEGORY:
                return self.ref in line.categories


@dataclass(frozen=True, slots=True)
class PricingRule:
    """
    Quantity breakpoint: [min_quantity, max_quantity] → price change.

    max_quantity None means open-ended. amount is a percentage for PERCENTAGE
    and a major-unit money amount for FIXED / FIXED_PRICE.
    """

    scope: PricingScope
    min_quantity: int
    max_quantity: int | None
    discount_type: DiscountType
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", as_decimal(self.amount, "amount"))
        if self.min_quantity < 1:
            raise ConfigurationError(f"min_quantity must be ≥ 1, got {self.min_quantity}", field="min_quantity")
        if self.max_quantity is not None and self.max_quantity < self.min_quantity:
            raise ConfigurationError(
                f"max_quantity {self.max_quantity} below min_quantity {self.min_quantity}",
                field="max_quantity",
            )
        if not self.amount.is_finite() or self.amount < 0:
            raise ConfigurationError(f"amount must be ≥ 0, got {self.amount}", field="amount")
        if self.discount_type is DiscountType.PERCENTAGE and self.amount > 100:
            raise ConfigurationError(f"percentage above 100: {self.amount}", field="amount")

    def contains(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity

    def applies_to(self, line: LineItem) -> bool:
        return self.scope.matches(line) and self.contains(line.quantity)

    def candidate_price(self, base: Money) -> Money:
        match self.discount_type:
            case DiscountType.PERCENTAGE:
                return base.scale(1 - self.amount / 100)
            case DiscountType.FIXED:
                return (base - Money.of(self.amount, base.currency)).clamp_zero()
            case DiscountType.FIXED_PRICE:
                return Money.of(self.amount, base.currency).min(base)

    @property
    def range_key(self) -> tuple[PricingScope, int, int | None]:
        return (self.scope, self.min_quantity, self.max_quantity)

    def describe(self) -> str:
        upper = f"-{self.max_quantity}" if self.max_quantity is not None else "+"
        match self.discount_type:
            case DiscountType.PERCENTAGE:
                what = f"{self.amount.normalize():f}% off"
            case DiscountType.FIXED:
                what = f"{self.amount:f} off"
            case DiscountType.FIXED_PRICE:
                what = f"{self.amount:f} each"
        return f"qty {self.min_quantity}{upper}: {what}"


# ═══════════════════════════════════════════════════════════════════════════════
# Loyalty tiers
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_VIP_LABEL = "VIP {tier} Discount ({percent}%)"


@dataclass(frozen=True, slots=True)
class LoyaltyTier:
    """
    threshold: lifetime spend needed to reach the tier.
    minimum_order: current-cart subtotal needed for the discount to apply.
    """

    name: str
    threshold: Money
    rate: Decimal
    minimum_order: Money
    label: str = DEFAULT_VIP_LABEL

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", check_rate(as_decimal(self.rate, "rate"), f"tier {self.name}: rate"))
        if not self.name:
            raise ConfigurationError("tier name is required", field="name")
        if self.threshold.is_negative():
            raise ConfigurationError(f"tier {self.name}: negative threshold", field="threshold")
        if self.minimum_order.is_negative():
            raise ConfigurationError(f"tier {self.name}: negative minimum order", field="minimum_order")
        if self.minimum_order.currency != self.threshold.currency:
            raise ConfigurationError(f"tier {self.name}: mixed currencies", field="minimum_order")

    def fee_name(self) -> str:
        return self.label.format(tier=self.name.capitalize(), percent=format_percent(self.rate))


@dataclass(frozen=True, slots=True)
class LoyaltyTable:
    """Tiers in strictly increasing threshold order."""

    tiers: tuple[LoyaltyTier, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tiers", tuple(self.tiers))
        names = [t.name.lower() for t in self.tiers]
        if len(names) != len(set(names)):
            raise ConfigurationError("duplicate loyalty tier names", field="tiers")
        for lower, upper in zip(self.tiers, self.tiers[1:]):
            if upper.threshold <= lower.threshold:
                raise ConfigurationError(
                    f"tier thresholds must strictly increase: {lower.name} {lower.threshold} "
                    f"then {upper.name} {upper.threshold}",
                    field="tiers",
                )

    @classmethod
    def of(cls, tiers: Iterable[LoyaltyTier]) -> LoyaltyTable:
        """Build from tiers in any order."""
        return cls(tuple(sorted(tiers, key=lambda t: t.threshold.minor)))

    @property
    def lowest_threshold(self) -> Money | None:
        return self.tiers[0].threshold if self.tiers else None

    def is_eligible(self, lifetime_spend: Money) -> bool:
        lowest = self.lowest_threshold
        return lowest is not None and lifetime_spend >= lowest

    def select(self, lifetime_spend: Money) -> LoyaltyTier | None:
        """Highest tier whose threshold the spend equals or exceeds."""
        for tier in reversed(self.tiers):
            if lifetime_spend >= tier.threshold:
                return tier
        return None

    def by_name(self, name: str) -> LoyaltyTier:
        for tier in self.tiers:
            if tier.name.lower() == name.lower():
                return tier
        raise ConfigurationError(f"unknown loyalty tier {name!r}", field="tier")


# ═══════════════════════════════════════════════════════════════════════════════
# Bulk discounts
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class BulkDiscountRule:
    """
    Per-unit discount on one product once its cart quantity reaches
    min_quantity. roles empty means every customer qualifies; otherwise the
    customer needs one of them. Higher priority wins.
    """

    product_id: str
    amount_per_unit: Decimal
    min_quantity: int = 1
    roles: tuple[str, ...] = ()
    priority: int = 0
    label: str = "Bulk Discount"
    taxable: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount_per_unit", as_decimal(self.amount_per_unit, "amount_per_unit"))
        object.__setattr__(self, "roles", tuple(sorted(set(self.roles))))
        if self.min_quantity < 1:
            raise ConfigurationError(f"min_quantity must be ≥ 1, got {self.min_quantity}", field="min_quantity")
        if not self.amount_per_unit.is_finite() or self.amount_per_unit < 0:
            raise ConfigurationError(
                f"amount_per_unit must be ≥ 0, got {self.amount_per_unit}", field="amount_per_unit"
            )


# ═══════════════════════════════════════════════════════════════════════════════
# Surcharges
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_SURCHARGE_LABEL = "Credit Card Surcharge ({percent}%)"


@dataclass(frozen=True, slots=True)
class SurchargeRule:
    method: str
    rate: Decimal
    label: str = DEFAULT_SURCHARGE_LABEL
    taxable: bool = False

    def __post_init__(self) -> None:
        if not self.method:
            raise ConfigurationError("surcharge method is required", field="method")
        object.__setattr__(
            self, "rate", check_rate(as_decimal(self.rate, "rate"), f"surcharge {self.method}: rate")
        )

    def fee_name(self) -> str:
        return self.label.format(method=self.method, percent=format_percent(self.rate))


@dataclass(frozen=True, slots=True)
class SurchargeTable:
    rules: tuple[SurchargeRule, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))
        methods = [r.method for r in self.rules]
        if len(methods) != len(set(methods)):
            raise ConfigurationError("duplicate surcharge methods", field="surcharges")

    def rule_for(self, method: str | None) -> SurchargeRule | None:
        """Configured rule with a positive rate, or None."""
        if method is None:
            return None
        for rule in self.rules:
            if rule.method == method:
                return rule if rule.rate > 0 else None
        return None


__all__ = (
    "as_decimal",
    "check_rate",
    "format_percent",
    "DiscountType",
    "ScopeKind",
    "PricingScope",
    "PricingRule",
    "DEFAULT_VIP_LABEL",
    "LoyaltyTier",
    "LoyaltyTable",
    "BulkDiscountRule",
    "DEFAULT_SURCHARGE_LABEL",
    "SurchargeRule",
    "SurchargeTable",
)
