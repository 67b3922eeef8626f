"""
Rules — quantity pricing, loyalty tiers, bulk discounts and surcharges.

    from cartfees import rules as R

    registry = R.load_rules("rules.json")
    registry = R.default_rules("USD").with_pricing(
        R.PricingRule(R.PricingScope.product("80"), 5, None, R.DiscountType.PERCENTAGE, Decimal("10"))
    )
"""

from cartfees.rules._types import (
    DiscountType,
    ScopeKind,
    PricingScope,
    PricingRule,
    DEFAULT_VIP_LABEL,
    LoyaltyTier,
    LoyaltyTable,
    BulkDiscountRule,
    DEFAULT_SURCHARGE_LABEL,
    SurchargeRule,
    SurchargeTable,
)
from cartfees.rules._registry import RuleRegistry
from cartfees.rules._config import (
    LoyaltyTierIn,
    SurchargeIn,
    PricingRuleIn,
    BulkDiscountIn,
    RulesConfig,
    load_rules,
    CREDIT_CARD_METHOD,
    DISTRIBUTOR_ROLE,
    default_rules,
)

__all__ = (
    # Types
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
    # Registry
    "RuleRegistry",
    # Config
    "LoyaltyTierIn",
    "SurchargeIn",
    "PricingRuleIn",
    "BulkDiscountIn",
    "RulesConfig",
    "load_rules",
    "CREDIT_CARD_METHOD",
    "DISTRIBUTOR_ROLE",
    "default_rules",
)
