"""
Rule configuration — pydantic input models mapped onto the domain rule types.

Validation happens once, at load time. Both pydantic's ValidationError and the
domain's own checks surface as ConfigurationError.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cartfees.errors import ConfigurationError
from cartfees.money import Money
from cartfees.rules._registry import RuleRegistry
from cartfees.rules._types import (
    DEFAULT_SURCHARGE_LABEL,
    DEFAULT_VIP_LABEL,
    BulkDiscountRule,
    DiscountType,
    LoyaltyTable,
    LoyaltyTier,
    PricingRule,
    PricingScope,
    ScopeKind,
    SurchargeRule,
    SurchargeTable,
)


class _In(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class LoyaltyTierIn(_In):
    name: str
    threshold: Decimal
    rate: Decimal
    minimum_order: Decimal = Decimal("0")
    label: str = DEFAULT_VIP_LABEL

    def to_domain(self, currency: str) -> LoyaltyTier:
        return LoyaltyTier(
            name=self.name,
            threshold=Money.of(self.threshold, currency),
            rate=self.rate,
            minimum_order=Money.of(self.minimum_order, currency),
            label=self.label,
        )


class SurchargeIn(_In):
    method: str
    rate: Decimal
    label: str = DEFAULT_SURCHARGE_LABEL
    taxable: bool | None = None

    def to_domain(self, default_taxable: bool = False) -> SurchargeRule:
        taxable = self.taxable if self.taxable is not None else default_taxable
        return SurchargeRule(method=self.method, rate=self.rate, label=self.label, taxable=taxable)


class PricingRuleIn(_In):
    scope: Literal["product", "category"] = "product"
    ref: str
    min_quantity: int = Field(ge=1)
    max_quantity: int | None = None
    discount_type: Literal["percentage", "fixed", "fixed_price"]
    amount: Decimal

    def to_domain(self) -> PricingRule:
        return PricingRule(
            scope=PricingScope(ScopeKind[self.scope.upper()], self.ref),
            min_quantity=self.min_quantity,
            max_quantity=self.max_quantity,
            discount_type=DiscountType[self.discount_type.upper()],
            amount=self.amount,
        )


class BulkDiscountIn(_In):
    product_id: str
    amount_per_unit: Decimal
    min_quantity: int = Field(default=1, ge=1)
    roles: list[str] = Field(default_factory=list)
    priority: int = 0
    label: str = "Bulk Discount"
    taxable: bool = True

    def to_domain(self) -> BulkDiscountRule:
        return BulkDiscountRule(
            product_id=self.product_id,
            amount_per_unit=self.amount_per_unit,
            min_quantity=self.min_quantity,
            roles=tuple(self.roles),
            priority=self.priority,
            label=self.label,
            taxable=self.taxable,
        )


class RulesConfig(_In):
    currency: str = "USD"
    pricing: list[PricingRuleIn] = Field(default_factory=list)
    loyalty: list[LoyaltyTierIn] = Field(default_factory=list)
    bulk: list[BulkDiscountIn] = Field(default_factory=list)
    surcharges: list[SurchargeIn] = Field(default_factory=list)

    def to_domain(self, *, surcharge_taxable: bool = False) -> RuleRegistry:
        currency = self.currency.upper()
        return RuleRegistry(
            currency=currency,
            pricing=tuple(rule.to_domain() for rule in self.pricing),
            loyalty=LoyaltyTable.of(tier.to_domain(currency) for tier in self.loyalty),
            bulk=tuple(rule.to_domain() for rule in self.bulk),
            surcharges=SurchargeTable(tuple(s.to_domain(surcharge_taxable) for s in self.surcharges)),
        )


def _describe(error: ValidationError) -> tuple[str, str | None]:
    first = error.errors()[0]
    where = ".".join(str(part) for part in first.get("loc", ()))
    return f"{where or 'rules'}: {first.get('msg', 'invalid')}", where or None


def load_rules(
    source: Mapping[str, Any] | str | Path,
    *,
    surcharge_taxable: bool = False,
) -> RuleRegistry:
    """
    Build a RuleRegistry from a mapping or a JSON file path.

    Raises:
        ConfigurationError: unreadable file, schema violation, or a rule table
            the domain types reject (bad rate, overlap, ordering).
    """
    try:
        if isinstance(source, Mapping):
            config = RulesConfig.model_validate(source)
        else:
            path = Path(source)
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigurationError(f"cannot read rules file {path}: {e}", field="rules_path") from e
            config = RulesConfig.model_validate_json(text)
    except ValidationError as e:
        message, where = _describe(e)
        raise ConfigurationError(message, field=where) from e

    return config.to_domain(surcharge_taxable=surcharge_taxable)


# ═══════════════════════════════════════════════════════════════════════════════
# Shipped defaults
# ═══════════════════════════════════════════════════════════════════════════════

CREDIT_CARD_METHOD = "intuit_payments_credit_card"
DISTRIBUTOR_ROLE = "distro10"


# name, lifetime threshold and minimum order, rate
_VIP_TIERS = (
    ("silver", "100", "0.05"),
    ("gold", "300", "0.08"),
    ("platinum", "500", "0.10"),
)


def default_rules(currency: str = "USD") -> RuleRegistry:
    """Storefront tables: three VIP tiers, 3% card surcharge, bulk discount on product 80."""
    return load_rules(
        {
            "currency": currency,
            "loyalty": [
                {"name": name, "threshold": amount, "rate": rate, "minimum_order": amount}
                for name, amount, rate in _VIP_TIERS
            ],
            "surcharges": [{"method": CREDIT_CARD_METHOD, "rate": "0.03"}],
            "bulk": [
                {"product_id": "80", "amount_per_unit": "10", "min_quantity": 5, "priority": 50},
                {
                    "product_id": "80",
                    "amount_per_unit": "10",
                    "min_quantity": 1,
                    "roles": [DISTRIBUTOR_ROLE],
                    "priority": 100,
                },
            ],
        }
    )


__all__ = (
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
