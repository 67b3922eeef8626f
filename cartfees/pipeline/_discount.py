"""
Discount stage — VIP loyalty discount and role-based bulk discounts.

Both are computed from the post-pricing cart and emitted as negative,
engine-owned fees. The surcharge stage reads what this stage finalized.
"""

from collections.abc import Iterable

import nodnod
import structlog

from cartfees.cart import (
    VIP_DISCOUNT_KEY,
    CustomerLoyalty,
    Fee,
    FeeStage,
    LineItem,
    bulk_discount_key,
)
from cartfees.money import Money
from cartfees.pipeline._input import CycleInputNode
from cartfees.pipeline._quantity import QuantityPricedNode, SubtotalNode
from cartfees.rules import BulkDiscountRule, LoyaltyTable, LoyaltyTier

log = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# VIP discount
# ═══════════════════════════════════════════════════════════════════════════════


def vip_discount(
    subtotal: Money,
    customer: CustomerLoyalty,
    table: LoyaltyTable,
    tier: LoyaltyTier | None = None,
) -> Fee | None:
    """
    Loyalty discount for the current cart, or None.

    tier: precomputed tier from the loyalty provider; when None the tier is
    derived from lifetime spend. Guests never qualify. A subtotal below the
    tier's minimum order or a zero amount emits nothing.
    """
    if customer.is_anonymous:
        return None
    if tier is None:
        if not table.is_eligible(customer.lifetime_spend):
            return None
        tier = table.select(customer.lifetime_spend)
        if tier is None:
            return None

    if subtotal < tier.minimum_order:
        return None

    amount = -subtotal.scale(tier.rate)
    if amount.is_zero():
        return None
    return Fee(
        key=VIP_DISCOUNT_KEY,
        name=tier.fee_name(),
        amount=amount,
        taxable=False,
        stage=FeeStage.DISCOUNT,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Bulk discounts
# ═══════════════════════════════════════════════════════════════════════════════


def _group(lines: Iterable[LineItem], currency: str) -> dict[str, tuple[int, Money]]:
    """product (parent for variations) → (quantity, post-pricing subtotal)"""
    groups: dict[str, tuple[int, Money]] = {}
    for line in lines:
        quantity, subtotal = groups.get(line.group_id, (0, Money.zero(currency)))
        groups[line.group_id] = (quantity + line.quantity, subtotal + line.subtotal)
    return groups


def select_bulk_rule(
    rules: Iterable[BulkDiscountRule],
    quantity: int,
    customer: CustomerLoyalty,
) -> BulkDiscountRule | None:
    """Highest priority among the rules the quantity and roles satisfy; first declared on ties."""
    winner: BulkDiscountRule | None = None
    for rule in rules:
        if quantity < rule.min_quantity:
            continue
        if rule.roles and not customer.has_any_role(rule.roles):
            continue
        if winner is None or rule.priority > winner.priority:
            winner = rule
    return winner


def bulk_discounts(
    lines: Iterable[LineItem],
    customer: CustomerLoyalty,
    rules: tuple[BulkDiscountRule, ...],
    currency: str,
) -> tuple[Fee, ...]:
    """One fee per discounted product, capped at that product's subtotal."""
    groups = _group(lines, currency)
    fees: list[Fee] = []
    for product_id in dict.fromkeys(rule.product_id for rule in rules):
        if product_id not in groups:
            continue
        quantity, subtotal = groups[product_id]
        rule = select_bulk_rule(
            (r for r in rules if r.product_id == product_id), quantity, customer
        )
        if rule is None:
            continue
        amount = (Money.of(rule.amount_per_unit, currency) * quantity).min(subtotal)
        if amount.is_zero():
            continue
        fees.append(
            Fee(
                key=bulk_discount_key(product_id),
                name=f"{rule.label} ({product_id})",
                amount=-amount,
                taxable=rule.taxable,
                stage=FeeStage.DISCOUNT,
            )
        )
    return tuple(fees)


# ═══════════════════════════════════════════════════════════════════════════════
# Node
# ═══════════════════════════════════════════════════════════════════════════════


@nodnod.scalar_node
class DiscountNode:
    """Discount-stage fees, finalized before the surcharge stage may run."""

    def __init__(self, fees: tuple[Fee, ...]) -> None:
        self.fees = fees

    @classmethod
    def __compose__(
        cls,
        source: CycleInputNode,
        priced: QuantityPricedNode,
        subtotal: SubtotalNode,
    ) -> "DiscountNode":
        request = source.request
        fees: list[Fee] = []

        vip = vip_discount(
            subtotal.subtotal, request.customer, request.registry.loyalty, source.tier
        )
        if vip is not None:
            log.info(
                "vip_discount_applied",
                customer_id=request.customer.customer_id,
                name=vip.name,
                amount=str(vip.amount),
            )
            fees.append(vip)

        for fee in bulk_discounts(
            priced.cart.lines, request.customer, request.registry.bulk, priced.cart.currency
        ):
            log.info("bulk_discount_applied", key=fee.key, amount=str(fee.amount))
            fees.append(fee)

        return cls(tuple(fees))


__all__ = (
    "vip_discount",
    "select_bulk_rule",
    "bulk_discounts",
    "DiscountNode",
)
