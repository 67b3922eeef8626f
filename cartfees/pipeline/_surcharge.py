"""
Surcharge stage — payment-method fee on the discounted total.

SurchargeNode depends on DiscountNode, so the graph cannot run it before the
discount fees for the same cycle exist.
"""

from collections.abc import Iterable

import nodnod
import structlog

from cartfees.cart import Fee, FeeStage, surcharge_key
from cartfees.money import Money
from cartfees.pipeline._discount import DiscountNode
from cartfees.pipeline._input import CycleInputNode
from cartfees.pipeline._quantity import SubtotalNode
from cartfees.rules import SurchargeTable

log = structlog.get_logger(__name__)


def surcharge_base(subtotal: Money, shipping: Money, discounts: Iterable[Fee]) -> Money:
    """subtotal + shipping + discount fees (negative), never below zero."""
    base = subtotal + shipping
    for fee in discounts:
        base = base + fee.amount
    return base.clamp_zero()


def payment_surcharge(
    subtotal: Money,
    shipping: Money,
    discounts: Iterable[Fee],
    method: str | None,
    table: SurchargeTable,
) -> Fee | None:
    """Surcharge fee for the selected method, or None when it carries no rate."""
    rule = table.rule_for(method)
    if rule is None or method is None:
        return None
    amount = surcharge_base(subtotal, shipping, discounts).scale(rule.rate)
    if amount.is_zero():
        return None
    return Fee(
        key=surcharge_key(method),
        name=rule.fee_name(),
        amount=amount,
        taxable=rule.taxable,
        stage=FeeStage.SURCHARGE,
    )


@nodnod.scalar_node
class SurchargeNode:
    def __init__(self, fee: Fee | None) -> None:
        self.fee = fee

    @property
    def fees(self) -> tuple[Fee, ...]:
        return (self.fee,) if self.fee is not None else ()

    @classmethod
    def __compose__(
        cls,
        source: CycleInputNode,
        subtotal: SubtotalNode,
        discount: DiscountNode,
    ) -> "SurchargeNode":
        request = source.request
        fee = payment_surcharge(
            subtotal.subtotal,
            request.cart.shipping_total,
            discount.fees,
            request.payment_method,
            request.registry.surcharges,
        )
        if fee is not None:
            log.info(
                "surcharge_applied",
                method=request.payment_method,
                amount=str(fee.amount),
                taxable=fee.taxable,
            )
        return cls(fee)


__all__ = ("surcharge_base", "payment_surcharge", "SurchargeNode")
