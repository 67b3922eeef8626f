"""
Quantity pricing — per-line unit price from the quantity breakpoint table.
"""

from dataclasses import dataclass

import nodnod
import structlog

from cartfees.cart import CartSnapshot, LineItem
from cartfees.money import Money
from cartfees.pipeline._input import CycleInputNode
from cartfees.rules import PricingRule

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PriceResolution:
    """Outcome for one line. rule is None when nothing matched."""

    line: LineItem
    price: Money
    rule: PricingRule | None = None

    @property
    def changed(self) -> bool:
        return self.rule is not None and self.price != self.line.unit_price

    def apply(self) -> LineItem:
        return self.line.reprice(self.price) if self.changed else self.line


def resolve_unit_price(line: LineItem, rules: tuple[PricingRule, ...]) -> PriceResolution:
    """
    Pick the winning rule for a line.

    Highest min_quantity wins; ties go to the lower candidate price, then to
    the rule declared first. Pure: the caller applies the result.
    """
    best: tuple[PricingRule, Money] | None = None
    for rule in rules:
        if not rule.applies_to(line):
            continue
        candidate = rule.candidate_price(line.unit_price)
        if best is None:
            best = (rule, candidate)
            continue
        held_rule, held_price = best
        if rule.min_quantity > held_rule.min_quantity or (
            rule.min_quantity == held_rule.min_quantity and candidate < held_price
        ):
            best = (rule, candidate)

    if best is None:
        return PriceResolution(line, line.unit_price)
    return PriceResolution(line, best[1], best[0])


@nodnod.scalar_node
class QuantityPricedNode:
    """The cart with every line repriced by its quantity rule."""

    def __init__(self, cart: CartSnapshot, resolutions: tuple[PriceResolution, ...]) -> None:
        self.cart = cart
        self.resolutions = resolutions

    @classmethod
    def __compose__(cls, source: CycleInputNode) -> "QuantityPricedNode":
        request = source.request
        resolutions = tuple(
            resolve_unit_price(line, request.registry.pricing) for line in request.cart.lines
        )
        for index, resolution in enumerate(resolutions):
            if resolution.changed:
                log.debug(
                    "quantity_price_applied",
                    line_index=index,
                    product_id=resolution.line.product_id,
                    quantity=resolution.line.quantity,
                    base=str(resolution.line.unit_price),
                    price=str(resolution.price),
                )
        cart = request.cart.with_lines(r.apply() for r in resolutions)
        return cls(cart, resolutions)


@nodnod.scalar_node
class SubtotalNode:
    """Post-pricing subtotal; the base for discounts."""

    def __init__(self, subtotal: Money) -> None:
        self.subtotal = subtotal

    @classmethod
    def __compose__(cls, priced: QuantityPricedNode) -> "SubtotalNode":
        return cls(priced.cart.subtotal)


__all__ = ("PriceResolution", "resolve_unit_price", "QuantityPricedNode", "SubtotalNode")
