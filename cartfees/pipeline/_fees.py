"""
Fee set — merge of the stage outputs into the cart's fee map.
"""

from collections.abc import Iterable

import nodnod

from cartfees.cart import CartSnapshot, Fee, FeeMap
from cartfees.pipeline._discount import DiscountNode
from cartfees.pipeline._input import CycleInputNode
from cartfees.pipeline._quantity import QuantityPricedNode
from cartfees.pipeline._surcharge import SurchargeNode

def merge_fees(host: FeeMap, emitted: Iterable[Fee]) -> FeeMap:
    """
    Host fees without the engine-owned ones, then this cycle's fees in stage
    order. Owned keys not re-emitted disappear instead of lingering at zero.
    """
    ordered = sorted(emitted, key=lambda fee: fee.stage.value)
    return FeeMap((*host.foreign().fees, *ordered))


@nodnod.scalar_node
class FeeSetNode:
    """
    Final node: repriced cart carrying the merged fee map.

    removed: engine-owned keys present on the incoming cart that this cycle
    did not emit again.
    """

    def __init__(self, cart: CartSnapshot, removed: tuple[str, ...]) -> None:
        self.cart = cart
        self.removed = removed

    @property
    def fees(self) -> FeeMap:
        return self.cart.fees

    @classmethod
    def __compose__(
        cls,
        source: CycleInputNode,
        priced: QuantityPricedNode,
        discount: DiscountNode,
        surcharge: SurchargeNode,
    ) -> "FeeSetNode":
        host = source.request.cart.fees
        fees = merge_fees(host, (*discount.fees, *surcharge.fees))
        removed = tuple(key for key in host.owned_by_engine() if key not in fees)
        return cls(priced.cart.with_fees(fees), removed)


__all__ = ("merge_fees", "FeeSetNode")
