"""
Pipeline — the fee stages as a nodnod graph.

    CycleInputNode → QuantityPricedNode → SubtotalNode
                                        → DiscountNode → SurchargeNode
                                                       → FeeSetNode

SurchargeNode takes DiscountNode as a dependency, so a surcharge can only be
computed from discount fees finalized in the same cycle.

    from cartfees.pipeline import CycleRequest, fee_pipeline

    fee_set = await fee_pipeline(CycleRequest.of(cart, registry, customer, "card"))
"""

from cartfees.pipeline._graph import TypedScope, Compiled, graph
from cartfees.pipeline._input import CycleRequest, CycleInputNode
from cartfees.pipeline._quantity import (
    PriceResolution,
    resolve_unit_price,
    QuantityPricedNode,
    SubtotalNode,
)
from cartfees.pipeline._discount import (
    vip_discount,
    select_bulk_rule,
    bulk_discounts,
    DiscountNode,
)
from cartfees.pipeline._surcharge import surcharge_base, payment_surcharge, SurchargeNode
from cartfees.pipeline._fees import merge_fees, FeeSetNode
from cartfees.pipeline._hints import (
    HintSource,
    ThresholdHint,
    ThresholdHints,
    threshold_hints,
)

fee_pipeline: Compiled[FeeSetNode] = graph(FeeSetNode)

__all__ = (
    # Graph
    "TypedScope",
    "Compiled",
    "graph",
    "fee_pipeline",
    # Nodes
    "CycleRequest",
    "CycleInputNode",
    "QuantityPricedNode",
    "SubtotalNode",
    "DiscountNode",
    "SurchargeNode",
    "FeeSetNode",
    # Stage functions
    "PriceResolution",
    "resolve_unit_price",
    "vip_discount",
    "select_bulk_rule",
    "bulk_discounts",
    "surcharge_base",
    "payment_surcharge",
    "merge_fees",
    # Hints
    "HintSource",
    "ThresholdHint",
    "ThresholdHints",
    "threshold_hints",
)
