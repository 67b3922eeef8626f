"""
Cart — snapshot of the host cart and the fee map computed for it.

    from cartfees.cart import CartSnapshot, LineItem

    cart = CartSnapshot.of(
        [LineItem("80", 5, Money.of("100.00"))],
        shipping_total=Money.of("10.00"),
    )
"""

from cartfees.cart._types import (
    VIP_DISCOUNT_KEY,
    SURCHARGE_PREFIX,
    BULK_DISCOUNT_PREFIX,
    surcharge_key,
    bulk_discount_key,
    is_engine_key,
    FeeStage,
    Fee,
    FeeMap,
    LineItem,
    CartSnapshot,
)
from cartfees.cart._customer import CustomerLoyalty
from cartfees.cart._validate import validate_snapshot

__all__ = (
    "VIP_DISCOUNT_KEY",
    "SURCHARGE_PREFIX",
    "BULK_DISCOUNT_PREFIX",
    "surcharge_key",
    "bulk_discount_key",
    "is_engine_key",
    "FeeStage",
    "Fee",
    "FeeMap",
    "LineItem",
    "CartSnapshot",
    "CustomerLoyalty",
    "validate_snapshot",
)
