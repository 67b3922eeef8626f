"""
Snapshot validation — reports the first offending line instead of guessing.
"""

from __future__ import annotations

from cartfees.cart._types import CartSnapshot
from cartfees.errors import InputError
from cartfees.money import Money


def validate_snapshot(cart: CartSnapshot) -> CartSnapshot:
    """
    Check a snapshot before any stage runs.

    Raises InputError for a non-positive or non-integer quantity, a negative
    unit price, a negative shipping total, or a currency that differs from the
    cart's. Returns the snapshot unchanged when it is well formed.
    """
    if not isinstance(cart.shipping_total, Money):
        raise InputError("shipping total is not Money")
    if cart.shipping_total.currency != cart.currency:
        raise InputError(
            f"shipping total in {cart.shipping_total.currency}, cart in {cart.currency}"
        )
    if cart.shipping_total.is_negative():
        raise InputError(f"negative shipping total {cart.shipping_total}")

    for index, line in enumerate(cart.lines):
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
            raise InputError(
                f"quantity must be an integer, got {line.quantity!r}",
                line_index=index,
                product_id=line.product_id,
            )
        if line.quantity <= 0:
            raise InputError(
                f"quantity must be positive, got {line.quantity}",
                line_index=index,
                product_id=line.product_id,
            )
        if not isinstance(line.unit_price, Money):
            raise InputError("unit price is not Money", line_index=index, product_id=line.product_id)
        if line.unit_price.currency != cart.currency:
            raise InputError(
                f"unit price in {line.unit_price.currency}, cart in {cart.currency}",
                line_index=index,
                product_id=line.product_id,
            )
        if line.unit_price.is_negative():
            raise InputError(
                f"negative unit price {line.unit_price}",
                line_index=index,
                product_id=line.product_id,
            )

    for fee in cart.fees.fees:
        if fee.amount.currency != cart.currency:
            raise InputError(f"fee {fee.key!r} in {fee.amount.currency}, cart in {cart.currency}")

    return cart


__all__ = ("validate_snapshot",)
