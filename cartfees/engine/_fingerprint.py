"""
Input fingerprint — detects a cycle whose inputs the ledger already reflects.

Engine-owned fees on the incoming cart are left out: the engine strips and
recomputes them, so a host that echoes last cycle's fees back still matches.
"""

from __future__ import annotations

import hashlib

from cartfees.pipeline import CycleRequest


def fingerprint(request: CycleRequest) -> str:
    cart = request.cart
    canonical = repr(
        (
            cart.currency,
            cart.lines,
            cart.shipping_total,
            cart.fees.foreign().to_json(),
            request.customer,
            request.payment_method,
            request.registry,
        )
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


__all__ = ("fingerprint",)
