"""
Cart types — immutable snapshot of the host cart plus the fees computed for it.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from cartfees.money import Money


# ═══════════════════════════════════════════════════════════════════════════════
# Fee keys
# ═══════════════════════════════════════════════════════════════════════════════

VIP_DISCOUNT_KEY = "vip_discount"
SURCHARGE_PREFIX = "surcharge:"
BULK_DISCOUNT_PREFIX = "bulk_discount:"


def surcharge_key(method: str) -> str:
    return f"{SURCHARGE_PREFIX}{method}"


def bulk_discount_key(product_id: str) -> str:
    return f"{BULK_DISCOUNT_PREFIX}{product_id}"


def is_engine_key(key: str) -> bool:
    """Keys in the namespaces this engine owns and may replace or delete."""
    return (
        key == VIP_DISCOUNT_KEY
        or key.startswith(SURCHARGE_PREFIX)
        or key.startswith(BULK_DISCOUNT_PREFIX)
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Fee
# ═══════════════════════════════════════════════════════════════════════════════


class FeeStage(Enum):
    """
    Stage that emitted a fee.

    Values are the execution order: quantity pricing → discount → surcharge.
    """

    QUANTITY_PRICING = 1
    DISCOUNT = 2
    SURCHARGE = 3


@dataclass(frozen=True, slots=True)
class Fee:
    """
    One monetary adjustment on the cart.

    key is the stable machine identifier (locale independent); name is the
    human label. amount is signed: discounts are negative.
    """

    key: str
    name: str
    amount: Money
    taxable: bool
    stage: FeeStage

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "amount": str(self.amount.amount),
            "currency": self.amount.currency,
            "taxable": self.taxable,
            "stage": self.stage.name,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# FeeMap — ordered, one fee per key
# ═══════════════════════════════════════════════════════════════════════════════


class FeeMap(Mapping[str, Fee]):
    """
    Immutable ordered mapping key → Fee.

    with_fee() is insert-or-replace: re-emitting a key replaces the earlier
    fee in place instead of adding a second entry.

    Note: equality is order-sensitive so that equal maps render to identical
    JSON.
    """

    __slots__ = ("_fees",)

    def __init__(self, fees: Iterable[Fee] = ()) -> None:
        merged: dict[str, Fee] = {}
        for fee in fees:
            merged[fee.key] = fee
        self._fees: tuple[Fee, ...] = tuple(merged.values())

    @classmethod
    def empty(cls) -> FeeMap:
        return cls()

    # ── Mapping protocol ─────────────────────────────────────────────────────

    def __getitem__(self, key: str) -> Fee:
        for fee in self._fees:
            if fee.key == key:
                return fee
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return (fee.key for fee in self._fees)

    def __len__(self) -> int:
        return len(self._fees)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeeMap):
            return NotImplemented
        return self._fees == other._fees

    def __hash__(self) -> int:
        return hash(self._fees)

    def __repr__(self) -> str:
        inner = ", ".join(f"{f.key}={f.amount}" for f in self._fees)
        return f"FeeMap({inner})"

    # ── Derivations ──────────────────────────────────────────────────────────

    @property
    def fees(self) -> tuple[Fee, ...]:
        return self._fees

    def with_fee(self, fee: Fee) -> FeeMap:
        """Insert or replace by key."""
        return FeeMap((*self._fees, fee))

    def without(self, key: str) -> FeeMap:
        return FeeMap(f for f in self._fees if f.key != key)

    def foreign(self) -> FeeMap:
        """Fees this engine does not own (added by the host or other plugins)."""
        return FeeMap(f for f in self._fees if not is_engine_key(f.key))

    def owned_by_engine(self) -> FeeMap:
        return FeeMap(f for f in self._fees if is_engine_key(f.key))

    def by_stage(self, stage: FeeStage) -> tuple[Fee, ...]:
        return tuple(f for f in self._fees if f.stage is stage)

    def total(self, currency: str) -> Money:
        return Money.total((f.amount for f in self._fees), currency)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {fee.key: fee.to_dict() for fee in self._fees}

    def to_json(self) -> str:
        """Canonical rendering: identical maps give identical bytes."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Line items and snapshot
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineItem:
    """
    One cart line.

    parent_id groups product variations (bulk discounts count quantity per
    parent). taxable is the pre-computed tax status supplied by the host.
    """

    product_id: str
    quantity: int
    unit_price: Money
    categories: tuple[str, ...] = ()
    taxable: bool = True
    parent_id: str | None = None

    @property
    def subtotal(self) -> Money:
        return self.unit_price * self.quantity

    @property
    def group_id(self) -> str:
        return self.parent_id or self.product_id

    def reprice(self, unit_price: Money) -> LineItem:
        return replace(self, unit_price=unit_price)


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    """
    Immutable view of the host cart for one computation cycle.

    Stages never mutate a snapshot: with_lines()/with_fees() return new ones.
    """

    lines: tuple[LineItem, ...]
    shipping_total: Money
    fees: FeeMap = field(default_factory=FeeMap)
    currency: str = "USD"

    @classmethod
    def of(
        cls,
        lines: Iterable[LineItem],
        shipping_total: Money | None = None,
        fees: Iterable[Fee] = (),
        currency: str = "USD",
    ) -> CartSnapshot:
        return cls(
            lines=tuple(lines),
            shipping_total=shipping_total if shipping_total is not None else Money.zero(currency),
            fees=FeeMap(fees),
            currency=currency.upper(),
        )

    @property
    def subtotal(self) -> Money:
        return Money.total((line.subtotal for line in self.lines), self.currency)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def with_lines(self, lines: Iterable[LineItem]) -> CartSnapshot:
        return replace(self, lines=tuple(lines))

    def with_fees(self, fees: FeeMap) -> CartSnapshot:
        return replace(self, fees=fees)


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
)
