"""
Wire models — JSON documents for carts, customers and fee cycles.

Same in/out shape as the rule config: *In models validate and map to the
domain with to_domain(), *Out models render a domain result.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Literal

from kungfu import Error, Ok, Result
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cartfees.cart import CartSnapshot, CustomerLoyalty, Fee, FeeStage, LineItem
from cartfees.engine import EngineError, FeeCycle
from cartfees.errors import InputError
from cartfees.money import Money, minor_exponent


class _In(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


def _exact(
    value: Decimal,
    currency: str,
    field: str,
    *,
    line_index: int | None = None,
    product_id: str | None = None,
) -> Money:
    """Money from a document amount. Digits below the minor unit are an error, not rounded."""
    places = minor_exponent(currency)
    scaled = value.scaleb(places)
    if scaled != scaled.to_integral_value():
        raise InputError(
            f"{field} {value} has more than {places} decimal places for {currency}",
            line_index=line_index,
            product_id=product_id,
        )
    return Money.of(value, currency)


class LineItemIn(_In):
    product_id: str
    quantity: int
    unit_price: Decimal
    categories: list[str] = Field(default_factory=list)
    taxable: bool = True
    parent_id: str | None = None

    def to_domain(self, currency: str, index: int = 0) -> LineItem:
        return LineItem(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_price=_exact(
                self.unit_price, currency, "unit_price", line_index=index, product_id=self.product_id
            ),
            categories=tuple(self.categories),
            taxable=self.taxable,
            parent_id=self.parent_id,
        )


class FeeIn(_In):
    key: str
    name: str
    amount: Decimal
    taxable: bool = False
    stage: Literal["QUANTITY_PRICING", "DISCOUNT", "SURCHARGE"] = "DISCOUNT"

    def to_domain(self, currency: str) -> Fee:
        return Fee(
            key=self.key,
            name=self.name,
            amount=_exact(self.amount, currency, f"fee {self.key} amount"),
            taxable=self.taxable,
            stage=FeeStage[self.stage],
        )


class CartIn(_In):
    currency: str = "USD"
    shipping_total: Decimal = Decimal("0")
    lines: list[LineItemIn] = Field(default_factory=list)
    fees: list[FeeIn] = Field(default_factory=list)

    def to_domain(self) -> CartSnapshot:
        currency = self.currency.upper()
        return CartSnapshot.of(
            (line.to_domain(currency, index) for index, line in enumerate(self.lines)),
            shipping_total=_exact(self.shipping_total, currency, "shipping_total"),
            fees=(fee.to_domain(currency) for fee in self.fees),
            currency=currency,
        )


class CustomerIn(_In):
    customer_id: str | None = None
    lifetime_spend: Decimal = Decimal("0")
    tier: str | None = None
    roles: list[str] = Field(default_factory=list)

    def to_domain(self, currency: str) -> CustomerLoyalty:
        return CustomerLoyalty.of(
            self.customer_id,
            _exact(self.lifetime_spend, currency, "lifetime_spend"),
            tier=self.tier,
            roles=self.roles,
        )


class FeeCycleOut(BaseModel):
    ok: bool
    fees: dict[str, dict[str, Any]]
    lines: list[dict[str, Any]] = Field(default_factory=list)
    from_cache: bool = False
    error_kind: str | None = None
    message: str | None = None

    @classmethod
    def from_domain(cls, dom: Result[FeeCycle, EngineError]) -> FeeCycleOut:
        match dom:
            case Ok(cycle):
                lines = [] if cycle.cart is None else [
                    {
                        "product_id": line.product_id,
                        "quantity": line.quantity,
                        "unit_price": str(line.unit_price.amount),
                        "subtotal": str(line.subtotal.amount),
                    }
                    for line in cycle.cart.lines
                ]
                return cls(ok=True, fees=cycle.fees.to_dict(), lines=lines, from_cache=cycle.from_cache)
            case Error(e):
                return cls(ok=False, fees=e.stable_fees.to_dict(), error_kind=e.kind.name, message=e.message)


def read_model[M: BaseModel](model: type[M], path: str | Path) -> M:
    """Load a JSON document; schema problems become InputError."""
    try:
        return model.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise InputError(f"cannot read {path}: {e}") from e
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        raise InputError(f"{path}: {where}: {first.get('msg', 'invalid')}") from e


__all__ = (
    "LineItemIn",
    "FeeIn",
    "CartIn",
    "CustomerIn",
    "FeeCycleOut",
    "read_model",
)
