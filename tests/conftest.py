"""Shared builders for fee pipeline tests."""

from decimal import Decimal

import pytest
import structlog

from cartfees.cart import CartSnapshot, CustomerLoyalty, LineItem
from cartfees.money import Money
from cartfees.rules import (
    DiscountType,
    PricingRule,
    PricingScope,
    RuleRegistry,
    default_rules,
)

CARD = "intuit_payments_credit_card"
CHECK = "check"


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


def line(product_id: str = "sku-1", quantity: int = 1, price: str = "100.00", **kwargs) -> LineItem:
    return LineItem(product_id, quantity, usd(price), **kwargs)


def cart(*lines: LineItem, shipping: str = "0.00", fees=()) -> CartSnapshot:
    return CartSnapshot.of(lines, shipping_total=usd(shipping), fees=fees)


def vip(spend: str = "600.00", **kwargs) -> CustomerLoyalty:
    return CustomerLoyalty.of("cust-1", usd(spend), **kwargs)


def ten_percent_at_five(product_id: str = "sku-1") -> PricingRule:
    return PricingRule(PricingScope.product(product_id), 5, None, DiscountType.PERCENTAGE, Decimal("10"))


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.reset_defaults()


@pytest.fixture
def rules() -> RuleRegistry:
    return default_rules("USD")


@pytest.fixture
def guest() -> CustomerLoyalty:
    return CustomerLoyalty.anonymous("USD")


@pytest.fixture
def platinum() -> CustomerLoyalty:
    return vip("600.00")


@pytest.fixture
def five_hundred_cart() -> CartSnapshot:
    return cart(line("sku-1", 5, "100.00"))
