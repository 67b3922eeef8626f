"""Tests for the pipeline stages as plain functions."""

from decimal import Decimal

import pytest

from cartfees.cart import VIP_DISCOUNT_KEY, CustomerLoyalty, Fee, FeeMap, FeeStage
from cartfees.money import Money
from cartfees.pipeline import (
    bulk_discounts,
    merge_fees,
    payment_surcharge,
    resolve_unit_price,
    select_bulk_rule,
    surcharge_base,
    threshold_hints,
    vip_discount,
)
from cartfees.rules import (
    DISTRIBUTOR_ROLE,
    BulkDiscountRule,
    DiscountType,
    PricingRule,
    PricingScope,
    RuleRegistry,
    SurchargeRule,
    SurchargeTable,
)

from tests.conftest import CARD, line, ten_percent_at_five, usd, vip


def rule(min_q, max_q, kind, amount, scope=None):
    return PricingRule(scope or PricingScope.product("sku-1"), min_q, max_q, kind, Decimal(amount))


class TestQuantityPricing:
    def test_no_match_leaves_price(self):
        resolution = resolve_unit_price(line(quantity=4), (ten_percent_at_five(),))
        assert resolution.rule is None
        assert resolution.apply() == line(quantity=4)

    def test_ten_percent_at_five(self):
        resolution = resolve_unit_price(line(quantity=5), (ten_percent_at_five(),))
        assert resolution.price == usd("90.00")
        assert resolution.apply().subtotal == usd("450.00")

    def test_highest_min_quantity_wins(self):
        rules = (
            rule(5, None, DiscountType.PERCENTAGE, "30"),
            rule(10, None, DiscountType.PERCENTAGE, "10"),
        )
        assert resolve_unit_price(line(quantity=12), rules).price == usd("90.00")

    def test_tie_goes_to_lower_price(self):
        rules = (
            rule(5, None, DiscountType.FIXED, "5"),
            rule(5, None, DiscountType.FIXED_PRICE, "80", scope=PricingScope.category("tools")),
        )
        resolution = resolve_unit_price(line(quantity=5, categories=("tools",)), rules)
        assert resolution.price == usd("80.00")
        assert resolution.rule is rules[1]

    def test_equal_candidates_keep_first_declared(self):
        rules = (
            rule(5, None, DiscountType.FIXED, "10"),
            rule(5, 20, DiscountType.PERCENTAGE, "10"),
        )
        assert resolve_unit_price(line(quantity=5), rules).rule is rules[0]

    def test_percentage_rounds_half_away(self):
        resolution = resolve_unit_price(line(quantity=5, price="0.05"), (rule(5, None, DiscountType.PERCENTAGE, "50"),))
        assert resolution.price == usd("0.03")


class TestVipDiscount:
    def test_platinum(self, rules):
        fee = vip_discount(usd("500.00"), vip("600"), rules.loyalty)
        assert fee.key == VIP_DISCOUNT_KEY
        assert fee.amount == usd("-50.00")
        assert fee.name == "VIP Platinum Discount (10%)"
        assert fee.taxable is False
        assert fee.stage is FeeStage.DISCOUNT

    def test_below_lowest_threshold(self, rules):
        assert vip_discount(usd("500.00"), vip("99.99"), rules.loyalty) is None

    def test_below_minimum_order(self, rules):
        assert vip_discount(usd("299.99"), vip("350"), rules.loyalty) is None
        assert vip_discount(usd("300.00"), vip("350"), rules.loyalty).amount == usd("-24.00")

    def test_guest_never_qualifies(self, rules, guest):
        assert vip_discount(usd("1000.00"), guest, rules.loyalty) is None

    def test_precomputed_tier(self, rules):
        gold = rules.loyalty.by_name("gold")
        fee = vip_discount(usd("400.00"), vip("0", tier="gold"), rules.loyalty, gold)
        assert fee.amount == usd("-32.00")


class TestBulkDiscounts:
    def test_quantity_threshold(self, rules, guest):
        assert bulk_discounts([line("80", 4)], guest, rules.bulk, "USD") == ()
        (fee,) = bulk_discounts([line("80", 5)], guest, rules.bulk, "USD")
        assert fee.key == "bulk_discount:80"
        assert fee.amount == usd("-50.00")
        assert fee.name == "Bulk Discount (80)"

    def test_role_rule_applies_from_one_unit(self, rules):
        distributor = CustomerLoyalty.of("d", usd("0"), roles=[DISTRIBUTOR_ROLE])
        (fee,) = bulk_discounts([line("80", 1)], distributor, rules.bulk, "USD")
        assert fee.amount == usd("-10.00")

    def test_higher_priority_wins(self):
        rules = (
            BulkDiscountRule("80", Decimal("1"), priority=10),
            BulkDiscountRule("80", Decimal("2"), priority=20),
            BulkDiscountRule("80", Decimal("3"), priority=20),
        )
        winner = select_bulk_rule(rules, 1, CustomerLoyalty.anonymous())
        assert winner is rules[1]

    def test_variations_aggregate_by_parent(self, rules, guest):
        lines = [line("80-red", 3, parent_id="80"), line("80-blue", 2, parent_id="80")]
        (fee,) = bulk_discounts(lines, guest, rules.bulk, "USD")
        assert fee.amount == usd("-50.00")

    def test_capped_at_product_subtotal(self, rules, guest):
        (fee,) = bulk_discounts([line("80", 5, price="1.00")], guest, rules.bulk, "USD")
        assert fee.amount == usd("-5.00")


class TestSurcharge:
    table = SurchargeTable((SurchargeRule(CARD, Decimal("0.03")), SurchargeRule("check", Decimal("0"))))

    def discount(self, amount: str) -> Fee:
        return Fee(VIP_DISCOUNT_KEY, "VIP", usd(amount), False, FeeStage.DISCOUNT)

    def test_after_discount(self):
        fee = payment_surcharge(usd("500.00"), usd("0"), [self.discount("-50.00")], CARD, self.table)
        assert fee.amount == usd("13.50")
        assert fee.key == f"surcharge:{CARD}"
        assert fee.name == "Credit Card Surcharge (3%)"
        assert fee.taxable is False

    def test_includes_shipping(self):
        assert payment_surcharge(usd("100.00"), usd("10.00"), [], CARD, self.table).amount == usd("3.30")

    def test_zero_rate_or_no_method(self):
        assert payment_surcharge(usd("100.00"), usd("0"), [], "check", self.table) is None
        assert payment_surcharge(usd("100.00"), usd("0"), [], None, self.table) is None
        assert payment_surcharge(usd("100.00"), usd("0"), [], "paypal", self.table) is None

    def test_base_clamped_at_zero(self):
        assert surcharge_base(usd("10.00"), usd("0"), [self.discount("-20.00")]) == Money.zero()
        assert payment_surcharge(usd("10.00"), usd("0"), [self.discount("-20.00")], CARD, self.table) is None


class TestMerge:
    def test_drops_stale_engine_fees_and_keeps_foreign(self):
        host = FeeMap([
            Fee("surcharge:old", "Old", usd("9.99"), False, FeeStage.SURCHARGE),
            Fee("gift_wrap", "Gift wrap", usd("3.00"), True, FeeStage.DISCOUNT),
            Fee(VIP_DISCOUNT_KEY, "VIP", usd("-1.00"), False, FeeStage.DISCOUNT),
        ])
        surcharge = Fee("surcharge:card", "Card", usd("1.00"), False, FeeStage.SURCHARGE)
        discount = Fee(VIP_DISCOUNT_KEY, "VIP", usd("-5.00"), False, FeeStage.DISCOUNT)
        merged = merge_fees(host, [surcharge, discount])
        assert list(merged) == ["gift_wrap", VIP_DISCOUNT_KEY, "surcharge:card"]
        assert merged[VIP_DISCOUNT_KEY].amount == usd("-5.00")


class TestThresholdHints:
    def test_next_pricing_break(self):
        registry = RuleRegistry.empty().with_pricing(ten_percent_at_five(), rule(10, None, DiscountType.PERCENTAGE, "15"))
        hints = threshold_hints(line(quantity=6), registry)
        assert [h.min_quantity for h in hints.reached] == [5]
        assert hints.upcoming.min_quantity == 10
        assert hints.units_to_next == 4

    def test_outgrown_range_not_reached(self):
        registry = RuleRegistry.empty().with_pricing(
            rule(1, 4, DiscountType.PERCENTAGE, "5"), rule(10, None, DiscountType.PERCENTAGE, "15")
        )
        hints = threshold_hints(line(quantity=6), registry)
        assert hints.reached == ()
        assert hints.upcoming.min_quantity == 10

        at_ten = threshold_hints(line(quantity=10), registry)
        assert [h.description for h in at_ten.reached] == ["qty 10+: 15% off"]

    def test_role_restricted_bulk_hidden_from_guests(self, rules, guest):
        hints = threshold_hints(line("80", 2), rules, guest)
        assert hints.reached == ()
        assert hints.upcoming.min_quantity == 5

    def test_role_holder_sees_role_rule(self, rules):
        distributor = CustomerLoyalty.of("d", usd("0"), roles=[DISTRIBUTOR_ROLE])
        hints = threshold_hints(line("80", 2), rules, distributor)
        assert [h.min_quantity for h in hints.reached] == [1]

    @pytest.mark.parametrize("quantity", [50])
    def test_nothing_left(self, rules, guest, quantity):
        assert threshold_hints(line("80", quantity), rules, guest).units_to_next is None
