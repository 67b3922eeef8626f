"""Tests for FeeEngine: scenarios, re-entrancy, rollback and idempotence."""

import asyncio
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from kungfu import Error, Ok
from structlog.testing import capture_logs

from cartfees.cart import VIP_DISCOUNT_KEY, Fee, FeeStage, surcharge_key
from cartfees.engine import (
    REJECT,
    EngineErrorKind,
    EnginePolicy,
    EngineState,
    FeeEngine,
)
from cartfees.rules import RuleRegistry, default_rules

from tests.conftest import CARD, CHECK, cart, line, ten_percent_at_five, usd, vip

CARD_KEY = surcharge_key(CARD)


def ok(result):
    match result:
        case Ok(cycle):
            return cycle
        case Error(e):
            pytest.fail(f"expected Ok, got {e.kind.name}: {e.message}")


def err(result):
    match result:
        case Ok(cycle):
            pytest.fail(f"expected Error, got {cycle}")
        case Error(e):
            return e


class FailingPipeline:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def __call__(self, *inputs):
        raise self.error


class SlowPipeline:
    async def __call__(self, *inputs):
        await asyncio.sleep(5)


class TestScenarios:
    async def test_a_discount_before_surcharge(self, rules, platinum, five_hundred_cart):
        cycle = ok(await FeeEngine(rules).invoke(five_hundred_cart, platinum, CARD))
        assert cycle.fees[VIP_DISCOUNT_KEY].amount == usd("-50.00")
        assert cycle.fees[CARD_KEY].amount == usd("13.50")
        assert list(cycle.fees) == [VIP_DISCOUNT_KEY, CARD_KEY]

    async def test_b_surcharge_includes_shipping(self, rules, guest):
        snapshot = cart(line(quantity=1, price="100.00"), shipping="10.00")
        cycle = ok(await FeeEngine(rules).invoke(snapshot, guest, CARD))
        assert list(cycle.fees) == [CARD_KEY]
        assert cycle.fees[CARD_KEY].amount == usd("3.30")

    async def test_c_method_switch_deletes_surcharge(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)
        first = ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        switched = ok(await engine.invoke(first.cart, platinum, CHECK))
        assert CARD_KEY not in switched.fees
        assert not any(key.startswith("surcharge:") for key in switched.fees)
        assert switched.fees[VIP_DISCOUNT_KEY].amount == usd("-50.00")
        assert engine.stable_fees == switched.fees

    async def test_method_switch_logs_one_removal(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)
        first = ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        with capture_logs() as logs:
            ok(await engine.invoke(first.cart, platinum, CHECK))
        removed = [entry for entry in logs if entry["event"] == "surcharge_removed"]
        assert [entry["key"] for entry in removed] == [CARD_KEY]

    async def test_removal_logged_when_host_sends_fresh_cart(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)
        ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        with capture_logs() as logs:
            ok(await engine.invoke(five_hundred_cart, platinum, CHECK))
        assert [entry["key"] for entry in logs if entry["event"] == "surcharge_removed"] == [CARD_KEY]

    async def test_d_quantity_pricing_only(self, guest):
        registry = RuleRegistry.empty().with_pricing(ten_percent_at_five())
        cycle = ok(await FeeEngine(registry).invoke(cart(line(quantity=5)), guest))
        assert cycle.cart.lines[0].unit_price == usd("90.00")
        assert cycle.cart.lines[0].subtotal == usd("450.00")
        assert len(cycle.fees) == 0

    async def test_e_reentrant_cycles_agree(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)
        nested = []

        async def rerun(fees):
            nested.append(await engine.invoke(five_hundred_cart, platinum, CARD))

        engine.subscribe(rerun)
        cycle = ok(await engine.invoke(five_hundred_cart, platinum, CARD))

        assert len(nested) == 1
        deferred = ok(nested[0])
        assert deferred.deferred
        assert deferred.fees == cycle.fees
        assert cycle.passes == 2
        assert engine.state is EngineState.IDLE
        assert engine.stable_fees.to_json() == cycle.fees.to_json()


class TestForeignFees:
    async def test_host_fees_survive(self, rules, platinum):
        wrap = Fee("gift_wrap", "Gift wrap", usd("3.00"), True, FeeStage.DISCOUNT)
        snapshot = cart(line(quantity=5), fees=[wrap])
        cycle = ok(await FeeEngine(rules).invoke(snapshot, platinum, CARD))
        assert list(cycle.fees) == ["gift_wrap", VIP_DISCOUNT_KEY, CARD_KEY]
        assert cycle.fees["gift_wrap"] == wrap


class TestReentrancy:
    async def test_passes_are_bounded(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules, EnginePolicy().with_max_passes(3))
        methods = iter([CHECK, CARD, CHECK, CARD])
        calls = []

        async def flip(fees):
            calls.append(fees)
            await engine.invoke(five_hundred_cart, platinum, next(methods))

        unsubscribe = engine.subscribe(flip)
        cycle = ok(await engine.invoke(five_hundred_cart, platinum, CARD))

        assert cycle.passes == 3
        assert len(calls) == 3
        assert engine.refresh_pending

        unsubscribe()
        again = ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        assert not again.from_cache
        assert not engine.refresh_pending

    async def test_latest_parked_request_wins(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)

        async def twice(fees):
            if CARD_KEY in fees:
                await engine.invoke(five_hundred_cart, platinum, CARD)
                await engine.invoke(five_hundred_cart, platinum, CHECK)

        engine.subscribe(twice)
        cycle = ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        assert CARD_KEY not in cycle.fees
        assert cycle.passes == 2

    async def test_reject_policy(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules, EnginePolicy().with_on_reentry(REJECT))
        nested = []

        async def rerun(fees):
            assert engine.state is EngineState.COMPUTING
            nested.append(await engine.invoke(five_hundred_cart, platinum, CHECK))

        unsubscribe = engine.subscribe(rerun)
        cycle = ok(await engine.invoke(five_hundred_cart, platinum, CARD))

        rejected = err(nested[0])
        assert rejected.kind is EngineErrorKind.REENTRANCY_REJECTED
        assert rejected.refresh_pending
        assert rejected.stable_fees == cycle.fees
        assert cycle.passes == 1
        assert engine.refresh_pending

        unsubscribe()
        ok(await engine.invoke(five_hundred_cart, platinum, CHECK))
        assert not engine.refresh_pending

    def test_invoke_sync_with_sync_listener(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)
        seen = []
        engine.subscribe(lambda fees: seen.append(engine.invoke_sync(five_hundred_cart, platinum, CHECK)))

        cycle = ok(engine.invoke_sync(five_hundred_cart, platinum, CARD))

        assert seen
        assert all(ok(result).deferred for result in seen)
        assert CARD_KEY not in cycle.fees
        assert engine.state is EngineState.IDLE

    async def test_invoke_sync_inside_running_loop(self, rules, platinum, five_hundred_cart, recwarn):
        engine = FeeEngine(rules)
        good = ok(await engine.invoke(five_hundred_cart, platinum, CARD))

        failed = err(engine.invoke_sync(five_hundred_cart, platinum, CHECK))

        assert failed.kind is EngineErrorKind.LOOP_RUNNING
        assert failed.stable_fees == good.fees
        assert engine.stable_fees == good.fees
        assert engine.state is EngineState.IDLE
        assert not [w for w in recwarn if issubclass(w.category, RuntimeWarning)]


class TestFailures:
    async def test_input_error_leaves_ledger(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)
        good = ok(await engine.invoke(five_hundred_cart, platinum, CARD))

        failed = err(await engine.invoke(cart(line(quantity=0)), platinum, CARD))

        assert failed.kind is EngineErrorKind.INPUT
        assert failed.stable_fees == good.fees
        assert engine.stable_fees == good.fees
        assert engine.stable_cart == good.cart
        assert engine.state is EngineState.IDLE

    async def test_unknown_precomputed_tier(self, rules, five_hundred_cart):
        failed = err(await FeeEngine(rules).invoke(five_hundred_cart, vip("0", tier="diamond"), CARD))
        assert failed.kind is EngineErrorKind.CONFIGURATION

    async def test_registry_currency_mismatch(self, five_hundred_cart, guest):
        failed = err(await FeeEngine(default_rules("EUR")).invoke(five_hundred_cart, guest, CARD))
        assert failed.kind is EngineErrorKind.CONFIGURATION

    async def test_stage_error_is_wrapped(self, rules, guest, five_hundred_cart):
        boom = RuntimeError("boom")
        engine = FeeEngine(rules, pipeline=FailingPipeline(boom))
        failed = err(await engine.invoke(five_hundred_cart, guest, CARD))
        assert failed.kind is EngineErrorKind.STAGE
        assert failed.original_error is boom
        assert failed.message == "boom"

    async def test_timeout(self, rules, guest, five_hundred_cart):
        policy = EnginePolicy().with_timeout(milliseconds=20)
        engine = FeeEngine(rules, policy, pipeline=SlowPipeline())
        failed = err(await engine.invoke(five_hundred_cart, guest, CARD))
        assert failed.kind is EngineErrorKind.TIMEOUT
        assert len(engine.stable_fees) == 0

    async def test_listener_failure_is_counted(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)

        def broken(fees):
            raise ValueError("listener bug")

        engine.subscribe(broken)
        ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        assert engine.listener_failures == 1


class TestIdempotence:
    async def test_unchanged_inputs_come_from_ledger(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)
        calls = []
        engine.subscribe(calls.append)

        first = ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        second = ok(await engine.invoke(first.cart, platinum, CARD))

        assert second.from_cache
        assert second.fees.to_json() == first.fees.to_json()
        assert len(calls) == 1

    async def test_recomputation_is_byte_identical(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules, EnginePolicy().with_fingerprint(False))
        calls = []
        engine.subscribe(calls.append)

        first = ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        second = ok(await engine.invoke(first.cart, platinum, CARD))

        assert not second.from_cache
        assert second.fees.to_json() == first.fees.to_json()
        assert len(calls) == 1

    async def test_changed_rules_recompute(self, rules, platinum, five_hundred_cart):
        engine = FeeEngine(rules)
        ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        engine.use_rules(RuleRegistry.empty())
        cycle = ok(await engine.invoke(five_hundred_cart, platinum, CARD))
        assert not cycle.from_cache
        assert len(cycle.fees) == 0


amounts = st.integers(min_value=0, max_value=50_000).map(lambda cents: f"{Decimal(cents) / 100:.2f}")


@settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    quantities=st.lists(st.integers(1, 12), min_size=1, max_size=4),
    price=amounts,
    shipping=amounts,
    spend=amounts,
    method=st.sampled_from([CARD, CHECK, None]),
)
def test_surcharge_always_reads_final_discounts(quantities, price, shipping, spend, method):
    registry = default_rules("USD").with_pricing(ten_percent_at_five("p0"))
    snapshot = cart(*(line(f"p{i}", q, price) for i, q in enumerate(quantities)), shipping=shipping)
    customer = vip(spend)

    first = ok(FeeEngine(registry).invoke_sync(snapshot, customer, method))
    second = ok(FeeEngine(registry, EnginePolicy().with_fingerprint(False)).invoke_sync(snapshot, customer, method))
    assert first.fees.to_json() == second.fees.to_json()

    stages = [fee.stage.value for fee in first.fees.values()]
    assert stages == sorted(stages)

    discounts = first.fees.by_stage(FeeStage.DISCOUNT)
    base = (first.cart.subtotal + usd(shipping) + sum((f.amount for f in discounts), usd("0"))).clamp_zero()
    expected = base.scale(Decimal("0.03"))
    if method == CARD and not expected.is_zero():
        assert first.fees[CARD_KEY].amount == expected
    else:
        assert not any(key.startswith("surcharge:") for key in first.fees)
