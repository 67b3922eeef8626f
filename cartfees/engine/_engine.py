"""
FeeEngine — runs the fee pipeline for one cart session.

    engine = FeeEngine(default_rules())
    match await engine.invoke(cart, customer, "intuit_payments_credit_card"):
        case Ok(cycle):
            render(cycle.fees)
        case Error(err):
            render(err.stable_fees)

Outcomes are Results: stage exceptions never escape invoke(). A failed pass
leaves the ledger as it was; a successful one replaces it in one step.
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from collections.abc import Callable

import combinators as C
import structlog
from kungfu import Error, Ok, Result

from cartfees.cart import SURCHARGE_PREFIX, CartSnapshot, CustomerLoyalty, FeeMap
from cartfees.engine._fingerprint import fingerprint
from cartfees.engine._guard import RecalculationGuard
from cartfees.engine._ledger import Ledger
from cartfees.engine._policy import EnginePolicy, OnReentry
from cartfees.engine._types import EngineError, EngineErrorKind, EngineState, FeeCycle
from cartfees.pipeline import Compiled, CycleRequest, FeeSetNode, fee_pipeline
from cartfees.rules import RuleRegistry

type Listener = Callable[[FeeMap], object]
"""Called with the new fee map after a commit that changed it."""


class FeeEngine:
    """
    Orchestrator for one cart session.

    State that survives between cycles: the guard (reentrancy flag, pending
    slot, refresh_pending) and the ledger of the last committed cycle.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        policy: EnginePolicy | None = None,
        *,
        session: str | None = None,
        pipeline: Compiled[FeeSetNode] = fee_pipeline,
    ) -> None:
        self._registry = registry
        self._policy = policy or EnginePolicy()
        self._pipeline = pipeline
        self._guard = RecalculationGuard()
        self._ledger = Ledger()
        self._listeners: list[Listener] = []
        self.listener_failures = 0
        self.engine_id = uuid.uuid4().hex[:12]
        self._log = structlog.get_logger(__name__).bind(engine_id=self.engine_id, session=session)

    # ── Introspection ────────────────────────────────────────────────────────

    @property
    def state(self) -> EngineState:
        return EngineState.COMPUTING if self._guard.active else EngineState.IDLE

    @property
    def stable_fees(self) -> FeeMap:
        return self._ledger.fees

    @property
    def stable_cart(self) -> CartSnapshot | None:
        return self._ledger.cart

    @property
    def refresh_pending(self) -> bool:
        return self._guard.refresh_pending

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    @property
    def policy(self) -> EnginePolicy:
        return self._policy

    def use_rules(self, registry: RuleRegistry) -> None:
        """Swap the rule registry. A running cycle keeps the one it started with."""
        self._registry = registry

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Entry points ─────────────────────────────────────────────────────────

    def request(
        self,
        cart: CartSnapshot,
        customer: CustomerLoyalty | None = None,
        payment_method: str | None = None,
        *,
        registry: RuleRegistry | None = None,
    ) -> CycleRequest:
        return CycleRequest.of(cart, registry or self._registry, customer, payment_method)

    async def invoke(
        self,
        cart: CartSnapshot,
        customer: CustomerLoyalty | None = None,
        payment_method: str | None = None,
        *,
        registry: RuleRegistry | None = None,
    ) -> Result[FeeCycle, EngineError]:
        request = self.request(cart, customer, payment_method, registry=registry)
        if self._guard.active:
            return self._reenter(request)
        with self._guard.hold():
            return await self._drain(request)

    def invoke_sync(
        self,
        cart: CartSnapshot,
        customer: CustomerLoyalty | None = None,
        payment_method: str | None = None,
        *,
        registry: RuleRegistry | None = None,
    ) -> Result[FeeCycle, EngineError]:
        """
        Blocking invoke for hosts without an event loop.

        A re-entrant call (from a listener of a running cycle) is answered
        without touching the event loop. Any other call made from inside a
        running loop gets a LOOP_RUNNING error; await invoke() there instead.
        """
        if self._guard.active:
            return self._reenter(self.request(cart, customer, payment_method, registry=registry))
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.invoke(cart, customer, payment_method, registry=registry))
        self._log.warning("sync_invoke_in_loop")
        return Error(
            EngineError(
                kind=EngineErrorKind.LOOP_RUNNING,
                message="invoke_sync called from a running event loop, await invoke() instead",
                stable_fees=self._ledger.fees,
                refresh_pending=self._guard.refresh_pending,
            )
        )

    # ── Internals ────────────────────────────────────────────────────────────

    def _reenter(self, request: CycleRequest) -> Result[FeeCycle, EngineError]:
        match self._policy.on_reentry:
            case OnReentry.COALESCE:
                replaced = self._guard.park(request)
                self._log.info("reentry_coalesced", replaced=replaced)
                return Ok(FeeCycle(fees=self._ledger.fees, cart=self._ledger.cart, deferred=True))
            case OnReentry.REJECT:
                self._guard.refresh_pending = True
                self._log.warning("reentry_rejected")
                return Error(
                    EngineError(
                        kind=EngineErrorKind.REENTRANCY_REJECTED,
                        message="fee cycle already computing",
                        stable_fees=self._ledger.fees,
                        refresh_pending=True,
                    )
                )

    async def _drain(self, request: CycleRequest) -> Result[FeeCycle, EngineError]:
        passes = 1
        outcome = await self._pass(request, passes)
        while (parked := self._guard.take()) is not None:
            if passes >= self._policy.max_passes:
                self._guard.refresh_pending = True
                self._log.warning("pending_dropped", passes=passes, max_passes=self._policy.max_passes)
                break
            passes += 1
            outcome = await self._pass(parked, passes)
        return outcome

    async def _compute(self, request: CycleRequest) -> FeeSetNode:
        if self._policy.timeout is None:
            return await self._pipeline(request)
        async with asyncio.timeout(self._policy.timeout):
            return await self._pipeline(request)

    async def _pass(self, request: CycleRequest, number: int) -> Result[FeeCycle, EngineError]:
        key = fingerprint(request) if self._policy.use_fingerprint else None
        if self._ledger.matches(key) and not self._guard.refresh_pending:
            self._log.debug("cycle_cached", pass_number=number)
            return Ok(FeeCycle(fees=self._ledger.fees, cart=self._ledger.cart, from_cache=True, passes=number))

        self._log.info(
            "cycle_started",
            pass_number=number,
            lines=len(request.cart.lines),
            payment_method=request.payment_method,
        )
        outcome = await C.catching_async(
            lambda: self._compute(request),
            on_error=EngineError.from_exception,
        )

        match outcome:
            case Ok(fee_set):
                previous = self._ledger.fees
                self._ledger = self._ledger.commit(fee_set.cart, key)
                self._guard.refresh_pending = False
                stale = dict.fromkeys((*previous.owned_by_engine(), *fee_set.removed))
                for dropped in stale:
                    if dropped.startswith(SURCHARGE_PREFIX) and dropped not in fee_set.fees:
                        self._log.info("surcharge_removed", key=dropped)
                self._log.info(
                    "cycle_committed",
                    pass_number=number,
                    fees=len(fee_set.fees),
                    total=str(fee_set.fees.total(fee_set.cart.currency)),
                )
                if fee_set.fees != previous:
                    await self._notify(fee_set.fees)
                return Ok(FeeCycle(fees=fee_set.fees, cart=fee_set.cart, passes=number))
            case Error(error):
                self._log.warning(
                    "cycle_failed",
                    pass_number=number,
                    kind=error.kind.name,
                    message=error.message,
                )
                return Error(error.with_stable(self._ledger.fees, self._guard.refresh_pending))

    async def _notify(self, fees: FeeMap) -> None:
        for listener in tuple(self._listeners):
            try:
                result = listener(fees)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.listener_failures += 1
                self._log.error("listener_failed", listener=getattr(listener, "__name__", repr(listener)), error=str(e))


__all__ = ("Listener", "FeeEngine")
