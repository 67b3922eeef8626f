"""
Engine — orchestrates fee cycles for one cart session.

    from cartfees import engine as E

    engine = E.FeeEngine(registry, E.EnginePolicy().with_on_reentry(E.REJECT))
    engine.subscribe(lambda fees: host.refresh(fees))
    result = await engine.invoke(cart, customer, "intuit_payments_credit_card")
"""

from cartfees.engine._types import (
    EngineState,
    FeeCycle,
    EngineErrorKind,
    EngineError,
)
from cartfees.engine._policy import (
    OnReentry,
    COALESCE,
    REJECT,
    EnginePolicy,
)
from cartfees.engine._guard import RecalculationGuard
from cartfees.engine._ledger import Ledger
from cartfees.engine._fingerprint import fingerprint
from cartfees.engine._engine import Listener, FeeEngine

__all__ = (
    # Types
    "EngineState",
    "FeeCycle",
    "EngineErrorKind",
    "EngineError",
    # Policy
    "OnReentry",
    "COALESCE",
    "REJECT",
    "EnginePolicy",
    # Machinery
    "RecalculationGuard",
    "Ledger",
    "fingerprint",
    # Engine
    "Listener",
    "FeeEngine",
)
