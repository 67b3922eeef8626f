"""
Engine types — cycle outcomes and errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto

from cartfees.cart import CartSnapshot, FeeMap
from cartfees.errors import ConfigurationError, InputError
from cartfees.money import CurrencyMismatch


# ═══════════════════════════════════════════════════════════════════════════════
# Engine State
# ═══════════════════════════════════════════════════════════════════════════════


class EngineState(Enum):
    """
    Lifecycle:
        IDLE → COMPUTING → IDLE
    """

    IDLE = auto()
    COMPUTING = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# Result Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FeeCycle:
    """
    Successful invoke.

    from_cache: inputs matched the stable ledger, no pass ran.
    deferred: re-entrant call; fees is the stable map and the request was
    parked for the running invoke to pick up.
    passes: passes the outer invoke ran, including parked requests.
    """

    fees: FeeMap
    cart: CartSnapshot | None = None
    from_cache: bool = False
    deferred: bool = False
    passes: int = 0


class EngineErrorKind(Enum):
    """Kinds of engine errors."""

    CONFIGURATION = auto()  # Rule tables invalid
    INPUT = auto()  # Cart snapshot malformed
    REENTRANCY_REJECTED = auto()  # Invoked while computing, REJECT policy
    STAGE = auto()  # Any other failure inside a stage
    TIMEOUT = auto()  # Pass exceeded the policy timeout
    LOOP_RUNNING = auto()  # invoke_sync called from inside an event loop


@dataclass(frozen=True, slots=True)
class EngineError:
    """
    Failed invoke. The ledger is untouched: stable_fees is what the host
    should keep showing.

    Note: original_error keeps the exception raised inside the pass.
    """

    kind: EngineErrorKind
    message: str
    stable_fees: FeeMap = field(default_factory=FeeMap)
    refresh_pending: bool = False
    original_error: Exception | None = None

    @classmethod
    def from_exception(cls, error: Exception) -> EngineError:
        match error:
            case ConfigurationError():
                kind = EngineErrorKind.CONFIGURATION
            case InputError() | CurrencyMismatch():
                kind = EngineErrorKind.INPUT
            case TimeoutError():
                kind = EngineErrorKind.TIMEOUT
            case _:
                kind = EngineErrorKind.STAGE
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        return cls(kind=kind, message=message, original_error=error)

    def with_stable(self, fees: FeeMap, refresh_pending: bool) -> EngineError:
        return replace(self, stable_fees=fees, refresh_pending=refresh_pending)


__all__ = (
    "EngineState",
    "FeeCycle",
    "EngineErrorKind",
    "EngineError",
)
