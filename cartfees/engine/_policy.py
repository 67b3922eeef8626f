"""
Engine policy — re-entrancy and pass configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cartfees.config import Settings


# ═══════════════════════════════════════════════════════════════════════════════
# On Reentry — what a nested invoke does
# ═══════════════════════════════════════════════════════════════════════════════


class OnReentry(Enum):
    """
    What to do when invoke() is called while a cycle is computing.

    COALESCE: Park the request in a single slot (latest wins) and let the
              running invoke compute it after the current pass.
              Use when: host hooks re-trigger recalculation from inside a cycle.

    REJECT: Return REENTRANCY_REJECTED with the stable fees and leave
            refresh_pending set until the next completed cycle.
            Use when: the host schedules its own retry.
    """

    COALESCE = auto()
    REJECT = auto()


COALESCE = OnReentry.COALESCE
REJECT = OnReentry.REJECT


# ═══════════════════════════════════════════════════════════════════════════════
# Policy — Full Configuration
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EnginePolicy:
    """
    Fluent builder: every with_* returns a new policy.

    Example:
        policy = (
            EnginePolicy()
            .with_on_reentry(REJECT)
            .with_max_passes(2)
            .with_timeout(seconds=0.5)
        )
    """

    on_reentry: OnReentry = OnReentry.COALESCE
    max_passes: int = 3
    timeout: float | None = None
    use_fingerprint: bool = True

    def __post_init__(self) -> None:
        if self.max_passes < 1:
            raise ValueError(f"max_passes must be ≥ 1, got {self.max_passes}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    def with_on_reentry(self, strategy: OnReentry) -> EnginePolicy:
        return replace(self, on_reentry=strategy)

    def with_max_passes(self, passes: int) -> EnginePolicy:
        """Upper bound on passes one outer invoke runs, parked requests included."""
        return replace(self, max_passes=passes)

    def with_timeout(self, *, seconds: float | None = None, milliseconds: float | None = None) -> EnginePolicy:
        """
        Per-pass timeout. No arguments removes it.

            .with_timeout(seconds=2)
            .with_timeout(milliseconds=250)
        """
        total = (seconds or 0) + (milliseconds or 0) / 1000
        return replace(self, timeout=total if total > 0 else None)

    def with_fingerprint(self, enabled: bool = True) -> EnginePolicy:
        """Skip passes whose inputs match the stable ledger."""
        return replace(self, use_fingerprint=enabled)

    @classmethod
    def from_settings(cls, settings: Settings) -> EnginePolicy:
        return cls(
            on_reentry=OnReentry[settings.on_reentry.upper()],
            max_passes=settings.max_passes,
            timeout=settings.cycle_timeout_seconds,
        )


__all__ = ("OnReentry", "COALESCE", "REJECT", "EnginePolicy")
