"""
Recalculation guard — detects re-entry into a running cycle.

Single-threaded: the flag is set and read on the event loop thread (or the
host thread for invoke_sync), never concurrently.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from cartfees.pipeline import CycleRequest


class RecalculationGuard:
    """
    Reentrancy flag plus one pending-request slot.

    refresh_pending: a request was rejected or dropped and the stable fees
    may be stale. Cleared by the next committed cycle.
    """

    __slots__ = ("_active", "_pending", "refresh_pending")

    def __init__(self) -> None:
        self._active = False
        self._pending: CycleRequest | None = None
        self.refresh_pending = False

    @property
    def active(self) -> bool:
        return self._active

    @contextmanager
    def hold(self) -> Iterator[RecalculationGuard]:
        """Mark a cycle as running. Always released, even on failure."""
        if self._active:
            raise RuntimeError("recalculation guard already held")
        self._active = True
        try:
            yield self
        finally:
            self._active = False
            self._pending = None

    def park(self, request: CycleRequest) -> bool:
        """Store request for the running cycle. True when it replaced an earlier one."""
        replaced = self._pending is not None
        self._pending = request
        return replaced

    def take(self) -> CycleRequest | None:
        request, self._pending = self._pending, None
        return request


__all__ = ("RecalculationGuard",)
