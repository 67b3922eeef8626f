"""
Errors raised inside a computation cycle.

Stage code raises these; the engine turns them into a typed EngineError
inside a Result, so callers never see them as exceptions from invoke().
"""

from __future__ import annotations


class FeeError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ConfigurationError(FeeError):
    """Rule tables are missing or invalid."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__("CONFIGURATION", message)
        self.field = field


class InputError(FeeError):
    """
    Cart snapshot is malformed.

    line_index/product_id point at the offending line item; both are None
    when the problem is cart-wide (e.g. negative shipping).
    """

    def __init__(
        self,
        reason: str,
        *,
        line_index: int | None = None,
        product_id: str | None = None,
    ) -> None:
        where = f"line {line_index} ({product_id})" if line_index is not None else "cart"
        super().__init__("INPUT", f"{where}: {reason}")
        self.reason = reason
        self.line_index = line_index
        self.product_id = product_id


__all__ = ("FeeError", "ConfigurationError", "InputError")
