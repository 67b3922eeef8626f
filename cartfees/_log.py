"""
Logging — structlog, JSON lines to stdout by default.
"""

from __future__ import annotations

import logging
from typing import Any, TextIO

import structlog


def configure_logging(level: str | int = "INFO", *, json: bool = True, file: TextIO | None = None) -> None:
    """Install the processor chain. Safe to call more than once. file defaults to stdout."""
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    renderer: Any = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None, **context: Any) -> Any:
    log = structlog.get_logger(name)
    return log.bind(**context) if context else log


__all__ = ("configure_logging", "get_logger")
