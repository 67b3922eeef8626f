"""
Graph runner — sugar over nodnod.

The pipeline is compiled once per process and run once per cycle: the
dependency graph is built when the module is imported, each run opens a fresh
scope and injects the cycle request by type.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════

class TypedScope:
    """Type-safe wrapper around nodnod.Scope."""

    __slots__ = ("_scope",)

    def __init__(self, scope: Scope | None = None, detail: str = "scope") -> None:
        self._scope = scope if scope is not None else Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def inject[T](self, typ: type[T], value: T) -> TypedScope:
        self._scope.push(Value(typ, value))
        return self

    def get[T](self, typ: type[T]) -> T:
        result = self._scope.get(typ)
        if result is None:
            raise KeyError(f"{typ.__name__} not found in scope")
        return cast(T, result.value)

    async def __aenter__(self) -> TypedScope:
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# Compiled — Pre-compiled graph
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Compiled[T]:
    """
    Pre-compiled graph for repeated execution.

    Example:
        pipeline = graph(FeeSetNode)
        fee_set = await pipeline(request)
    """

    _target: type[T]
    _agent: EventLoopAgent
    detail: str = "cycle"

    async def __call__(self, *inputs: object) -> T:
        """Inject every input by its runtime type and compose the target."""
        async with TypedScope(detail=self.detail) as scope:
            for value in inputs:
                scope.inject(cast(type[Any], type(value)), value)

            run_method = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(self._agent, "run"),
            )
            await run_method(scope.inner, {})

            return scope.get(self._target)


def graph[T](target: type[T], detail: str = "cycle") -> Compiled[T]:
    """
    Pre-compile a graph. nodnod discovers the dependencies from the target.
    """
    all_nodes: set[type[Node[Any, Any]]] = {cast(type[Node[Any, Any]], target)}
    agent = EventLoopAgent.build(all_nodes)
    return Compiled(_target=target, _agent=agent, detail=detail)


__all__ = ("TypedScope", "Compiled", "graph")
