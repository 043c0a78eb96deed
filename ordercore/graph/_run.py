"""
Graph runner — sugar over nodnod.

A pipeline is compiled once from its terminal node; every run gets a
fresh scope with its own injected values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from kungfu import Error, Ok, Result
from nodnod import Scope, Value, EventLoopAgent, Node


type Injection = tuple[type[Any], Any]


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════


class TypedScope:
    """Type-safe wrapper around nodnod.Scope."""

    __slots__ = ("_scope",)

    def __init__(self, detail: str = "scope") -> None:
        self._scope = Scope(detail=detail)

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


async def _execute[T](
    agent: EventLoopAgent,
    target: type[T],
    injections: tuple[Injection, ...],
    detail: str,
) -> T:
    async with TypedScope(detail=detail) as scope:
        for typ, value in injections:
            scope.inject(typ, value)

        run_method = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(agent, "run"),
        )
        await run_method(scope.inner, {})

        return scope.get(target)


# ═══════════════════════════════════════════════════════════════════════════════
# Run — Fluent awaitable builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Run[T]:
    """
    Fluent runner for a compiled pipeline.

    Example:
        node = await (
            pipeline.run()
            .given(request, config)
            .inject_as(UnitOfWork, uow)
        )
    """

    _target: type[T]
    _agent: EventLoopAgent
    _injections: tuple[Injection, ...] = ()

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        """Inject with explicit type."""
        return Run(self._target, self._agent, (*self._injections, (typ, value)))

    def given(self, *values: object) -> Run[T]:
        """Inject values keyed by their runtime type."""
        typed = tuple((cast(type[Any], type(v)), v) for v in values)
        return Run(self._target, self._agent, (*self._injections, *typed))

    def __await__(self) -> Any:
        return _execute(
            self._agent, self._target, self._injections, self._target.__name__
        ).__await__()


# ═══════════════════════════════════════════════════════════════════════════════
# Compiled — Pre-compiled pipeline
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Compiled[T]:
    """
    Pre-compiled graph for repeated execution.

    Example:
        checkout = graph(CommitNode)
        node = await checkout.run().given(request, config)
    """

    _target: type[T]
    _agent: EventLoopAgent

    @property
    def target(self) -> type[T]:
        return self._target

    def run(self) -> Run[T]:
        return Run(self._target, self._agent)


def graph[T](target: type[T]) -> Compiled[T]:
    """Discover every node the target depends on and build the agent once."""
    all_nodes: set[type[Node[Any, Any]]] = {cast(type[Node[Any, Any]], target)}
    return Compiled(_target=target, _agent=EventLoopAgent.build(all_nodes))


# ═══════════════════════════════════════════════════════════════════════════════
# settle — exceptions raised by nodes back into Result
# ═══════════════════════════════════════════════════════════════════════════════


async def settle[T, X: Exception](run: Run[T], failure: type[X]) -> Result[T, X]:
    """
    Await a run, turning a raised ``failure`` into ``Error``.

    Nodes have no return channel for business errors, so they raise.
    Anything else propagates untouched.
    """
    try:
        return Ok(await run)
    except failure as exc:
        return Error(exc)
    except ExceptionGroup as group:
        matched, _ = group.split(failure)
        if matched is None:
            raise
        first = matched.exceptions[0]
        while isinstance(first, ExceptionGroup):
            first = first.exceptions[0]
        return Error(cast(X, first))


__all__ = (
    "TypedScope",
    "Run",
    "Compiled",
    "graph",
    "settle",
)
