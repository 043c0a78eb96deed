"""
Saga types — core data structures.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Callable, Awaitable
from typing import Any

from kungfu import LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Compensator — Undo Action
# ═══════════════════════════════════════════════════════════════════════════════

type CompensatorWithValue[T] = Callable[[T], Awaitable[None]]
"""Compensation function that receives the action result and undoes it."""

# ═══════════════════════════════════════════════════════════════════════════════
# SagaStep — Single Step with Compensation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    A single saga step: action + compensator.

    When action succeeds, compensator is recorded.
    If later step fails, compensators run in reverse.
    """

    action: LazyCoroResult[T, E]
    compensate: CompensatorWithValue[T] | None
    name: str = ""

    def then[U, E2](
        self,
        f: Callable[[T], SagaStep[U, E2]],
    ) -> Then[T, U, E, E2]:
        """Chain another saga step after this one."""
        return Then(self, f)


# ═══════════════════════════════════════════════════════════════════════════════
# Then — Sequential Composition
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Then[T, U, E, E2]:
    """
    Sequential composition (monadic bind).

    ``inner`` may itself be a chain, so ``a.then(f).then(g).then(h)``
    nests to the left and runs a → f → g → h.
    """

    inner: SagaStep[T, E] | Then[Any, T, Any, E]
    f: Callable[[T], SagaStep[U, E2]]

    def then[V, E3](
        self,
        g: Callable[[U], SagaStep[V, E3]],
    ) -> Then[U, V, E | E2, E3]:
        """Extend the chain by one more step."""
        return Then(self, g)  # type: ignore[arg-type]


# ═══════════════════════════════════════════════════════════════════════════════
# Result Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    """Successful saga result with metadata."""

    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Saga error with rollback status."""

    error: E
    step_failed: int
    step_name: str
    compensators_run: int
    compensators_failed: int
    rollback_complete: bool


# ═══════════════════════════════════════════════════════════════════════════════
# Saga Type (union for run())
# ═══════════════════════════════════════════════════════════════════════════════

type SagaExpr[T, E] = SagaStep[T, E] | Then[Any, T, Any, E]

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CompensatorWithValue",
    "SagaStep",
    "Then",
    "SagaExpr",
    "SagaResult",
    "SagaError",
)
