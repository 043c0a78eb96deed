"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from kungfu import Result, Ok, Error

from ordercore.saga._types import (
    SagaStep,
    SagaResult,
    SagaError,
    SagaExpr,
    Then,
    CompensatorWithValue,
)

logger = logging.getLogger("ordercore.saga")

# ═══════════════════════════════════════════════════════════════════════════════
# Recorded Compensator
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator[T] = tuple[T, CompensatorWithValue[T], str]


@dataclass(slots=True)
class _Trail:
    """What has run so far: step count, last step name, compensators."""

    compensators: list[RecordedCompensator[Any]] = field(default_factory=list)
    steps: int = 0
    current: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# run_step() — Execute single step
# ═══════════════════════════════════════════════════════════════════════════════


async def run_step[T, E](
    step: SagaStep[T, E],
    trail: _Trail,
) -> Result[T, E]:
    """Execute single step, recording compensator on success."""
    trail.steps += 1
    trail.current = step.name or f"step-{trail.steps}"

    result = await step.action
    match result:
        case Ok(value):
            if step.compensate is not None:
                trail.compensators.append((value, step.compensate, trail.current))
            return Ok(value)
        case Error(e):
            return Error(e)


# ═══════════════════════════════════════════════════════════════════════════════
# run_compensators() — Rollback
# ═══════════════════════════════════════════════════════════════════════════════


async def run_compensators(
    compensators: list[RecordedCompensator[Any]],
) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for value, comp, name in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
        except Exception:
            logger.exception("compensator for %r failed", name)
            comp_failed += 1

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run() — Execute a step or a chain
# ═══════════════════════════════════════════════════════════════════════════════


async def _evaluate(expr: SagaExpr[Any, Any], trail: _Trail) -> Result[Any, Any]:
    match expr:
        case SagaStep():
            return await run_step(expr, trail)
        case Then(inner=inner, f=f):
            inner_result = await _evaluate(inner, trail)
            match inner_result:
                case Ok(value):
                    return await _evaluate(f(value), trail)
                case Error(e):
                    return Error(e)


async def run[T, E](
    saga: SagaExpr[T, E],
) -> Result[SagaResult[T], SagaError[E]]:
    """
    Execute a saga with automatic rollback on failure.

    On success: returns SagaResult with value and metadata.
    On failure: runs recorded compensators in reverse, returns SagaError.

    Example:
        from ordercore import saga as S

        checkout = (
            S.from_result(debit, name="debit")
            .then(lambda entry: S.from_result(create_order, name="order"))
            .then(lambda order: S.from_result(reserve_all(order), name="reserve"))
        )

        match await S.run(checkout):
            case Ok(r):
                ...
            case Error(e):
                logger.warning("failed at %s", e.step_name)
    """
    trail = _Trail()
    result = await _evaluate(saga, trail)

    match result:
        case Ok(value):
            return Ok(SagaResult(
                value=value,
                steps_executed=trail.steps,
                compensators_recorded=len(trail.compensators),
            ))

        case Error(error):
            comp_run, comp_failed = await run_compensators(trail.compensators)
            if trail.compensators:
                logger.info(
                    "saga failed at %r, %d compensators run, %d failed",
                    trail.current, comp_run, comp_failed,
                )

            return Error(SagaError(
                error=error,
                step_failed=trail.steps,
                step_name=trail.current,
                compensators_run=comp_run,
                compensators_failed=comp_failed,
                rollback_complete=comp_failed == 0,
            ))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("run", "run_step", "run_compensators")
