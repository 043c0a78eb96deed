"""
Saga step creation.
"""

from __future__ import annotations

from collections.abc import Callable, Awaitable
from kungfu import LazyCoroResult, Result
from combinators import lift as L

from ordercore.saga._types import SagaStep, CompensatorWithValue

# ═══════════════════════════════════════════════════════════════════════════════
# step() — Primary Constructor
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: CompensatorWithValue[T] | None = None,
    name: str = "",
) -> SagaStep[T, E]:
    """
    Create a compensated saga step.

    Args:
        action: The operation to perform (LazyCoroResult)
        compensate: The compensation action if rollback needed
        name: Label reported in SagaError.step_name

    Example:
        from ordercore import saga as S

        capture = S.step(
            action=L.catching_async(
                lambda: gateway.capture(ref),
                on_error=lambda e: Errors.storage(str(e)),
            ),
            compensate=lambda payment: gateway.refund(payment.ref, payment.amount),
            name="capture",
        )
    """
    return SagaStep(action=action, compensate=compensate, name=name)


# ═══════════════════════════════════════════════════════════════════════════════
# from_async() — Create step from async callable
# ═══════════════════════════════════════════════════════════════════════════════


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: CompensatorWithValue[T] | None = None,
    name: str = "",
) -> SagaStep[T, E]:
    """
    Create step from async callable with error handling.

    Example:
        S.from_async(
            lambda: gateway.create_intent(amount, "INR", receipt),
            on_error=lambda e: Errors.storage(str(e)),
            name="gateway",
        )
    """
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
        name=name,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# from_result() — Create step from a Result-returning call
# ═══════════════════════════════════════════════════════════════════════════════


def from_result[T, E](
    action: Callable[[], Awaitable[Result[T, E]]],
    compensate: CompensatorWithValue[T] | None = None,
    name: str = "",
) -> SagaStep[T, E]:
    """
    Create step from a call that already returns ``Result``.

    Ledger operations report business failures as ``Error`` values, so
    they need no exception mapping:

        S.from_result(lambda: wallet.debit(uow, user_id, total, reason), name="debit")
    """
    return SagaStep(action=LazyCoroResult(action), compensate=compensate, name=name)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("step", "from_async", "from_result")
