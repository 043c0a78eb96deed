"""
Saga — multi-step commits with compensation.

    from ordercore import saga as S

    saga = S.step(action, compensate).then(lambda v: S.step(action2, compensate2))
    result = await S.run(saga)

Database effects inside one unit of work roll back with the transaction;
compensators exist for the effects a rollback cannot reach (a captured
gateway payment).
"""

from __future__ import annotations

from ordercore.saga._types import (
    CompensatorWithValue,
    SagaStep,
    SagaExpr,
    SagaResult,
    SagaError,
    Then,
)
from ordercore.saga._step import step, from_async, from_result
from ordercore.saga._run import run

__all__ = (
    "CompensatorWithValue",
    "SagaStep",
    "SagaExpr",
    "SagaResult",
    "SagaError",
    "Then",
    "step",
    "from_async",
    "from_result",
    "run",
)
