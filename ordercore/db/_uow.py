"""
Unit of work — one session, one transaction, one commit/abort boundary.

Every ledger operation takes a ``UnitOfWork`` explicitly, so a wallet
debit, a stock decrement and the order row that caused them all land in
the same transaction:

    async def body(uow: UnitOfWork) -> Result[str, CommerceError]:
        ...
        return Ok(order_id)

    result = await atomic(session_factory, body)

Any ``Error`` returned by the body aborts the transaction. Partial
effects are never visible.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, cast

from kungfu import Error, Result
from sqlalchemy import Delete, Select, Update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ordercore.errors import CommerceError, Errors

logger = logging.getLogger("ordercore.db")


# ═══════════════════════════════════════════════════════════════════════════════
# UnitOfWork
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class UnitOfWork:
    """Thin wrapper over an ``AsyncSession`` inside an open transaction."""

    session: AsyncSession

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def add(self, row: object) -> None:
        self.session.add(row)

    async def flush(self) -> None:
        await self.session.flush()

    async def rows[T](self, stmt: Select[tuple[T]]) -> list[T]:
        """Load ORM rows, refreshing anything already in the identity map."""
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def one[T](self, stmt: Select[tuple[T]]) -> T | None:
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def fetch(self, stmt: Select[Any]) -> list[Any]:
        """Column tuples, for projections that are not whole rows."""
        result = await self.session.execute(stmt)
        return list(result.all())

    async def scalar(self, stmt: Select[Any]) -> Any:
        result = await self.session.execute(stmt)
        return result.scalar()

    async def write(self, stmt: Update | Delete) -> int:
        """Execute a conditional UPDATE/DELETE and return the affected row count."""
        cursor = cast(
            CursorResult[Any],
            await self.session.execute(
                stmt.execution_options(synchronize_session=False)
            ),
        )
        return cursor.rowcount

    async def insert_ignore(self, model: type[Any], **values: Any) -> bool:
        """
        INSERT ... ON CONFLICT DO NOTHING.

        Returns True when the row was inserted, False when it already existed.
        """
        insert = pg_insert if self.dialect == "postgresql" else sqlite_insert
        stmt = insert(model).values(**values).on_conflict_do_nothing()
        cursor = cast(CursorResult[Any], await self.session.execute(stmt))
        return cursor.rowcount > 0


# ═══════════════════════════════════════════════════════════════════════════════
# atomic() — run a body inside one transaction
# ═══════════════════════════════════════════════════════════════════════════════


class _Abort(Exception):
    """Carries a business error out of ``session.begin()`` so it rolls back."""

    def __init__(self, error: CommerceError) -> None:
        super().__init__(error.message)
        self.error = error


type UnitBody[T] = Callable[[UnitOfWork], Awaitable[Result[T, CommerceError]]]


async def atomic[T](
    session_factory: async_sessionmaker[AsyncSession],
    body: UnitBody[T],
) -> Result[T, CommerceError]:
    """Commit when the body returns ``Ok``, roll back on ``Error`` or driver failure."""
    try:
        async with session_factory() as session:
            async with session.begin():
                result = await body(UnitOfWork(session))
                match result:
                    case Error(error):
                        raise _Abort(error)
                    case _:
                        pass
            return result

    except _Abort as abort:
        logger.info("unit of work rolled back: %s", abort.error)
        return Error(abort.error)

    except SQLAlchemyError:
        logger.exception("unit of work failed in the storage driver")
        return Error(Errors.storage())


__all__ = ("UnitOfWork", "UnitBody", "atomic")
