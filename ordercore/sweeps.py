"""
Periodic housekeeping. Every sweep is idempotent and safe to run twice.

    await expire_coupons(session_factory, coupons)
    await expire_orphaned_intents(session_factory, ttl=timedelta(hours=1))

``run_every`` drives any of them from a single asyncio task.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from kungfu import Error, Ok, Result
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ordercore._types import IntentStatus
from ordercore.coupons import CouponBook
from ordercore.db import PaymentIntentRow, UnitOfWork, atomic
from ordercore.errors import CommerceError

logger = logging.getLogger("ordercore.sweeps")

DAY = timedelta(days=1)


async def expire_coupons(
    session_factory: async_sessionmaker[AsyncSession],
    coupons: CouponBook,
    now: datetime | None = None,
) -> Result[int, CommerceError]:
    async def body(uow: UnitOfWork) -> Result[int, CommerceError]:
        return Ok(await coupons.expire(uow, now))

    return await atomic(session_factory, body)


async def expire_orphaned_intents(
    session_factory: async_sessionmaker[AsyncSession],
    ttl: timedelta,
    now: datetime | None = None,
) -> Result[int, CommerceError]:
    """Intents still ``created`` after ``ttl`` were abandoned at the gateway."""
    cutoff = (now or datetime.now()) - ttl

    async def body(uow: UnitOfWork) -> Result[int, CommerceError]:
        count = await uow.write(
            update(PaymentIntentRow)
            .where(
                PaymentIntentRow.status == IntentStatus.CREATED.value,
                PaymentIntentRow.created_at < cutoff,
            )
            .values(
                status=IntentStatus.EXPIRED.value,
                failure="Payment not completed in time",
                updated_at=datetime.now(),
            )
        )
        if count:
            logger.info("expired %d orphaned payment intents", count)
        return Ok(count)

    return await atomic(session_factory, body)


async def run_every(
    interval: timedelta,
    sweep: Callable[[], Awaitable[Result[int, CommerceError]]],
    *,
    name: str = "sweep",
) -> None:
    """Run ``sweep`` now and then once per ``interval`` until cancelled."""
    while True:
        match await sweep():
            case Error(e):
                logger.warning("%s failed: %s", name, e)
            case _:
                pass
        await asyncio.sleep(interval.total_seconds())


__all__ = ("DAY", "expire_coupons", "expire_orphaned_intents", "run_every")
