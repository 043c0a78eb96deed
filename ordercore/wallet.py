"""
Wallet ledger — append-only log plus a running balance.

Invariant: ``balance == Σ credits − Σ debits`` over the log, and every
successful credit/debit appends exactly one entry. Both hold even when a
mutation fails half way: the entry is claimed first, the balance moved
second, and a debit that cannot be covered removes its own entry before
reporting ``InsufficientBalance``.

A mutation may carry a ``reference`` (the logical reason, e.g.
``return:ORD-20240101-ab12cd34:2``). References are unique per wallet; a
replay is rejected with ``AlreadyProcessed`` and changes nothing.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from kungfu import Error, Ok, Result
from sqlalchemy import delete, func, select, update

from ordercore._types import Money, TransactionType
from ordercore.db import UnitOfWork, WalletRow, WalletTransactionRow
from ordercore.errors import CommerceError, Errors

logger = logging.getLogger("ordercore.wallet")


# ═══════════════════════════════════════════════════════════════════════════════
# Views
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class WalletEntry:
    id: int
    type: TransactionType
    amount: Money
    description: str
    reference: str | None
    created_at: datetime


@dataclass(frozen=True, slots=True)
class WalletPage:
    balance: Money
    entries: tuple[WalletEntry, ...]
    page: int
    total_pages: int
    total_entries: int


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class WalletLedger:
    def __init__(self, page_size: int = 5) -> None:
        self._page_size = page_size

    async def credit(
        self,
        uow: UnitOfWork,
        user_id: str,
        amount: Money,
        description: str,
        reference: str | None = None,
    ) -> Result[WalletEntry, CommerceError]:
        if amount <= 0:
            return Error(Errors.invalid_amount(f"Credit amount must be positive, got {amount}"))

        await self._open(uow, user_id)
        match await self._append(uow, user_id, TransactionType.CREDIT, amount, description, reference):
            case Ok(entry):
                pass
            case Error(e):
                return Error(e)

        await uow.write(
            update(WalletRow)
            .where(WalletRow.user_id == user_id)
            .values(balance=WalletRow.balance + amount)
        )
        logger.info("wallet %s credited %d (%s)", user_id, amount, description)
        return Ok(entry)

    async def debit(
        self,
        uow: UnitOfWork,
        user_id: str,
        amount: Money,
        description: str,
        reference: str | None = None,
    ) -> Result[WalletEntry, CommerceError]:
        if amount <= 0:
            return Error(Errors.invalid_amount(f"Debit amount must be positive, got {amount}"))

        await self._open(uow, user_id)
        match await self._append(uow, user_id, TransactionType.DEBIT, amount, description, reference):
            case Ok(entry):
                pass
            case Error(e):
                return Error(e)

        covered = await uow.write(
            update(WalletRow)
            .where(WalletRow.user_id == user_id, WalletRow.balance >= amount)
            .values(balance=WalletRow.balance - amount)
        )
        if covered == 0:
            await uow.write(delete(WalletTransactionRow).where(WalletTransactionRow.id == entry.id))
            balance = await self.balance(uow, user_id)
            logger.info("wallet %s: debit of %d refused, balance %d", user_id, amount, balance)
            return Error(Errors.insufficient_balance(balance, amount))

        logger.info("wallet %s debited %d (%s)", user_id, amount, description)
        return Ok(entry)

    async def balance(self, uow: UnitOfWork, user_id: str) -> Money:
        value = await uow.scalar(select(WalletRow.balance).where(WalletRow.user_id == user_id))
        return int(value or 0)

    async def details(self, uow: UnitOfWork, user_id: str, page: int = 1) -> WalletPage:
        """Balance and one page of history, newest first."""
        page = max(page, 1)
        total = int(await uow.scalar(
            select(func.count())
            .select_from(WalletTransactionRow)
            .where(WalletTransactionRow.user_id == user_id)
        ) or 0)
        rows = await uow.rows(
            select(WalletTransactionRow)
            .where(WalletTransactionRow.user_id == user_id)
            .order_by(WalletTransactionRow.created_at.desc(), WalletTransactionRow.id.desc())
            .offset((page - 1) * self._page_size)
            .limit(self._page_size)
        )
        return WalletPage(
            balance=await self.balance(uow, user_id),
            entries=tuple(_to_entry(r) for r in rows),
            page=page,
            total_pages=math.ceil(total / self._page_size),
            total_entries=total,
        )

    async def _open(self, uow: UnitOfWork, user_id: str) -> None:
        """Create the wallet on first use."""
        if await uow.insert_ignore(WalletRow, user_id=user_id, balance=0):
            logger.debug("wallet opened for %s", user_id)

    async def _append(
        self,
        uow: UnitOfWork,
        user_id: str,
        type_: TransactionType,
        amount: Money,
        description: str,
        reference: str | None,
    ) -> Result[WalletEntry, CommerceError]:
        created_at = datetime.now()
        inserted = await uow.insert_ignore(
            WalletTransactionRow,
            user_id=user_id,
            type=type_.value,
            amount=amount,
            description=description,
            reference=reference,
            created_at=created_at,
        )
        if not inserted:
            logger.warning("wallet %s: reference %s already recorded", user_id, reference)
            return Error(Errors.already_processed(f"Wallet entry {reference} already recorded"))

        # ON CONFLICT inserts report no primary key; look the entry up.
        newest = (
            select(WalletTransactionRow)
            .where(WalletTransactionRow.user_id == user_id)
            .order_by(WalletTransactionRow.id.desc())
            .limit(1)
        )
        row = await uow.one(newest)
        if row is None:
            raise RuntimeError(f"wallet entry for {user_id} vanished after insert")
        return Ok(_to_entry(row))


def _to_entry(row: WalletTransactionRow) -> WalletEntry:
    return WalletEntry(
        id=row.id,
        type=TransactionType(row.type),
        amount=row.amount,
        description=row.description,
        reference=row.reference,
        created_at=row.created_at,
    )


__all__ = ("WalletEntry", "WalletPage", "WalletLedger")
