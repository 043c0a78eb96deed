"""
Inventory ledger — the only writer of ``variants.stock``.

Reserve is one conditional UPDATE. Two checkouts racing for the last
unit cannot both succeed: the loser's WHERE clause no longer matches and
its rowcount comes back 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Error, Ok, Result
from sqlalchemy import select, update

from ordercore.catalog import Catalog
from ordercore.db import ProductRow, UnitOfWork, VariantRow
from ordercore.errors import CommerceError, Errors

logger = logging.getLogger("ordercore.inventory")


@dataclass(frozen=True, slots=True)
class Reservation:
    variant_id: str
    quantity: int


class InventoryLedger:
    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    async def reserve(
        self,
        uow: UnitOfWork,
        variant_id: str,
        quantity: int,
    ) -> Result[Reservation, CommerceError]:
        if quantity <= 0:
            return Error(Errors.invalid_amount(f"Reserve quantity must be positive, got {quantity}"))

        sellable = select(ProductRow.id).where(
            ProductRow.is_blocked.is_(False),
            ProductRow.is_listed.is_(True),
        )
        stmt = (
            update(VariantRow)
            .where(
                VariantRow.id == variant_id,
                VariantRow.stock >= quantity,
                VariantRow.is_blocked.is_(False),
                VariantRow.product_id.in_(sellable),
            )
            .values(stock=VariantRow.stock - quantity)
        )
        if await uow.write(stmt) == 1:
            return Ok(Reservation(variant_id, quantity))

        # Nothing changed; work out why for the message.
        view = await self._catalog.variant(uow, variant_id)
        if view is None:
            logger.warning("reserve: variant %s does not exist", variant_id)
            return Error(Errors.out_of_stock(variant_id))
        if not view.purchasable:
            return Error(Errors.out_of_stock(f"{view.product_name} (not available for sale)"))
        logger.info(
            "reserve: %s has %d, %d requested", variant_id, view.stock, quantity
        )
        return Error(Errors.out_of_stock(view.product_name))

    async def release(self, uow: UnitOfWork, variant_id: str, quantity: int) -> None:
        """
        Put units back. Always succeeds.

        Calling it once per reversed line is the order state machine's job.
        """
        await uow.write(
            update(VariantRow)
            .where(VariantRow.id == variant_id)
            .values(stock=VariantRow.stock + quantity)
        )

    async def available(self, uow: UnitOfWork, variant_id: str) -> int:
        stock = await uow.scalar(select(VariantRow.stock).where(VariantRow.id == variant_id))
        return int(stock or 0)


__all__ = ("Reservation", "InventoryLedger")
