"""
Cart book — line edits with captured prices and derived totals.

The captured unit price is what the shopper saw; checkout re-prices
every line from live variant state anyway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Error, Ok, Result
from sqlalchemy import delete, select, update

from ordercore._types import Money
from ordercore.catalog import Catalog, VariantView
from ordercore.config import CommerceConfig
from ordercore.db import CartItemRow, CartRow, UnitOfWork
from ordercore.errors import CommerceError, Errors
from ordercore.pricing import unit_price

logger = logging.getLogger("ordercore.cart")


@dataclass(frozen=True, slots=True)
class CartLine:
    variant_id: str
    quantity: int
    unit_price: Money
    line_total: Money


@dataclass(frozen=True, slots=True)
class CartView:
    user_id: str
    lines: tuple[CartLine, ...]
    subtotal: Money
    shipping: Money
    total: Money

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartBook:
    def __init__(self, catalog: Catalog, config: CommerceConfig) -> None:
        self._catalog = catalog
        self._config = config

    async def view(self, uow: UnitOfWork, user_id: str) -> CartView:
        rows = await uow.rows(
            select(CartItemRow).where(CartItemRow.user_id == user_id).order_by(CartItemRow.id)
        )
        lines = tuple(
            CartLine(r.variant_id, r.quantity, r.unit_price, r.line_total) for r in rows
        )
        subtotal = sum(line.line_total for line in lines)
        shipping = self._config.shipping_for(subtotal) if lines else 0
        return CartView(user_id, lines, subtotal, shipping, subtotal + shipping)

    async def add(
        self,
        uow: UnitOfWork,
        user_id: str,
        variant_id: str,
        quantity: int = 1,
    ) -> Result[CartView, CommerceError]:
        if quantity <= 0:
            return Error(Errors.invalid_amount(f"Quantity must be positive, got {quantity}"))

        current = await uow.one(
            select(CartItemRow).where(
                CartItemRow.user_id == user_id,
                CartItemRow.variant_id == variant_id,
            )
        )
        wanted = quantity + (current.quantity if current is not None else 0)

        match await self._sellable(uow, variant_id, wanted):
            case Ok(variant):
                pass
            case Error(e):
                return Error(e)

        price = unit_price(variant.price, variant.discount_price)
        await uow.insert_ignore(CartRow, user_id=user_id)
        if current is None:
            uow.add(CartItemRow(
                user_id=user_id,
                variant_id=variant_id,
                quantity=wanted,
                unit_price=price,
                line_total=price * wanted,
            ))
            await uow.flush()
        else:
            await self._set_line(uow, user_id, variant_id, wanted, price)

        return Ok(await self._refresh(uow, user_id))

    async def update(
        self,
        uow: UnitOfWork,
        user_id: str,
        variant_id: str,
        quantity: int,
    ) -> Result[CartView, CommerceError]:
        """Set a line's quantity; zero removes it."""
        if quantity < 0:
            return Error(Errors.invalid_amount(f"Quantity cannot be negative, got {quantity}"))
        if quantity == 0:
            return await self.remove(uow, user_id, variant_id)

        match await self._sellable(uow, variant_id, quantity):
            case Ok(variant):
                pass
            case Error(e):
                return Error(e)

        price = unit_price(variant.price, variant.discount_price)
        if not await self._set_line(uow, user_id, variant_id, quantity, price):
            return Error(Errors.item_unavailable(f"{variant.product_name} in cart"))
        return Ok(await self._refresh(uow, user_id))

    async def remove(
        self,
        uow: UnitOfWork,
        user_id: str,
        variant_id: str,
    ) -> Result[CartView, CommerceError]:
        await uow.write(
            delete(CartItemRow).where(
                CartItemRow.user_id == user_id,
                CartItemRow.variant_id == variant_id,
            )
        )
        return Ok(await self._refresh(uow, user_id))

    async def empty(self, uow: UnitOfWork, user_id: str) -> None:
        """Drop every line; the cart itself stays."""
        await uow.write(delete(CartItemRow).where(CartItemRow.user_id == user_id))
        await self._refresh(uow, user_id)

    async def _sellable(
        self,
        uow: UnitOfWork,
        variant_id: str,
        quantity: int,
    ) -> Result[VariantView, CommerceError]:
        variant = await self._catalog.variant(uow, variant_id)
        if variant is None or not variant.purchasable:
            name = variant.product_name if variant is not None else variant_id
            return Error(Errors.item_unavailable(name))
        if quantity > self._config.max_quantity_per_item:
            return Error(Errors.invalid_amount(
                f"Maximum {self._config.max_quantity_per_item} units per item"
            ))
        if quantity > variant.stock:
            return Error(Errors.out_of_stock(variant.product_name))
        return Ok(variant)

    async def _set_line(
        self,
        uow: UnitOfWork,
        user_id: str,
        variant_id: str,
        quantity: int,
        price: Money,
    ) -> bool:
        changed = await uow.write(
            update(CartItemRow)
            .where(CartItemRow.user_id == user_id, CartItemRow.variant_id == variant_id)
            .values(quantity=quantity, unit_price=price, line_total=price * quantity)
        )
        return changed == 1

    async def _refresh(self, uow: UnitOfWork, user_id: str) -> CartView:
        cart = await self.view(uow, user_id)
        await uow.write(
            update(CartRow)
            .where(CartRow.user_id == user_id)
            .values(subtotal=cart.subtotal, shipping=cart.shipping, total=cart.total)
        )
        return cart


__all__ = ("CartLine", "CartView", "CartBook")
