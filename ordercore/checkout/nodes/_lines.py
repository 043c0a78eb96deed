"""
Lines — live re-validation and re-pricing of every cart line.

The cart's captured price and the stock it saw are not trusted; both are
read again inside the unit of work that will commit the order.
"""

import logging

from ordercore import graph as G
from ordercore.checkout._types import Ledgers, QuotedLine
from ordercore.checkout.nodes._input import AddressNode, CartNode
from ordercore.db import UnitOfWork
from ordercore.errors import CommerceFailure, Errors
from ordercore.pricing import price_line

logger = logging.getLogger("ordercore.checkout")


@G.node
class LinesNode:
    def __init__(self, lines: tuple[QuotedLine, ...]) -> None:
        self.lines = lines

    @classmethod
    async def __compose__(
        cls,
        cart: CartNode,
        address: AddressNode,  # Address problems are reported first
        uow: UnitOfWork,
        ledgers: Ledgers,
    ) -> "LinesNode":
        _ = address
        wanted = [line.variant_id for line in cart.data.lines]
        live = await ledgers.catalog.variants(uow, wanted)

        quoted: list[QuotedLine] = []
        for line in cart.data.lines:
            variant = live.get(line.variant_id)
            if variant is None or not variant.purchasable:
                name = variant.product_name if variant is not None else line.variant_id
                raise CommerceFailure(Errors.item_unavailable(name))
            if variant.stock < line.quantity:
                raise CommerceFailure(Errors.insufficient_stock(variant.product_name))

            priced = price_line(
                variant.variant_id, variant.price, variant.discount_price, line.quantity
            )
            if priced.unit_price != line.unit_price:
                logger.info(
                    "cart line %s repriced %d → %d",
                    line.variant_id, line.unit_price, priced.unit_price,
                )
            quoted.append(QuotedLine(variant, priced))

        return cls(tuple(quoted))


__all__ = ("LinesNode",)
