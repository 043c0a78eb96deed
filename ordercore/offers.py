"""
Offer book — scheduled percentage discounts materialised into
``variants.discount_price``.

Every add/toggle/edit runs a full recompute over all variants. The newest
active offer covering a variant (directly by product, or through its
category) wins; variants no offer covers get their discount cleared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from kungfu import Error, Ok, Result
from sqlalchemy import delete, select, update

from ordercore._types import Money, OfferType
from ordercore.db import OfferRow, OfferTargetRow, ProductRow, UnitOfWork, VariantRow
from ordercore.errors import CommerceError, Errors
from ordercore.pricing import round_money

logger = logging.getLogger("ordercore.offers")


@dataclass(frozen=True, slots=True)
class OfferSpec:
    id: str
    name: str
    offer_type: OfferType
    discount_percentage: int
    start_date: datetime
    end_date: datetime
    targets: tuple[str, ...]
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class _LiveOffer:
    id: str
    offer_type: OfferType
    percentage: int
    targets: frozenset[str] = field(default_factory=frozenset)

    def covers(self, product_id: str, category_id: str | None) -> bool:
        match self.offer_type:
            case OfferType.PRODUCT:
                return product_id in self.targets
            case OfferType.CATEGORY:
                return category_id is not None and category_id in self.targets


def offer_price(price: Money, percentage: int) -> Money:
    return round_money(Decimal(price) - Decimal(price) * Decimal(percentage) / Decimal(100))


class OfferBook:
    async def create(self, uow: UnitOfWork, spec: OfferSpec) -> Result[int, CommerceError]:
        match _validate(spec):
            case Error(e):
                return Error(e)
            case _:
                pass
        uow.add(OfferRow(
            id=spec.id,
            name=spec.name,
            offer_type=spec.offer_type.value,
            discount_percentage=spec.discount_percentage,
            start_date=spec.start_date,
            end_date=spec.end_date,
            is_active=spec.is_active,
            created_at=datetime.now(),
        ))
        for target in dict.fromkeys(spec.targets):
            uow.add(OfferTargetRow(offer_id=spec.id, target_id=target))
        await uow.flush()
        return Ok(await self.recompute(uow))

    async def update(self, uow: UnitOfWork, spec: OfferSpec) -> Result[int, CommerceError]:
        match _validate(spec):
            case Error(e):
                return Error(e)
            case _:
                pass
        changed = await uow.write(
            update(OfferRow)
            .where(OfferRow.id == spec.id)
            .values(
                name=spec.name,
                offer_type=spec.offer_type.value,
                discount_percentage=spec.discount_percentage,
                start_date=spec.start_date,
                end_date=spec.end_date,
                is_active=spec.is_active,
            )
        )
        if changed == 0:
            return Error(Errors.not_found("Offer", spec.id))
        await uow.write(delete(OfferTargetRow).where(OfferTargetRow.offer_id == spec.id))
        for target in dict.fromkeys(spec.targets):
            uow.add(OfferTargetRow(offer_id=spec.id, target_id=target))
        await uow.flush()
        return Ok(await self.recompute(uow))

    async def toggle(self, uow: UnitOfWork, offer_id: str) -> Result[int, CommerceError]:
        changed = await uow.write(
            update(OfferRow)
            .where(OfferRow.id == offer_id)
            .values(is_active=~OfferRow.is_active)
        )
        if changed == 0:
            return Error(Errors.not_found("Offer", offer_id))
        return Ok(await self.recompute(uow))

    async def recompute(self, uow: UnitOfWork, now: datetime | None = None) -> int:
        """Rewrite every variant's discount. Returns how many carry an offer."""
        now = now or datetime.now()
        offers = await self._live(uow, now)

        variants = await uow.fetch(
            select(
                VariantRow.id,
                VariantRow.price,
                VariantRow.discount_price,
                VariantRow.active_offer_id,
                ProductRow.id,
                ProductRow.category_id,
            ).join(ProductRow, ProductRow.id == VariantRow.product_id)
        )

        discounted = 0
        for variant_id, price, current_price, current_offer, product_id, category_id in variants:
            winner = next((o for o in offers if o.covers(product_id, category_id)), None)
            if winner is None:
                new_price, new_offer = None, None
            else:
                new_price, new_offer = offer_price(price, winner.percentage), winner.id
                discounted += 1

            if (new_price, new_offer) != (current_price, current_offer):
                await uow.write(
                    update(VariantRow)
                    .where(VariantRow.id == variant_id)
                    .values(discount_price=new_price, active_offer_id=new_offer)
                )

        logger.info("offer recompute: %d live offers, %d variants discounted", len(offers), discounted)
        return discounted

    async def _live(self, uow: UnitOfWork, now: datetime) -> list[_LiveOffer]:
        rows = await uow.rows(
            select(OfferRow)
            .where(
                OfferRow.is_active.is_(True),
                OfferRow.start_date <= now,
                OfferRow.end_date >= now,
            )
            .order_by(OfferRow.created_at.desc(), OfferRow.id.desc())
        )
        if not rows:
            return []
        targets = await uow.fetch(
            select(OfferTargetRow.offer_id, OfferTargetRow.target_id).where(
                OfferTargetRow.offer_id.in_([r.id for r in rows])
            )
        )
        by_offer: dict[str, set[str]] = {}
        for offer_id, target_id in targets:
            by_offer.setdefault(offer_id, set()).add(target_id)

        return [
            _LiveOffer(
                id=r.id,
                offer_type=OfferType(r.offer_type),
                percentage=r.discount_percentage,
                targets=frozenset(by_offer.get(r.id, ())),
            )
            for r in rows
        ]


def _validate(spec: OfferSpec) -> Result[None, CommerceError]:
    if not 0 < spec.discount_percentage <= 100:
        return Error(Errors.invalid_amount(
            f"Offer percentage must be in (0, 100], got {spec.discount_percentage}"
        ))
    if spec.end_date < spec.start_date:
        return Error(Errors.invalid_amount("Offer ends before it starts"))
    return Ok(None)


__all__ = ("OfferSpec", "OfferBook", "offer_price")
