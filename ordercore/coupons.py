"""
Coupon book — lookups, redemption and the expiry sweep.

``usedBy`` lives in ``coupon_redemptions`` with a (coupon, user) primary
key, so a second redemption by the same user is an insert conflict, not a
race.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from kungfu import Error, Ok, Result
from sqlalchemy import select, update

from ordercore._types import DiscountType, Money
from ordercore.db import CouponRedemptionRow, CouponRow, UnitOfWork
from ordercore.errors import CommerceError, Errors
from ordercore.pricing import CouponDiscount, CouponTerms, apply_coupon

logger = logging.getLogger("ordercore.coupons")


@dataclass(frozen=True, slots=True)
class CouponView:
    code: str
    description: str | None
    discount_type: DiscountType
    discount_value: int
    min_order_amount: Money
    end_date: datetime


class CouponBook:
    async def terms(self, uow: UnitOfWork, code: str) -> CouponTerms | None:
        row = await uow.one(select(CouponRow).where(CouponRow.code == code))
        if row is None:
            return None
        used_by = await uow.fetch(
            select(CouponRedemptionRow.user_id).where(CouponRedemptionRow.coupon_code == code)
        )
        return CouponTerms(
            code=row.code,
            discount_type=DiscountType(row.discount_type),
            discount_value=row.discount_value,
            min_order_amount=row.min_order_amount,
            start_date=row.start_date,
            end_date=row.end_date,
            is_expired=row.is_expired,
            used_by=frozenset(u for (u,) in used_by),
        )

    async def check(
        self,
        uow: UnitOfWork,
        code: str,
        user_id: str,
        subtotal: Money,
        now: datetime | None = None,
    ) -> Result[CouponDiscount, CommerceError]:
        """Would ``code`` apply to this user's subtotal right now."""
        terms = await self.terms(uow, code)
        if terms is None:
            return Error(Errors.coupon_not_applicable(f"Coupon {code} does not exist"))
        return apply_coupon(subtotal, terms, user_id, now or datetime.now())

    async def available_for(
        self,
        uow: UnitOfWork,
        user_id: str,
        now: datetime | None = None,
    ) -> list[CouponView]:
        """Valid, unexpired coupons the user has not redeemed yet."""
        now = now or datetime.now()
        redeemed = select(CouponRedemptionRow.coupon_code).where(
            CouponRedemptionRow.user_id == user_id
        )
        rows = await uow.rows(
            select(CouponRow)
            .where(
                CouponRow.is_expired.is_(False),
                CouponRow.start_date <= now,
                CouponRow.end_date >= now,
                CouponRow.code.not_in(redeemed),
            )
            .order_by(CouponRow.end_date)
        )
        return [
            CouponView(
                code=r.code,
                description=r.description,
                discount_type=DiscountType(r.discount_type),
                discount_value=r.discount_value,
                min_order_amount=r.min_order_amount,
                end_date=r.end_date,
            )
            for r in rows
        ]

    async def redeem(
        self,
        uow: UnitOfWork,
        code: str,
        user_id: str,
        order_id: str | None = None,
    ) -> Result[None, CommerceError]:
        """Push the user into the coupon's usedBy set, at most once."""
        inserted = await uow.insert_ignore(
            CouponRedemptionRow,
            coupon_code=code,
            user_id=user_id,
            order_id=order_id,
            redeemed_at=datetime.now(),
        )
        if not inserted:
            return Error(Errors.coupon_not_applicable(f"Coupon {code} already used"))
        return Ok(None)

    async def expire(self, uow: UnitOfWork, now: datetime | None = None) -> int:
        """Flip ``is_expired`` on every coupon past its end date. Idempotent."""
        count = await uow.write(
            update(CouponRow)
            .where(CouponRow.is_expired.is_(False), CouponRow.end_date < (now or datetime.now()))
            .values(is_expired=True)
        )
        if count:
            logger.info("expired %d coupons", count)
        return count


__all__ = ("CouponView", "CouponBook")
