"""
Pricing & discount resolver — pure functions, no I/O.

Numeric policy:
    - All intermediate math is ``Decimal``.
    - A value is rounded (half-up, to whole currency units) exactly once,
      where it is persisted or paid out, never on a running total.
    - Coupon shares are allocated once at checkout, summing to the coupon
      discount, and stored per line; a return deducts the stored share.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from kungfu import Error, Ok, Result

from ordercore._types import DiscountType, Money
from ordercore.errors import CommerceError, Errors

# ═══════════════════════════════════════════════════════════════════════════════
# Rounding
# ═══════════════════════════════════════════════════════════════════════════════

_UNIT = Decimal(1)


def round_money(value: Decimal | int) -> Money:
    """Half-up to the nearest whole unit."""
    return int(Decimal(value).quantize(_UNIT, rounding=ROUND_HALF_UP))


# ═══════════════════════════════════════════════════════════════════════════════
# Lines
# ═══════════════════════════════════════════════════════════════════════════════


def unit_price(price: Money, discount_price: Money | None) -> Money:
    return discount_price if discount_price is not None else price


@dataclass(frozen=True, slots=True)
class PricedLine:
    variant_id: str
    quantity: int
    price: Money
    discount_price: Money | None
    unit_price: Money
    line_total: Money

    @property
    def saved_per_unit(self) -> Money:
        """What the offer takes off one unit (``savedAmount`` on the wire)."""
        return self.price - self.unit_price

    @property
    def product_discount(self) -> Money:
        return self.saved_per_unit * self.quantity


def price_line(
    variant_id: str,
    price: Money,
    discount_price: Money | None,
    quantity: int,
) -> PricedLine:
    unit = unit_price(price, discount_price)
    return PricedLine(
        variant_id=variant_id,
        quantity=quantity,
        price=price,
        discount_price=discount_price,
        unit_price=unit,
        line_total=unit * quantity,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CouponTerms:
    code: str
    discount_type: DiscountType
    discount_value: int
    min_order_amount: Money
    start_date: datetime
    end_date: datetime
    is_expired: bool
    used_by: frozenset[str]

    def valid_at(self, now: datetime) -> bool:
        return not self.is_expired and self.start_date <= now <= self.end_date


@dataclass(frozen=True, slots=True)
class CouponDiscount:
    code: str
    amount: Money


def apply_coupon(
    subtotal: Money,
    coupon: CouponTerms,
    user_id: str,
    now: datetime,
) -> Result[CouponDiscount, CommerceError]:
    """Flat or percentage off the subtotal, never more than the subtotal."""
    if not coupon.valid_at(now):
        return Error(Errors.coupon_not_applicable(f"Coupon {coupon.code} is not valid"))
    if user_id in coupon.used_by:
        return Error(Errors.coupon_not_applicable(f"Coupon {coupon.code} already used"))
    if subtotal < coupon.min_order_amount:
        return Error(Errors.coupon_not_applicable(
            f"Minimum order amount for {coupon.code} is {coupon.min_order_amount}"
        ))

    match coupon.discount_type:
        case DiscountType.PERCENTAGE:
            raw = Decimal(subtotal) * Decimal(coupon.discount_value) / Decimal(100)
        case DiscountType.FLAT:
            raw = Decimal(coupon.discount_value)

    amount = min(round_money(raw), subtotal)
    return Ok(CouponDiscount(coupon.code, amount))


# ═══════════════════════════════════════════════════════════════════════════════
# Proportional share
# ═══════════════════════════════════════════════════════════════════════════════


def proportional_share(line_total: Money, subtotal: Money, total_discount: Money) -> Decimal:
    """``total_discount * line_total / subtotal``, unrounded."""
    if subtotal <= 0 or total_discount <= 0:
        return Decimal(0)
    return Decimal(total_discount) * Decimal(line_total) / Decimal(subtotal)


def allocate(line_totals: list[Money], subtotal: Money, total_discount: Money) -> list[Money]:
    """
    Per-line coupon shares that sum to exactly ``total_discount``.

    Every line gets the floor of its proportional share; the units left
    over go to the lines with the largest remainders, earlier lines first
    on a tie.
    """
    exact = [proportional_share(t, subtotal, total_discount) for t in line_totals]
    shares = [int(e) for e in exact]
    leftover = (total_discount if subtotal > 0 else 0) - sum(shares)
    by_remainder = sorted(range(len(exact)), key=lambda i: (-(exact[i] - shares[i]), i))
    for i in by_remainder[:max(leftover, 0)]:
        shares[i] += 1
    return shares


# ═══════════════════════════════════════════════════════════════════════════════
# Refunds
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RefundBreakdown:
    return_amount: Money
    product_discount: Money
    coupon_share: Money


def refund_breakdown(
    *,
    price: Money,
    discount_price: Money | None,
    quantity: int,
    coupon_share: Money,
    include_coupon: bool,
) -> RefundBreakdown:
    """
    price × qty − product discount × qty − this line's coupon share.

    ``coupon_share`` is the share allocated to the line at checkout, so a
    full set of returns gives back exactly what the order charged for its
    lines.
    """
    product_discount = (price - unit_price(price, discount_price)) * quantity
    share = coupon_share if include_coupon else 0
    return RefundBreakdown(
        return_amount=max(price * quantity - product_discount - share, 0),
        product_discount=product_discount,
        coupon_share=share,
    )


__all__ = (
    "round_money",
    "unit_price",
    "PricedLine",
    "price_line",
    "CouponTerms",
    "CouponDiscount",
    "apply_coupon",
    "proportional_share",
    "allocate",
    "RefundBreakdown",
    "refund_breakdown",
)
