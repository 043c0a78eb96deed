"""
Totals — coupon resolution, shipping, per-line coupon shares, final total.
"""

import logging
from dataclasses import replace

from kungfu import Error, Ok

from ordercore import graph as G
from ordercore._types import PaymentMethod
from ordercore.checkout._types import Ledgers, Quote
from ordercore.checkout.nodes._input import RequestNode
from ordercore.checkout.nodes._lines import LinesNode
from ordercore.config import CommerceConfig
from ordercore.db import UnitOfWork
from ordercore.errors import CommerceFailure, Errors
from ordercore.pricing import CouponDiscount, allocate

logger = logging.getLogger("ordercore.checkout")


@G.node
class CouponNode:
    """
    Coupon soft-fail: a coupon that does not apply is dropped, not fatal.

    The reason is kept and surfaces on the receipt as ``coupon_rejected``.
    """

    def __init__(self, discount: CouponDiscount | None, rejected: str | None) -> None:
        self.discount = discount
        self.rejected = rejected

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        lines: LinesNode,
        uow: UnitOfWork,
        ledgers: Ledgers,
    ) -> "CouponNode":
        code = request.data.coupon_code
        if not code:
            return cls(None, None)

        subtotal = sum(line.priced.line_total for line in lines.lines)
        match await ledgers.coupons.check(uow, code, request.data.user_id, subtotal):
            case Ok(discount):
                return cls(discount, None)
            case Error(e):
                logger.warning("coupon %s dropped for %s: %s", code, request.data.user_id, e.message)
                return cls(None, e.message)


@G.node
class TotalsNode:
    """Subtotal, shipping, coupon shares and total; the quote is final here."""

    def __init__(self, data: Quote) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        lines: LinesNode,
        coupon: CouponNode,
        config: CommerceConfig,
    ) -> "TotalsNode":
        subtotal = sum(line.priced.line_total for line in lines.lines)
        shipping = config.shipping_for(subtotal)
        discount = coupon.discount.amount if coupon.discount is not None else 0

        shares = allocate([line.priced.line_total for line in lines.lines], subtotal, discount)
        quoted = tuple(
            replace(line, coupon_share=share) for line, share in zip(lines.lines, shares)
        )
        total = subtotal + shipping - discount

        if request.method == PaymentMethod.COD and total > config.cod_limit:
            raise CommerceFailure(Errors.payment_method_not_allowed(
                f"Cash on delivery is not available for orders above {config.cod_limit}"
            ))

        return cls(Quote(
            method=request.method,
            lines=quoted,
            subtotal=subtotal,
            shipping=shipping,
            coupon=coupon.discount,
            coupon_rejected=coupon.rejected,
            total=total,
        ))


__all__ = ("CouponNode", "TotalsNode")
