"""Checkout inputs, collaborators and outputs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ordercore._types import IntentStatus, Money, PaymentMethod, PaymentStatus
from ordercore.cart import CartBook
from ordercore.catalog import Catalog, VariantView
from ordercore.coupons import CouponBook
from ordercore.inventory import InventoryLedger
from ordercore.orders import OrderRepository
from ordercore.pricing import CouponDiscount, PricedLine
from ordercore.wallet import WalletLedger


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentCapture:
    """A gateway payment already verified for this commit."""

    payment_ref: str
    amount: Money


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    user_id: str
    address_id: str
    payment_method: str
    coupon_code: str | None = None
    capture: PaymentCapture | None = None


@dataclass(frozen=True, slots=True)
class Ledgers:
    """Everything the checkout graph reads from or writes to."""

    catalog: Catalog
    inventory: InventoryLedger
    wallet: WalletLedger
    carts: CartBook
    coupons: CouponBook
    orders: OrderRepository


# ═══════════════════════════════════════════════════════════════════════════════
# Outputs
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class QuotedLine:
    variant: VariantView
    priced: PricedLine
    coupon_share: Money = 0


@dataclass(frozen=True, slots=True)
class Quote:
    method: PaymentMethod
    lines: tuple[QuotedLine, ...]
    subtotal: Money
    shipping: Money
    coupon: CouponDiscount | None
    coupon_rejected: str | None
    total: Money

    @property
    def discount_amount(self) -> Money:
        return self.coupon.amount if self.coupon is not None else 0

    @property
    def product_discount(self) -> Money:
        return sum(line.priced.product_discount for line in self.lines)

    @property
    def total_discount(self) -> Money:
        return self.product_discount + self.discount_amount


@dataclass(frozen=True, slots=True)
class Receipt:
    order_id: str
    subtotal: Money
    shipping: Money
    discount_amount: Money
    total_discount: Money
    total_amount: Money
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    coupon_code: str | None
    coupon_rejected: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    id: str
    gateway_ref: str
    amount: Money
    currency: str
    status: IntentStatus
    created_at: datetime


__all__ = (
    "PaymentCapture",
    "CheckoutRequest",
    "Ledgers",
    "QuotedLine",
    "Quote",
    "Receipt",
    "PaymentIntent",
)
