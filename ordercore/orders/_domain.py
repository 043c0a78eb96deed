"""Order aggregate — immutable values, mapped from rows by the repository."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ordercore._types import (
    ItemStatus,
    Money,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReturnReason,
    ReturnStatus,
)
from ordercore.catalog import AddressSnapshot


@dataclass(frozen=True, slots=True)
class Shipping:
    address: AddressSnapshot
    method: str
    delivery_charge: Money


@dataclass(frozen=True, slots=True)
class Payment:
    method: PaymentMethod
    status: PaymentStatus
    transaction_id: str
    amount: Money
    paid_at: datetime | None = None

    @property
    def captured(self) -> bool:
        return self.status == PaymentStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class OrderItem:
    position: int
    product_id: str
    product_name: str
    variant_id: str
    size: str | None
    color: str | None
    quantity: int
    price: Money
    discount_price: Money | None
    final_price: Money
    saved_amount: Money
    coupon_share: Money
    status: ItemStatus
    id: int = 0
    cancellation_reason: str | None = None
    return_requested: bool = False
    return_processed: bool = False
    return_reason: ReturnReason | None = None
    return_details: str | None = None
    return_status: ReturnStatus | None = None
    rejection_reason: str | None = None

    @property
    def holds_stock(self) -> bool:
        """Units still out of the warehouse on this line's account."""
        return self.status not in (ItemStatus.CANCELLED, ItemStatus.RETURNED)


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    user_id: str
    items: tuple[OrderItem, ...]
    shipping: Shipping
    payment: Payment
    subtotal: Money
    coupon_code: str | None
    discount_amount: Money
    total_discount: Money
    total_amount: Money
    status: OrderStatus
    created_at: datetime
    reason: str | None = None

    def item(self, item_id: int) -> OrderItem | None:
        return next((i for i in self.items if i.id == item_id), None)


__all__ = ("Shipping", "Payment", "OrderItem", "Order")
