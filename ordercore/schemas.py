"""
Wire schemas — the shapes clients read, with their historical field names.

Domain values are frozen dataclasses with snake_case fields; these models
are the only place the camelCase names (``orderId``, ``sizeVariant``,
``totalDiscount`` ...) exist. Build them with ``from_domain`` and dump with
``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from datetime import datetime

from kungfu import Error, Ok, Result
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ordercore._types import (
    IntentStatus,
    ItemStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReturnReason,
    ReturnStatus,
    TransactionType,
)
from ordercore.catalog import AddressSnapshot
from ordercore.checkout import PaymentIntent, Receipt
from ordercore.errors import CommerceError
from ordercore.orders import Order, OrderItem, ReturnResolution
from ordercore.wallet import WalletEntry, WalletPage


class Wire(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class AddressOut(Wire):
    full_name: str
    phone: str
    street: str
    city: str
    state: str
    country: str
    postal_code: str

    @classmethod
    def from_domain(cls, address: AddressSnapshot) -> AddressOut:
        return cls(
            full_name=address.full_name,
            phone=address.phone,
            street=address.street,
            city=address.city,
            state=address.state,
            country=address.country,
            postal_code=address.postal_code,
        )


class ShippingOut(Wire):
    address: AddressOut
    shipping_method: str
    delivery_charge: int


class PaymentOut(Wire):
    method: PaymentMethod
    status: PaymentStatus
    transaction_id: str
    amount: int
    payment_date: datetime | None


class OrderItemOut(Wire):
    id: int
    product: str
    product_name: str
    size_variant: str
    size: str | None
    color: str | None
    quantity: int
    price: int
    discount_price: int
    final_price: int
    saved_amount: int
    status: ItemStatus
    cancellation_reason: str | None
    return_requested: bool
    return_processed: bool
    return_reason: ReturnReason | None
    return_details: str | None
    return_status: ReturnStatus | None
    rejection_reason: str | None

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            id=item.id,
            product=item.product_id,
            product_name=item.product_name,
            size_variant=item.variant_id,
            size=item.size,
            color=item.color,
            quantity=item.quantity,
            price=item.price,
            # Lines sold at list price report it as their discount price.
            discount_price=item.discount_price if item.discount_price is not None else item.price,
            final_price=item.final_price,
            saved_amount=item.saved_amount,
            status=item.status,
            cancellation_reason=item.cancellation_reason,
            return_requested=item.return_requested,
            return_processed=item.return_processed,
            return_reason=item.return_reason,
            return_details=item.return_details,
            return_status=item.return_status,
            rejection_reason=item.rejection_reason,
        )


class OrderOut(Wire):
    order_id: str
    user: str
    items: list[OrderItemOut]
    shipping: ShippingOut
    payment: PaymentOut
    order_status: OrderStatus
    reason: str | None
    subtotal: int
    coupon_code: str | None
    discount_amount: int
    total_discount: int
    total_amount: int
    created_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            order_id=order.id,
            user=order.user_id,
            items=[OrderItemOut.from_domain(item) for item in order.items],
            shipping=ShippingOut(
                address=AddressOut.from_domain(order.shipping.address),
                shipping_method=order.shipping.method,
                delivery_charge=order.shipping.delivery_charge,
            ),
            payment=PaymentOut(
                method=order.payment.method,
                status=order.payment.status,
                transaction_id=order.payment.transaction_id,
                amount=order.payment.amount,
                payment_date=order.payment.paid_at,
            ),
            order_status=order.status,
            reason=order.reason,
            subtotal=order.subtotal,
            coupon_code=order.coupon_code,
            discount_amount=order.discount_amount,
            total_discount=order.total_discount,
            total_amount=order.total_amount,
            created_at=order.created_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutOut(Wire):
    """Outcome of a commit; ``message`` carries the failure, if any."""

    success: bool
    order_id: str | None = None
    subtotal: int | None = None
    shipping: int | None = None
    discount_amount: int | None = None
    total_discount: int | None = None
    total_amount: int | None = None
    payment_method: PaymentMethod | None = None
    payment_status: PaymentStatus | None = None
    coupon_code: str | None = None
    coupon_rejected: str | None = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def from_domain(cls, result: Result[Receipt, CommerceError]) -> CheckoutOut:
        match result:
            case Ok(receipt):
                return cls(
                    success=True,
                    order_id=receipt.order_id,
                    subtotal=receipt.subtotal,
                    shipping=receipt.shipping,
                    discount_amount=receipt.discount_amount,
                    total_discount=receipt.total_discount,
                    total_amount=receipt.total_amount,
                    payment_method=receipt.payment_method,
                    payment_status=receipt.payment_status,
                    coupon_code=receipt.coupon_code,
                    coupon_rejected=receipt.coupon_rejected,
                )
            case Error(e):
                return cls(success=False, error=e.kind.name, message=e.message)


class PaymentIntentOut(Wire):
    id: str
    gateway_order_id: str
    amount: int
    currency: str
    status: IntentStatus
    created_at: datetime

    @classmethod
    def from_domain(cls, intent: PaymentIntent) -> PaymentIntentOut:
        return cls(
            id=intent.id,
            gateway_order_id=intent.gateway_ref,
            amount=intent.amount,
            currency=intent.currency,
            status=intent.status,
            created_at=intent.created_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Returns
# ═══════════════════════════════════════════════════════════════════════════════


class ReturnOut(Wire):
    message: str
    return_amount: int
    product_discount: int
    coupon_discount: int
    updated_order: OrderOut

    @classmethod
    def from_domain(cls, resolution: ReturnResolution) -> ReturnOut:
        refund = resolution.refund
        if resolution.approved and refund is not None:
            return cls(
                message="Return processed and refund added to wallet successfully",
                return_amount=refund.return_amount,
                product_discount=refund.product_discount,
                coupon_discount=refund.coupon_share,
                updated_order=OrderOut.from_domain(resolution.order),
            )
        return cls(
            message="Return request rejected",
            return_amount=0,
            product_discount=0,
            coupon_discount=0,
            updated_order=OrderOut.from_domain(resolution.order),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Wallet
# ═══════════════════════════════════════════════════════════════════════════════


class TransactionOut(Wire):
    type: TransactionType
    amount: int
    description: str
    date: datetime

    @classmethod
    def from_domain(cls, entry: WalletEntry) -> TransactionOut:
        return cls(
            type=entry.type,
            amount=entry.amount,
            description=entry.description,
            date=entry.created_at,
        )


class BalanceOut(Wire):
    balance: int


class PaginationOut(Wire):
    current_page: int
    total_pages: int
    total_transactions: int


class WalletOut(Wire):
    success: bool = True
    wallet: BalanceOut
    transactions: list[TransactionOut]
    pagination: PaginationOut

    @classmethod
    def from_domain(cls, page: WalletPage) -> WalletOut:
        return cls(
            wallet=BalanceOut(balance=page.balance),
            transactions=[TransactionOut.from_domain(e) for e in page.entries],
            pagination=PaginationOut(
                current_page=page.page,
                total_pages=page.total_pages,
                total_transactions=page.total_entries,
            ),
        )


__all__ = (
    "Wire",
    "AddressOut",
    "ShippingOut",
    "PaymentOut",
    "OrderItemOut",
    "OrderOut",
    "CheckoutOut",
    "PaymentIntentOut",
    "ReturnOut",
    "TransactionOut",
    "BalanceOut",
    "PaginationOut",
    "WalletOut",
)
