"""
Commit — payment → order → stock → cart, as one saga in one unit of work.

Every step writes through the same ``UnitOfWork``; when a step fails the
node raises, the unit rolls back, and none of the earlier steps are
visible. Step names show up in the logs and in ``SagaError.step_name``.
"""

import logging
import uuid
from datetime import datetime

from kungfu import Error, Ok, Result

from ordercore import graph as G
from ordercore import saga as S
from ordercore._types import ItemStatus, OrderStatus, PaymentMethod, PaymentStatus
from ordercore.checkout._types import Ledgers, Quote, Receipt
from ordercore.checkout.nodes._input import AddressNode, RequestNode
from ordercore.checkout.nodes._totals import TotalsNode
from ordercore.db import UnitOfWork
from ordercore.errors import CommerceError, CommerceFailure, Errors
from ordercore.orders import Order, OrderItem, Payment, Shipping

logger = logging.getLogger("ordercore.checkout")

SHIPPING_METHOD = "Standard"


def new_order_id(now: datetime) -> str:
    return f"ORD-{now:%Y%m%d}-{uuid.uuid4().hex[:8]}"


def new_transaction_id(now: datetime) -> str:
    return f"TXN{now:%Y%m%d%H%M%S}{uuid.uuid4().hex[:6].upper()}"


@G.node
class CommitNode:
    """Terminal node: commit the quoted order."""

    def __init__(self, data: Receipt) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        address: AddressNode,
        totals: TotalsNode,
        uow: UnitOfWork,
        ledgers: Ledgers,
    ) -> "CommitNode":
        now = datetime.now()
        quote = totals.data
        user_id = request.data.user_id
        order_id = new_order_id(now)

        async def settle_payment() -> Result[Payment, CommerceError]:
            capture = request.data.capture
            match quote.method:
                case PaymentMethod.WALLET:
                    debited = await ledgers.wallet.debit(
                        uow,
                        user_id,
                        quote.total,
                        f"Payment for order #{order_id}",
                        reference=f"order:{order_id}:debit",
                    )
                    match debited:
                        case Ok(_):
                            return Ok(Payment(
                                PaymentMethod.WALLET,
                                PaymentStatus.COMPLETED,
                                new_transaction_id(now),
                                quote.total,
                                now,
                            ))
                        case Error(e):
                            return Error(e)
                case PaymentMethod.ONLINE if capture is not None:
                    if capture.amount != quote.total:
                        return Error(Errors.invalid_amount(
                            f"Paid {capture.amount}, order total is now {quote.total}"
                        ))
                    return Ok(Payment(
                        PaymentMethod.ONLINE,
                        PaymentStatus.COMPLETED,
                        capture.payment_ref,
                        quote.total,
                        now,
                    ))
                case _:
                    return Ok(Payment(
                        quote.method,
                        PaymentStatus.PENDING,
                        new_transaction_id(now),
                        quote.total,
                    ))

        async def create_order(payment: Payment) -> Result[Order, CommerceError]:
            draft = _draft(order_id, user_id, now, quote, address, payment)
            return Ok(await ledgers.orders.insert(uow, draft))

        async def reserve_stock(order: Order) -> Result[Order, CommerceError]:
            for line in quote.lines:
                reserved = await ledgers.inventory.reserve(
                    uow, line.priced.variant_id, line.priced.quantity
                )
                match reserved:
                    case Error(e):
                        return Error(e)
                    case _:
                        pass
            return Ok(order)

        async def close_cart(order: Order) -> Result[Order, CommerceError]:
            await ledgers.carts.empty(uow, user_id)
            if quote.coupon is not None:
                redeemed = await ledgers.coupons.redeem(uow, quote.coupon.code, user_id, order.id)
                match redeemed:
                    case Error(e):
                        return Error(e)
                    case _:
                        pass
            return Ok(order)

        checkout = (
            S.from_result(settle_payment, name="payment")
            .then(lambda payment: S.from_result(lambda: create_order(payment), name="order"))
            .then(lambda order: S.from_result(lambda: reserve_stock(order), name="reserve"))
            .then(lambda order: S.from_result(lambda: close_cart(order), name="cart"))
        )

        match await S.run(checkout):
            case Ok(result):
                order = result.value
            case Error(saga_error):
                logger.warning(
                    "checkout for %s failed at %s: %s",
                    user_id, saga_error.step_name, saga_error.error,
                )
                raise CommerceFailure(saga_error.error)

        logger.info(
            "order %s committed: %d lines, total %d, %s/%s",
            order.id, len(order.items), order.total_amount,
            order.payment.method.value, order.payment.status.value,
        )
        return cls(Receipt(
            order_id=order.id,
            subtotal=order.subtotal,
            shipping=order.shipping.delivery_charge,
            discount_amount=order.discount_amount,
            total_discount=order.total_discount,
            total_amount=order.total_amount,
            payment_method=order.payment.method,
            payment_status=order.payment.status,
            coupon_code=order.coupon_code,
            coupon_rejected=quote.coupon_rejected,
        ))


def _draft(
    order_id: str,
    user_id: str,
    now: datetime,
    quote: Quote,
    address: AddressNode,
    payment: Payment,
) -> Order:
    # A verified online payment starts processing immediately.
    started = payment.method == PaymentMethod.ONLINE and payment.captured
    order_status = OrderStatus.PROCESSING if started else OrderStatus.PENDING
    item_status = ItemStatus.PROCESSING if started else ItemStatus.PENDING

    items = tuple(
        OrderItem(
            position=position,
            product_id=line.variant.product_id,
            product_name=line.variant.product_name,
            variant_id=line.priced.variant_id,
            size=line.variant.size,
            color=line.variant.color,
            quantity=line.priced.quantity,
            price=line.priced.price,
            discount_price=line.priced.discount_price,
            final_price=line.priced.line_total,
            saved_amount=line.priced.saved_per_unit,
            coupon_share=line.coupon_share,
            status=item_status,
        )
        for position, line in enumerate(quote.lines)
    )
    return Order(
        id=order_id,
        user_id=user_id,
        items=items,
        shipping=Shipping(address.data, SHIPPING_METHOD, quote.shipping),
        payment=payment,
        subtotal=quote.subtotal,
        coupon_code=quote.coupon.code if quote.coupon is not None else None,
        discount_amount=quote.discount_amount,
        total_discount=quote.total_discount,
        total_amount=quote.total,
        status=order_status,
        created_at=now,
    )


__all__ = ("CommitNode", "new_order_id")
