"""
Order state machine — pure transition guards.

Each function takes the current order and returns either the next order
value (plus whatever side effects the transition implies) or the reason
the transition is not allowed. Nothing here touches storage; the service
applies the plan inside a unit of work.

Item lifecycle:

    pending → Processing → Shipped → Delivered
                                        └─ Return Pending → Return Approved → Refunded
                                                          └─ Return Rejected
    pending | Processing → Cancelled
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from kungfu import Error, Ok, Result

from ordercore._types import (
    ItemStatus,
    Money,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReturnReason,
    ReturnStatus,
)
from ordercore.config import CouponRefundPolicy
from ordercore.errors import CommerceError, Errors
from ordercore.orders._domain import Order, OrderItem
from ordercore.pricing import RefundBreakdown, refund_breakdown

# ═══════════════════════════════════════════════════════════════════════════════
# Flows
# ═══════════════════════════════════════════════════════════════════════════════

CANCELLABLE: frozenset[OrderStatus] = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})
CANCELLABLE_ITEMS: frozenset[ItemStatus] = frozenset({ItemStatus.PENDING, ItemStatus.PROCESSING})

ORDER_FLOW: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

ITEM_FLOW: tuple[ItemStatus, ...] = (
    ItemStatus.PENDING,
    ItemStatus.PROCESSING,
    ItemStatus.SHIPPED,
    ItemStatus.DELIVERED,
)

_ITEM_FOR_ORDER: dict[OrderStatus, ItemStatus] = dict(zip(ORDER_FLOW, ITEM_FLOW))


# ═══════════════════════════════════════════════════════════════════════════════
# Plans
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Cancellation:
    order: Order
    released: tuple[OrderItem, ...]
    refund: Money


@dataclass(frozen=True, slots=True)
class ReturnResolution:
    order: Order
    item: OrderItem
    approved: bool
    refund: RefundBreakdown | None


def _with_item(order: Order, item: OrderItem) -> Order:
    return replace(order, items=tuple(item if i.id == item.id else i for i in order.items))


def _find(order: Order, item_id: int) -> Result[OrderItem, CommerceError]:
    item = order.item(item_id)
    if item is None:
        return Error(Errors.not_found("Order item", f"{order.id}/{item_id}"))
    return Ok(item)


# ═══════════════════════════════════════════════════════════════════════════════
# Cancel
# ═══════════════════════════════════════════════════════════════════════════════


def refundable_on_cancel(order: Order) -> Money:
    """Money actually taken: online or wallet payments that completed."""
    paid = order.payment.method in (PaymentMethod.ONLINE, PaymentMethod.WALLET)
    return order.payment.amount if paid and order.payment.captured else 0


def cancel(order: Order, reason: str | None = None) -> Result[Cancellation, CommerceError]:
    if order.status not in CANCELLABLE:
        return Error(Errors.invalid_transition(
            f"Order {order.id} cannot be cancelled once {order.status.value}"
        ))
    # Items move on their own; one that left the warehouse or came back
    # through a return blocks the whole-order cancel.
    allowed = CANCELLABLE_ITEMS | {ItemStatus.CANCELLED}
    moved = next(
        (i for i in order.items if i.return_requested or i.status not in allowed),
        None,
    )
    if moved is not None:
        return Error(Errors.invalid_transition(
            f"Order {order.id} cannot be cancelled, item {moved.id} is {moved.status.value}"
        ))

    released = tuple(i for i in order.items if i.status in CANCELLABLE_ITEMS)
    items = tuple(
        replace(i, status=ItemStatus.CANCELLED, cancellation_reason=reason)
        if i.status in CANCELLABLE_ITEMS
        else i
        for i in order.items
    )
    cancelled = replace(
        order,
        items=items,
        status=OrderStatus.CANCELLED,
        reason=reason,
        payment=replace(order.payment, status=PaymentStatus.CANCELLED),
    )
    return Ok(Cancellation(cancelled, released, refundable_on_cancel(order)))


def fail_payment(order: Order) -> Result[Cancellation, CommerceError]:
    """An online order whose payment never arrived."""
    awaiting = order.payment.status in (PaymentStatus.PENDING, PaymentStatus.INITIATED)
    if order.payment.method != PaymentMethod.ONLINE or not awaiting:
        return Error(Errors.invalid_transition(
            f"Order {order.id} is not awaiting an online payment"
        ))

    match cancel(order, "Payment failed"):
        case Ok(plan):
            failed = replace(plan.order, payment=replace(order.payment, status=PaymentStatus.FAILED))
            return Ok(Cancellation(failed, plan.released, 0))
        case Error(e):
            return Error(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Returns
# ═══════════════════════════════════════════════════════════════════════════════


def request_return(
    order: Order,
    item_id: int,
    reason: ReturnReason,
    details: str | None = None,
) -> Result[Order, CommerceError]:
    match _find(order, item_id):
        case Ok(item):
            pass
        case Error(e):
            return Error(e)

    if item.return_requested:
        return Error(Errors.return_already_requested())
    if item.status != ItemStatus.DELIVERED:
        return Error(Errors.invalid_transition(
            f"Only delivered items can be returned, item is {item.status.value}"
        ))

    requested = replace(
        item,
        return_requested=True,
        return_reason=reason,
        return_details=details,
        return_status=ReturnStatus.PENDING,
    )
    return Ok(_with_item(order, requested))


def resolve_return(
    order: Order,
    item_id: int,
    approve: bool,
    policy: CouponRefundPolicy,
    rejection_reason: str | None = None,
) -> Result[ReturnResolution, CommerceError]:
    match _find(order, item_id):
        case Ok(item):
            pass
        case Error(e):
            return Error(e)

    if item.return_processed:
        return Error(Errors.already_processed(f"Return for item {item_id} already refunded"))
    if item.return_status != ReturnStatus.PENDING:
        return Error(Errors.invalid_transition(
            f"No pending return for item {item_id}"
            if item.return_status is None
            else f"Return for item {item_id} is {item.return_status.value}"
        ))

    if not approve:
        rejected = replace(item, return_status=ReturnStatus.REJECTED, rejection_reason=rejection_reason)
        return Ok(ReturnResolution(_with_item(order, rejected), rejected, False, None))

    refund = refund_breakdown(
        price=item.price,
        discount_price=item.discount_price,
        quantity=item.quantity,
        coupon_share=item.coupon_share if order.coupon_code else 0,
        include_coupon=_deducts_coupon(order, item, policy),
    )
    refunded = replace(
        item,
        status=ItemStatus.RETURNED,
        return_status=ReturnStatus.REFUNDED,
        return_processed=True,
    )
    return Ok(ReturnResolution(_with_item(order, refunded), refunded, True, refund))


def _deducts_coupon(order: Order, item: OrderItem, policy: CouponRefundPolicy) -> bool:
    match policy:
        case CouponRefundPolicy.PROPORTIONAL:
            return True
        case CouponRefundPolicy.FIRST_RETURN_ONLY:
            return not any(i.return_processed for i in order.items if i.id != item.id)


# ═══════════════════════════════════════════════════════════════════════════════
# Fulfilment
# ═══════════════════════════════════════════════════════════════════════════════


def advance(order: Order, status: OrderStatus, now: datetime) -> Result[Order, CommerceError]:
    """Move the order forward; live items follow, COD is collected on delivery."""
    if order.status not in ORDER_FLOW or status not in ORDER_FLOW:
        return Error(Errors.invalid_transition(
            f"Order {order.id} cannot move from {order.status.value} to {status.value}"
        ))
    if ORDER_FLOW.index(status) <= ORDER_FLOW.index(order.status):
        return Error(Errors.invalid_transition(
            f"Order {order.id} is already {order.status.value}"
        ))

    target = _ITEM_FOR_ORDER[status]
    items = tuple(
        replace(i, status=target)
        if i.status in ITEM_FLOW and ITEM_FLOW.index(i.status) < ITEM_FLOW.index(target)
        else i
        for i in order.items
    )
    payment = order.payment
    if (
        status == OrderStatus.DELIVERED
        and payment.method == PaymentMethod.COD
        and not payment.captured
    ):
        payment = replace(payment, status=PaymentStatus.COMPLETED, paid_at=now)

    return Ok(replace(order, status=status, items=items, payment=payment))


def advance_item(order: Order, item_id: int, status: ItemStatus) -> Result[Order, CommerceError]:
    match _find(order, item_id):
        case Ok(item):
            pass
        case Error(e):
            return Error(e)

    if item.status not in ITEM_FLOW or status not in ITEM_FLOW:
        return Error(Errors.invalid_transition(
            f"Item {item_id} cannot move from {item.status.value} to {status.value}"
        ))
    if ITEM_FLOW.index(status) <= ITEM_FLOW.index(item.status):
        return Error(Errors.invalid_transition(f"Item {item_id} is already {item.status.value}"))

    return Ok(_with_item(order, replace(item, status=status)))


__all__ = (
    "CANCELLABLE",
    "CANCELLABLE_ITEMS",
    "ORDER_FLOW",
    "ITEM_FLOW",
    "Cancellation",
    "ReturnResolution",
    "refundable_on_cancel",
    "cancel",
    "fail_payment",
    "request_return",
    "resolve_return",
    "advance",
    "advance_item",
)
