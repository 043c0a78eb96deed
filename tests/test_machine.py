"""Order state machine: transition guards on plain values."""

from dataclasses import replace
from datetime import datetime

import pytest
from kungfu import Error, Ok

from ordercore._types import (
    ItemStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReturnReason,
    ReturnStatus,
)
from ordercore.catalog import AddressSnapshot
from ordercore.config import CouponRefundPolicy
from ordercore.errors import ErrorKind
from ordercore.orders import Order, OrderItem, Payment, Shipping, machine

NOW = datetime(2024, 6, 1, 12, 0)

ADDRESS = AddressSnapshot("Asha Rao", "9000000001", "12 MG Road", "Bengaluru", "Karnataka", "India", "560001")


def make_order(
    method: PaymentMethod = PaymentMethod.WALLET,
    payment_status: PaymentStatus = PaymentStatus.COMPLETED,
    status: OrderStatus = OrderStatus.PENDING,
    item_status: ItemStatus = ItemStatus.PENDING,
) -> Order:
    items = (
        OrderItem(
            position=0, product_id="p-shirt", product_name="Linen Shirt", variant_id="v-shirt-m",
            size="M", color="White", quantity=1, price=1000, discount_price=800,
            final_price=800, saved_amount=200, coupon_share=62, status=item_status, id=1,
        ),
        OrderItem(
            position=1, product_id="p-jeans", product_name="Slim Jeans", variant_id="v-jeans-32",
            size="32", color=None, quantity=1, price=500, discount_price=None,
            final_price=500, saved_amount=0, coupon_share=38, status=item_status, id=2,
        ),
    )
    return Order(
        id="ORD-1",
        user_id="u1",
        items=items,
        shipping=Shipping(ADDRESS, "Standard", 0),
        payment=Payment(method, payment_status, "TXN1", 1200, NOW),
        subtotal=1300,
        coupon_code="FLAT100",
        discount_amount=100,
        total_discount=300,
        total_amount=1200,
        status=status,
        created_at=NOW,
    )


def delivered(order: Order) -> Order:
    match machine.advance(order, OrderStatus.DELIVERED, NOW):
        case Ok(done):
            return done
        case Error(e):
            raise AssertionError(e)


class TestCancel:
    def test_wallet_order_refunds_full_amount(self):
        match machine.cancel(make_order(), "Changed my mind"):
            case Ok(plan):
                assert plan.refund == 1200
                assert plan.order.status is OrderStatus.CANCELLED
                assert plan.order.payment.status is PaymentStatus.CANCELLED
                assert {i.variant_id for i in plan.released} == {"v-shirt-m", "v-jeans-32"}
                assert all(i.status is ItemStatus.CANCELLED for i in plan.order.items)
                assert plan.order.items[0].cancellation_reason == "Changed my mind"
            case Error(e):
                raise AssertionError(e)

    def test_cod_order_refunds_nothing(self):
        order = make_order(PaymentMethod.COD, PaymentStatus.PENDING)
        match machine.cancel(order):
            case Ok(plan):
                assert plan.refund == 0
            case Error(e):
                raise AssertionError(e)

    def test_uncaptured_online_refunds_nothing(self):
        order = make_order(PaymentMethod.ONLINE, PaymentStatus.PENDING)
        assert machine.refundable_on_cancel(order) == 0

    def test_shipped_order_cannot_be_cancelled(self):
        order = make_order(status=OrderStatus.SHIPPED, item_status=ItemStatus.SHIPPED)
        match machine.cancel(order):
            case Error(e):
                assert e.kind is ErrorKind.INVALID_TRANSITION
            case Ok(_):
                raise AssertionError("shipped order cancelled")

    def test_already_cancelled_item_is_not_released_twice(self):
        order = make_order()
        first = replace(order.items[0], status=ItemStatus.CANCELLED)
        order = replace(order, items=(first, order.items[1]))
        match machine.cancel(order):
            case Ok(plan):
                assert [i.variant_id for i in plan.released] == ["v-jeans-32"]
            case Error(e):
                raise AssertionError(e)

    @pytest.mark.parametrize(
        "moved",
        [
            {"status": ItemStatus.SHIPPED},
            {"status": ItemStatus.DELIVERED},
            {"status": ItemStatus.DELIVERED, "return_requested": True, "return_status": ReturnStatus.PENDING},
            {"status": ItemStatus.RETURNED, "return_requested": True, "return_processed": True},
        ],
    )
    def test_item_past_processing_blocks_cancel(self, moved):
        order = make_order()
        order = replace(order, items=(replace(order.items[0], **moved), order.items[1]))
        match machine.cancel(order):
            case Error(e):
                assert e.kind is ErrorKind.INVALID_TRANSITION
                assert "item 1" in e.message
            case Ok(_):
                raise AssertionError("cancel released a moved item")


class TestFailPayment:
    def test_online_pending(self):
        order = make_order(PaymentMethod.ONLINE, PaymentStatus.PENDING)
        match machine.fail_payment(order):
            case Ok(plan):
                assert plan.refund == 0
                assert plan.order.payment.status is PaymentStatus.FAILED
                assert plan.order.reason == "Payment failed"
            case Error(e):
                raise AssertionError(e)

    def test_wallet_order_is_not_awaiting_payment(self):
        assert isinstance(machine.fail_payment(make_order()), Error)


class TestAdvance:
    def test_forward_only(self):
        order = delivered(make_order())
        match machine.advance(order, OrderStatus.PROCESSING, NOW):
            case Error(e):
                assert e.kind is ErrorKind.INVALID_TRANSITION
            case Ok(_):
                raise AssertionError("moved backwards")

    def test_items_follow_order(self):
        order = delivered(make_order())
        assert order.status is OrderStatus.DELIVERED
        assert all(i.status is ItemStatus.DELIVERED for i in order.items)

    def test_cod_collected_on_delivery(self):
        order = delivered(make_order(PaymentMethod.COD, PaymentStatus.PENDING))
        assert order.payment.status is PaymentStatus.COMPLETED
        assert order.payment.paid_at == NOW

    def test_shipped_uses_legacy_spelling(self):
        match machine.advance(make_order(), OrderStatus.SHIPPED, NOW):
            case Ok(order):
                assert order.status.value == "Shiped"
                assert order.items[0].status.value == "Shipped"
            case Error(e):
                raise AssertionError(e)

    def test_advance_item(self):
        match machine.advance_item(make_order(), 2, ItemStatus.SHIPPED):
            case Ok(order):
                assert order.item(2).status is ItemStatus.SHIPPED
                assert order.item(1).status is ItemStatus.PENDING
            case Error(e):
                raise AssertionError(e)


class TestReturns:
    def test_only_delivered_items(self):
        match machine.request_return(make_order(), 1, ReturnReason.DEFECTIVE):
            case Error(e):
                assert e.kind is ErrorKind.INVALID_TRANSITION
            case Ok(_):
                raise AssertionError("returned an undelivered item")

    def test_request_then_request_again(self):
        match machine.request_return(delivered(make_order()), 1, ReturnReason.WRONG_SIZE, "Too tight"):
            case Ok(order):
                item = order.item(1)
                assert item.return_requested
                assert item.return_status is ReturnStatus.PENDING
                assert item.return_details == "Too tight"
            case Error(e):
                raise AssertionError(e)

        match machine.request_return(order, 1, ReturnReason.OTHER):
            case Error(e):
                assert e.kind is ErrorKind.RETURN_ALREADY_REQUESTED
            case Ok(_):
                raise AssertionError("second return request accepted")

    def test_approve_refunds_line_less_coupon_share(self):
        order = self._requested(delivered(make_order()), 1)
        match machine.resolve_return(order, 1, True, CouponRefundPolicy.PROPORTIONAL):
            case Ok(resolution):
                assert resolution.approved
                assert resolution.refund.return_amount == 738
                assert resolution.item.status is ItemStatus.RETURNED
                assert resolution.item.return_status is ReturnStatus.REFUNDED
                assert resolution.item.return_processed
            case Error(e):
                raise AssertionError(e)

    def test_first_return_only_policy(self):
        order = self._requested(self._requested(delivered(make_order()), 1), 2)
        policy = CouponRefundPolicy.FIRST_RETURN_ONLY

        match machine.resolve_return(order, 1, True, policy):
            case Ok(first):
                assert first.refund.return_amount == 738
            case Error(e):
                raise AssertionError(e)

        match machine.resolve_return(first.order, 2, True, policy):
            case Ok(second):
                assert second.refund.return_amount == 500
            case Error(e):
                raise AssertionError(e)

    def test_resolved_return_cannot_be_resolved_again(self):
        order = self._requested(delivered(make_order()), 1)
        match machine.resolve_return(order, 1, True, CouponRefundPolicy.PROPORTIONAL):
            case Ok(resolution):
                pass
            case Error(e):
                raise AssertionError(e)

        match machine.resolve_return(resolution.order, 1, True, CouponRefundPolicy.PROPORTIONAL):
            case Error(e):
                assert e.kind is ErrorKind.ALREADY_PROCESSED
            case Ok(_):
                raise AssertionError("refunded twice")

    def test_reject(self):
        order = self._requested(delivered(make_order()), 2)
        match machine.resolve_return(order, 2, False, CouponRefundPolicy.PROPORTIONAL, "Worn"):
            case Ok(resolution):
                assert not resolution.approved
                assert resolution.refund is None
                assert resolution.item.return_status is ReturnStatus.REJECTED
                assert resolution.item.rejection_reason == "Worn"
                assert resolution.item.status is ItemStatus.DELIVERED
            case Error(e):
                raise AssertionError(e)

    def test_unknown_item(self):
        match machine.request_return(make_order(), 99, ReturnReason.OTHER):
            case Error(e):
                assert e.kind is ErrorKind.NOT_FOUND
            case Ok(_):
                raise AssertionError("found a missing item")

    @staticmethod
    def _requested(order: Order, item_id: int) -> Order:
        match machine.request_return(order, item_id, ReturnReason.DEFECTIVE):
            case Ok(requested):
                return requested
            case Error(e):
                raise AssertionError(e)
