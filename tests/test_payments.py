"""Online payments: intent, verification, refunds on a failed commit."""

from datetime import datetime, timedelta

from sqlalchemy import func, select, update

from kungfu import Ok

from ordercore._types import IntentStatus, ItemStatus, OrderStatus, PaymentMethod, PaymentStatus
from ordercore.db import OrderRow, PaymentIntentRow, VariantRow
from ordercore.errors import ErrorKind
from ordercore.gateway import GatewayRefund

from tests.conftest import JEANS, SHIRT, SHOPPER, SHOPPER_ADDRESS, err, ok


async def intent_row(units, intent_id):
    async def body(uow):
        return Ok(await uow.one(select(PaymentIntentRow).where(PaymentIntentRow.id == intent_id)))

    return ok(await units(body))


async def count_orders(units):
    async def body(uow):
        return Ok(await uow.scalar(select(func.count()).select_from(OrderRow)))

    return ok(await units(body))


async def open_intent(commerce, coupon="FLAT100"):
    ok(await commerce.add_to_cart(SHOPPER, SHIRT, 1))
    ok(await commerce.add_to_cart(SHOPPER, JEANS, 1))
    return ok(await commerce.create_payment_intent(SHOPPER, SHOPPER_ADDRESS, coupon))


class TestIntent:
    async def test_intent_holds_quoted_total(self, commerce, units):
        intent = await open_intent(commerce)

        assert intent.amount == 1200
        assert intent.currency == "INR"
        assert intent.status is IntentStatus.CREATED
        assert await count_orders(units) == 0
        row = await intent_row(units, intent.id)
        assert row.coupon_code == "FLAT100"
        assert row.order_id is None

    async def test_empty_cart_opens_no_intent(self, commerce):
        e = err(await commerce.create_payment_intent(SHOPPER, SHOPPER_ADDRESS))
        assert e.kind is ErrorKind.EMPTY_CART


class TestVerify:
    async def test_verified_payment_commits_order(self, commerce, gateway, units):
        intent = await open_intent(commerce)
        signature = gateway.sign(intent.gateway_ref, "pay_001")

        receipt = ok(await commerce.verify_payment(intent.id, intent.gateway_ref, "pay_001", signature))

        assert receipt.payment_method is PaymentMethod.ONLINE
        assert receipt.payment_status is PaymentStatus.COMPLETED
        assert receipt.total_amount == 1200

        order = ok(await commerce.order(receipt.order_id))
        assert order.status is OrderStatus.PROCESSING
        assert all(i.status is ItemStatus.PROCESSING for i in order.items)
        assert order.payment.transaction_id == "pay_001"

        row = await intent_row(units, intent.id)
        assert row.status == IntentStatus.COMPLETED.value
        assert row.order_id == receipt.order_id
        assert ok(await commerce.cart(SHOPPER)).is_empty

    async def test_bad_signature(self, commerce, units):
        intent = await open_intent(commerce)

        e = err(await commerce.verify_payment(intent.id, intent.gateway_ref, "pay_001", "forged"))

        assert e.kind is ErrorKind.SIGNATURE_MISMATCH
        assert await count_orders(units) == 0
        assert (await intent_row(units, intent.id)).status == IntentStatus.CREATED.value

    async def test_replayed_callback_commits_once(self, commerce, gateway, units):
        intent = await open_intent(commerce)
        signature = gateway.sign(intent.gateway_ref, "pay_001")
        ok(await commerce.verify_payment(intent.id, intent.gateway_ref, "pay_001", signature))

        e = err(await commerce.verify_payment(intent.id, intent.gateway_ref, "pay_001", signature))

        assert e.kind is ErrorKind.ALREADY_PROCESSED
        assert await count_orders(units) == 1
        assert gateway.refunds == []

    async def test_unknown_intent(self, commerce, gateway):
        signature = gateway.sign("order_x", "pay_001")
        e = err(await commerce.verify_payment("pay_missing", "order_x", "pay_001", signature))
        assert e.kind is ErrorKind.NOT_FOUND

    async def test_price_change_refunds_the_capture(self, commerce, gateway, units):
        intent = await open_intent(commerce)

        async def reprice(uow):
            await uow.write(update(VariantRow).where(VariantRow.id == SHIRT).values(discount_price=700))
            return Ok(None)

        ok(await units(reprice))
        signature = gateway.sign(intent.gateway_ref, "pay_001")

        e = err(await commerce.verify_payment(intent.id, intent.gateway_ref, "pay_001", signature))

        assert e.kind is ErrorKind.INVALID_AMOUNT
        assert gateway.refunds == [GatewayRefund("pay_001", 1200)]
        assert await count_orders(units) == 0
        row = await intent_row(units, intent.id)
        assert row.status == IntentStatus.FAILED.value
        assert row.payment_ref == "pay_001"
        assert not ok(await commerce.cart(SHOPPER)).is_empty

    async def test_cancel_refunds_captured_payment_to_wallet(self, commerce, gateway):
        intent = await open_intent(commerce)
        signature = gateway.sign(intent.gateway_ref, "pay_001")
        receipt = ok(await commerce.verify_payment(intent.id, intent.gateway_ref, "pay_001", signature))

        ok(await commerce.cancel_order(receipt.order_id, SHOPPER))

        assert ok(await commerce.wallet_balance(SHOPPER)) == 2000 + 1200


class TestFailedPayment:
    async def test_unpaid_online_order_is_cancelled_and_restocked(self, commerce, units):
        ok(await commerce.add_to_cart(SHOPPER, JEANS, 2))
        receipt = ok(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "online"))
        assert receipt.payment_status is PaymentStatus.PENDING

        order = ok(await commerce.fail_payment(receipt.order_id))

        assert order.status is OrderStatus.CANCELLED
        assert order.payment.status is PaymentStatus.FAILED
        assert order.reason == "Payment failed"
        assert ok(await commerce.wallet_balance(SHOPPER)) == 2000

        async def body(uow):
            return Ok(await commerce.inventory.available(uow, JEANS))

        assert ok(await units(body)) == 2


class TestOrphanedIntents:
    async def test_sweep_expires_stale_intents(self, commerce, units):
        intent = await open_intent(commerce)
        later = datetime.now() + timedelta(hours=2)

        assert ok(await commerce.expire_orphaned_intents(later)) == 1
        assert ok(await commerce.expire_orphaned_intents(later)) == 0
        assert (await intent_row(units, intent.id)).status == IntentStatus.EXPIRED.value

    async def test_late_payment_is_refunded_once(self, commerce, gateway, units):
        intent = await open_intent(commerce)
        ok(await commerce.expire_orphaned_intents(datetime.now() + timedelta(hours=2)))
        signature = gateway.sign(intent.gateway_ref, "pay_late")

        e = err(await commerce.verify_payment(intent.id, intent.gateway_ref, "pay_late", signature))

        assert e.kind is ErrorKind.ALREADY_PROCESSED
        assert gateway.refunds == [GatewayRefund("pay_late", 1200)]
        assert await count_orders(units) == 0
        row = await intent_row(units, intent.id)
        assert row.status == IntentStatus.FAILED.value
        assert row.payment_ref == "pay_late"

        e = err(await commerce.verify_payment(intent.id, intent.gateway_ref, "pay_late", signature))
        assert e.kind is ErrorKind.ALREADY_PROCESSED
        assert gateway.refunds == [GatewayRefund("pay_late", 1200)]

    async def test_fresh_intents_survive(self, commerce):
        await open_intent(commerce)
        assert ok(await commerce.expire_orphaned_intents()) == 0
