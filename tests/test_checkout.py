"""Checkout: cart to order in one unit of work."""

from sqlalchemy import func, select, update

from kungfu import Error, Ok

from ordercore._types import ItemStatus, OrderStatus, PaymentMethod, PaymentStatus
from ordercore.db import OrderRow, ProductRow, VariantRow, WalletTransactionRow
from ordercore.checkout import CheckoutOrchestrator, Ledgers
from ordercore.errors import ErrorKind, Errors
from ordercore.inventory import InventoryLedger
from ordercore.orders import OrderRepository

from tests.conftest import (
    BROKE_ADDRESS,
    BAG,
    BROKE_SHOPPER,
    JEANS,
    SHIRT,
    SHOPPER,
    SHOPPER_ADDRESS,
    err,
    ok,
)


async def stock(commerce, units, variant_id):
    async def body(uow):
        return Ok(await commerce.inventory.available(uow, variant_id))

    return ok(await units(body))


async def count_orders(units):
    async def body(uow):
        return Ok(await uow.scalar(select(func.count()).select_from(OrderRow)))

    return ok(await units(body))


async def fill(commerce, user_id=SHOPPER, *lines):
    for variant_id, quantity in lines or ((SHIRT, 1), (JEANS, 1)):
        ok(await commerce.add_to_cart(user_id, variant_id, quantity))


class TestWalletCheckout:
    async def test_flat_coupon_scenario(self, commerce, units):
        await fill(commerce)

        receipt = ok(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "wallet", "FLAT100"))

        assert receipt.subtotal == 1300
        assert receipt.shipping == 0
        assert receipt.discount_amount == 100
        assert receipt.total_amount == 1200
        assert receipt.total_discount == 300
        assert receipt.payment_method is PaymentMethod.WALLET
        assert receipt.payment_status is PaymentStatus.COMPLETED
        assert receipt.coupon_code == "FLAT100"
        assert receipt.coupon_rejected is None

        assert await stock(commerce, units, SHIRT) == 4
        assert await stock(commerce, units, JEANS) == 1
        assert ok(await commerce.cart(SHOPPER)).is_empty
        assert ok(await commerce.wallet_balance(SHOPPER)) == 800

        order = ok(await commerce.order(receipt.order_id, SHOPPER))
        assert order.status is OrderStatus.PENDING
        assert [i.coupon_share for i in order.items] == [62, 38]
        assert [i.saved_amount for i in order.items] == [200, 0]
        assert [i.final_price for i in order.items] == [800, 500]
        assert order.shipping.address.city == "Bengaluru"
        assert order.shipping.method == "Standard"

        page = ok(await commerce.wallet_details(SHOPPER))
        assert page.entries[0].description == f"Payment for order #{receipt.order_id}"
        assert page.entries[0].amount == 1200

    async def test_insufficient_balance_rolls_everything_back(self, commerce, units):
        await fill(commerce, BROKE_SHOPPER, (SHIRT, 1))  # 800, ships free

        e = err(await commerce.checkout(BROKE_SHOPPER, BROKE_ADDRESS, "wallet"))

        assert e.kind is ErrorKind.INSUFFICIENT_BALANCE
        assert ok(await commerce.wallet_balance(BROKE_SHOPPER)) == 500
        assert await stock(commerce, units, SHIRT) == 5
        assert not ok(await commerce.cart(BROKE_SHOPPER)).is_empty
        assert await count_orders(units) == 0

        async def entries(uow):
            return Ok(await uow.scalar(
                select(func.count()).select_from(WalletTransactionRow).where(
                    WalletTransactionRow.user_id == BROKE_SHOPPER
                )
            ))

        assert ok(await units(entries)) == 0

    async def test_coupon_single_use(self, commerce):
        await fill(commerce)
        ok(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "wallet", "FLAT100"))

        await fill(commerce, SHOPPER, (JEANS, 1))
        receipt = ok(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "cod", "FLAT100"))
        assert receipt.discount_amount == 0
        assert receipt.coupon_code is None
        assert receipt.coupon_rejected == "Coupon FLAT100 already used"


class TestCouponSoftFail:
    async def test_order_goes_through_without_the_coupon(self, commerce):
        await fill(commerce, SHOPPER, (JEANS, 1))

        receipt = ok(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "cod", "FLAT100"))

        assert receipt.discount_amount == 0
        assert receipt.total_amount == 550
        assert "Minimum order amount" in receipt.coupon_rejected

    async def test_lapsed_coupon(self, commerce):
        await fill(commerce, SHOPPER, (JEANS, 1))
        receipt = ok(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "cod", "LAPSED"))
        assert receipt.coupon_rejected == "Coupon LAPSED is not valid"


class TestRejections:
    async def test_empty_cart(self, commerce):
        e = err(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "wallet"))
        assert e.kind is ErrorKind.EMPTY_CART
        assert e.message == "Cart is empty"

    async def test_foreign_address(self, commerce):
        await fill(commerce)
        e = err(await commerce.checkout(SHOPPER, BROKE_ADDRESS, "wallet"))
        assert e.kind is ErrorKind.ADDRESS_NOT_FOUND
        assert e.message == "Delivery address not found"

    async def test_unknown_payment_method(self, commerce):
        await fill(commerce)
        e = err(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "cheque"))
        assert e.kind is ErrorKind.PAYMENT_METHOD_NOT_ALLOWED

    async def test_cod_over_limit(self, commerce, units):
        await fill(commerce)  # 1300
        e = err(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "cod"))
        assert e.kind is ErrorKind.PAYMENT_METHOD_NOT_ALLOWED
        assert await stock(commerce, units, SHIRT) == 5
        assert await count_orders(units) == 0

    async def test_cod_at_the_limit(self, open_commerce, config):
        commerce = await open_commerce(config.with_shipping(fee=0, free_above=0))
        await fill(commerce, SHOPPER, (JEANS, 2))  # exactly 1000
        receipt = ok(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "cod"))
        assert receipt.payment_status is PaymentStatus.PENDING

    async def test_product_blocked_after_carting(self, commerce, units):
        await fill(commerce)

        async def block(uow):
            await uow.write(update(ProductRow).where(ProductRow.id == "p-jeans").values(is_blocked=True))
            return Ok(None)

        ok(await units(block))
        e = err(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "wallet"))
        assert e.kind is ErrorKind.ITEM_UNAVAILABLE
        assert e.message == "Slim Jeans is no longer available"
        assert await stock(commerce, units, SHIRT) == 5
        assert ok(await commerce.wallet_balance(SHOPPER)) == 2000

    async def test_stock_sold_elsewhere_after_carting(self, commerce, units):
        await fill(commerce, SHOPPER, (JEANS, 2))

        async def sell(uow):
            return await commerce.inventory.reserve(uow, JEANS, 1)

        ok(await units(sell))
        e = err(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "wallet"))
        assert e.kind is ErrorKind.ITEM_UNAVAILABLE
        assert e.message == "Insufficient stock for Slim Jeans"


class TestQuote:
    async def test_quote_writes_nothing(self, commerce, units):
        await fill(commerce)
        quote = ok(await commerce.quote(SHOPPER, SHOPPER_ADDRESS, "wallet", "FLAT100"))

        assert quote.total == 1200
        assert quote.total_discount == 300
        assert [line.coupon_share for line in quote.lines] == [62, 38]
        assert await stock(commerce, units, SHIRT) == 5
        assert await count_orders(units) == 0
        assert ok(await commerce.wallet_balance(SHOPPER)) == 2000

    async def test_reprices_from_live_catalog(self, commerce, units):
        await fill(commerce, SHOPPER, (SHIRT, 1))

        async def reprice(uow):
            await uow.write(update(VariantRow).where(VariantRow.id == SHIRT).values(discount_price=450))
            return Ok(None)

        ok(await units(reprice))
        quote = ok(await commerce.quote(SHOPPER, SHOPPER_ADDRESS, "cod"))
        assert quote.subtotal == 450
        assert quote.shipping == 50


class TestOrderLifecycleAfterCheckout:
    async def test_cod_delivery_completes_payment(self, commerce):
        await fill(commerce, SHOPPER, (JEANS, 1))
        receipt = ok(await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "cod"))

        order = ok(await commerce.update_order_status(receipt.order_id, OrderStatus.DELIVERED))

        assert order.payment.status is PaymentStatus.COMPLETED
        assert all(i.status is ItemStatus.DELIVERED for i in order.items)
        stored = ok(await commerce.order(receipt.order_id))
        assert stored.payment.status is PaymentStatus.COMPLETED
        assert stored.payment.paid_at is not None


class FailingSecondReserve(InventoryLedger):
    """Real reservations, except the second one of a checkout."""

    def __init__(self, catalog) -> None:
        super().__init__(catalog)
        self.calls = 0

    async def reserve(self, uow, variant_id, quantity):
        self.calls += 1
        if self.calls == 2:
            return Error(Errors.out_of_stock(variant_id))
        return await super().reserve(uow, variant_id, quantity)


class TestAtomicity:
    async def test_reserve_failure_after_debit_and_insert_rolls_back(self, commerce, units):
        ok(await commerce.credit_wallet(SHOPPER, 2000, "Top up", reference="topup-1"))
        await fill(commerce, SHOPPER, (SHIRT, 1), (JEANS, 1), (BAG, 1))  # 3800
        inventory = FailingSecondReserve(commerce.catalog)
        flow = CheckoutOrchestrator(
            commerce.session_factory,
            Ledgers(
                commerce.catalog,
                inventory,
                commerce.wallet,
                commerce.carts,
                commerce.coupons,
                OrderRepository(),
            ),
            commerce.config,
            commerce.gateway,
        )

        e = err(await flow.commit(SHOPPER, SHOPPER_ADDRESS, "wallet"))

        assert e.kind is ErrorKind.OUT_OF_STOCK
        assert inventory.calls == 2
        assert [await stock(commerce, units, v) for v in (SHIRT, JEANS, BAG)] == [5, 2, 10]
        assert ok(await commerce.wallet_balance(SHOPPER)) == 4000
        assert ok(await commerce.wallet_details(SHOPPER)).total_entries == 1
        assert len(ok(await commerce.cart(SHOPPER)).lines) == 3
        assert await count_orders(units) == 0
