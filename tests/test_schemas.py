"""Wire shapes keep the field names clients already read."""

from kungfu import Error

from ordercore._types import OrderStatus
from ordercore.errors import Errors
from ordercore.schemas import CheckoutOut, OrderOut, PaymentIntentOut, WalletOut

from tests.conftest import JEANS, SHIRT, SHOPPER, SHOPPER_ADDRESS, ok


async def placed_order(commerce):
    ok(await commerce.add_to_cart(SHOPPER, SHIRT, 1))
    ok(await commerce.add_to_cart(SHOPPER, JEANS, 1))
    result = await commerce.checkout(SHOPPER, SHOPPER_ADDRESS, "wallet", "FLAT100")
    return result, ok(await commerce.order(ok(result).order_id))


class TestOrderOut:
    async def test_camel_case_fields(self, commerce):
        _, order = await placed_order(commerce)

        data = OrderOut.from_domain(order).model_dump(mode="json", by_alias=True)

        assert data["orderId"] == order.id
        assert data["orderStatus"] == "pending"
        assert data["totalAmount"] == 1200
        assert data["totalDiscount"] == 300
        assert data["couponCode"] == "FLAT100"
        assert data["shipping"]["deliveryCharge"] == 0
        assert data["shipping"]["address"]["postalCode"]
        assert data["payment"]["transactionId"]

        shirt, jeans = data["items"]
        assert shirt["sizeVariant"] == SHIRT
        assert shirt["savedAmount"] == 200
        assert shirt["discountPrice"] == 800
        assert shirt["returnStatus"] is None
        # Jeans sell at list price.
        assert jeans["discountPrice"] == jeans["price"] == 500

    async def test_shipped_keeps_its_historical_spelling(self, commerce):
        result, _ = await placed_order(commerce)
        order = ok(await commerce.update_order_status(ok(result).order_id, OrderStatus.SHIPPED))

        data = OrderOut.from_domain(order).model_dump(mode="json", by_alias=True)

        assert data["orderStatus"] == "Shiped"
        assert {i["status"] for i in data["items"]} == {"Shipped"}


class TestCheckoutOut:
    async def test_success(self, commerce):
        result, order = await placed_order(commerce)

        data = CheckoutOut.from_domain(result).model_dump(by_alias=True, exclude_none=True)

        assert data["success"] is True
        assert data["orderId"] == order.id
        assert data["paymentMethod"] == "wallet"
        assert "error" not in data

    def test_failure_carries_kind_and_message(self):
        data = CheckoutOut.from_domain(Error(Errors.empty_cart())).model_dump(by_alias=True)

        assert data["success"] is False
        assert data["error"] == "EMPTY_CART"
        assert data["message"] == "Cart is empty"
        assert data["orderId"] is None


class TestOtherShapes:
    async def test_wallet_page(self, commerce):
        await placed_order(commerce)

        data = WalletOut.from_domain(ok(await commerce.wallet_details(SHOPPER))).model_dump(
            mode="json", by_alias=True
        )

        assert data["wallet"] == {"balance": 800}
        assert data["pagination"] == {"currentPage": 1, "totalPages": 1, "totalTransactions": 1}
        assert data["transactions"][0]["type"] == "debit"

    async def test_payment_intent(self, commerce):
        ok(await commerce.add_to_cart(SHOPPER, JEANS, 1))
        intent = ok(await commerce.create_payment_intent(SHOPPER, SHOPPER_ADDRESS))

        data = PaymentIntentOut.from_domain(intent).model_dump(mode="json", by_alias=True)

        assert data["gatewayOrderId"] == intent.gateway_ref
        assert data["amount"] == 550
        assert data["status"] == "created"
