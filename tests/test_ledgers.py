"""Inventory and wallet ledgers against a real store."""

import pytest
from kungfu import Error, Ok

from ordercore._types import TransactionType
from ordercore.errors import ErrorKind

from tests.conftest import BROKE_SHOPPER, JEANS, SCARF, SHIRT, SHOPPER, ok


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory
# ═══════════════════════════════════════════════════════════════════════════════


class TestInventory:
    async def test_reserve_decrements(self, commerce, units):
        async def body(uow):
            return await commerce.inventory.reserve(uow, SHIRT, 2)

        assert isinstance(await units(body), Ok)
        assert await self._stock(commerce, units, SHIRT) == 3

    async def test_reserve_more_than_stock(self, commerce, units):
        async def body(uow):
            return await commerce.inventory.reserve(uow, JEANS, 3)

        match await units(body):
            case Error(e):
                assert e.kind is ErrorKind.OUT_OF_STOCK
                assert "Slim Jeans" in e.message
            case Ok(_):
                raise AssertionError("oversold")
        assert await self._stock(commerce, units, JEANS) == 2

    async def test_blocked_product_is_not_reservable(self, commerce, units):
        async def body(uow):
            return await commerce.inventory.reserve(uow, SCARF, 1)

        match await units(body):
            case Error(e):
                assert e.kind is ErrorKind.OUT_OF_STOCK
                assert "not available for sale" in e.message
            case Ok(_):
                raise AssertionError("sold a blocked product")
        assert await self._stock(commerce, units, SCARF) == 10

    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_non_positive_quantity(self, commerce, units, quantity):
        async def body(uow):
            return await commerce.inventory.reserve(uow, SHIRT, quantity)

        match await units(body):
            case Error(e):
                assert e.kind is ErrorKind.INVALID_AMOUNT
            case Ok(_):
                raise AssertionError("reserved nothing")

    async def test_release_restores(self, commerce, units):
        async def body(uow):
            await commerce.inventory.reserve(uow, SHIRT, 4)
            await commerce.inventory.release(uow, SHIRT, 4)
            return Ok(None)

        await units(body)
        assert await self._stock(commerce, units, SHIRT) == 5

    async def test_repeated_reserves_never_oversell(self, commerce, units):
        async def grab(uow):
            return await commerce.inventory.reserve(uow, JEANS, 1)

        results = [await units(grab) for _ in range(5)]
        assert sum(isinstance(r, Ok) for r in results) == 2
        assert await self._stock(commerce, units, JEANS) == 0

    @staticmethod
    async def _stock(commerce, units, variant_id):
        async def body(uow):
            return Ok(await commerce.inventory.available(uow, variant_id))

        match await units(body):
            case Ok(stock):
                return stock
            case Error(e):
                raise AssertionError(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Wallet
# ═══════════════════════════════════════════════════════════════════════════════


class TestWallet:
    async def test_credit_appends_and_adds(self, commerce):
        match await commerce.credit_wallet(SHOPPER, 250, "Referral bonus"):
            case Ok(entry):
                assert entry.type is TransactionType.CREDIT
                assert entry.amount == 250
            case Error(e):
                raise AssertionError(e)
        assert ok(await commerce.wallet_balance(SHOPPER)) == 2250

    async def test_insufficient_balance_leaves_no_trace(self, commerce, units):
        async def body(uow):
            return await commerce.wallet.debit(uow, BROKE_SHOPPER, 700, "Payment for order #X")

        match await units(body):
            case Error(e):
                assert e.kind is ErrorKind.INSUFFICIENT_BALANCE
            case Ok(_):
                raise AssertionError("overdrawn")

        match await commerce.wallet_details(BROKE_SHOPPER):
            case Ok(page):
                assert page.balance == 500
                assert page.entries == ()
            case Error(e):
                raise AssertionError(e)

    async def test_same_reference_credits_once(self, commerce):
        first = await commerce.credit_wallet(SHOPPER, 100, "Refund", reference="cancel:ORD-1")
        second = await commerce.credit_wallet(SHOPPER, 100, "Refund", reference="cancel:ORD-1")

        assert isinstance(first, Ok)
        match second:
            case Error(e):
                assert e.kind is ErrorKind.ALREADY_PROCESSED
            case Ok(_):
                raise AssertionError("credited twice")
        assert ok(await commerce.wallet_balance(SHOPPER)) == 2100

    @pytest.mark.parametrize("amount", [0, -50])
    async def test_rejects_non_positive_amounts(self, commerce, amount):
        match await commerce.credit_wallet(SHOPPER, amount, "Nothing"):
            case Error(e):
                assert e.kind is ErrorKind.INVALID_AMOUNT
            case Ok(_):
                raise AssertionError("credited a non-positive amount")

    async def test_unknown_user_has_empty_wallet(self, commerce):
        assert ok(await commerce.wallet_balance("nobody")) == 0

    async def test_history_paginates_newest_first(self, commerce):
        for n in range(1, 8):
            await commerce.credit_wallet("u9", n, f"Credit {n}")

        match await commerce.wallet_details("u9", page=1):
            case Ok(page):
                assert page.balance == 28
                assert [e.amount for e in page.entries] == [7, 6, 5, 4, 3]
                assert page.total_pages == 2
                assert page.total_entries == 7
            case Error(e):
                raise AssertionError(e)

        match await commerce.wallet_details("u9", page=2):
            case Ok(page):
                assert [e.amount for e in page.entries] == [2, 1]
            case Error(e):
                raise AssertionError(e)
