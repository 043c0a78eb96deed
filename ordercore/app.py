"""
Commerce — the composition root.

Wires the store, the config and the payment gateway into the ledgers and
services, and gives each use case its own unit of work:

    commerce = await Commerce.open(CommerceConfig.from_env())
    try:
        await commerce.add_to_cart("u1", "v-shirt-m", 2)
        receipt = await commerce.checkout("u1", "addr-1", "wallet", "FLAT100")
    finally:
        await commerce.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from kungfu import Ok, Result
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ordercore import sweeps
from ordercore._types import ItemStatus, Money, OrderStatus, ReturnReason
from ordercore.cart import CartBook, CartView
from ordercore.catalog import Catalog
from ordercore.checkout import (
    CheckoutOrchestrator,
    Ledgers,
    PaymentIntent,
    Quote,
    Receipt,
)
from ordercore.config import CommerceConfig
from ordercore.coupons import CouponBook, CouponView
from ordercore.db import UnitOfWork, atomic, create_database
from ordercore.errors import CommerceError
from ordercore.gateway import HmacGateway, PaymentGateway
from ordercore.inventory import InventoryLedger
from ordercore.offers import OfferBook, OfferSpec
from ordercore.orders import Order, OrderRepository, OrderService, ReturnResolution
from ordercore.wallet import WalletEntry, WalletLedger, WalletPage

logger = logging.getLogger("ordercore")


class Commerce:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: CommerceConfig,
        gateway: PaymentGateway,
        engine: AsyncEngine | None = None,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self._session_factory = session_factory
        self._engine = engine

        self.catalog = Catalog()
        self.inventory = InventoryLedger(self.catalog)
        self.wallet = WalletLedger(config.wallet_page_size)
        self.carts = CartBook(self.catalog, config)
        self.coupons = CouponBook()
        self.offers = OfferBook()
        repo = OrderRepository()
        self.orders = OrderService(repo, self.inventory, self.wallet, config)
        self.checkout_flow = CheckoutOrchestrator(
            session_factory,
            Ledgers(self.catalog, self.inventory, self.wallet, self.carts, self.coupons, repo),
            config,
            gateway,
        )

    @classmethod
    async def open(
        cls,
        config: CommerceConfig | None = None,
        gateway: PaymentGateway | None = None,
    ) -> Commerce:
        """Create the schema if needed and wire everything to it."""
        config = config or CommerceConfig()
        session_factory, engine = await create_database(config.database_url)
        logger.info("commerce opened on %s", engine.url.render_as_string(hide_password=True))
        return cls(
            session_factory,
            config,
            gateway or HmacGateway(config.payment_secret),
            engine,
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def _unit[T](
        self,
        body: Callable[[UnitOfWork], Awaitable[Result[T, CommerceError]]],
    ) -> Result[T, CommerceError]:
        return await atomic(self._session_factory, body)

    # ═══════════════════════════════════════════════════════════════════════════
    # Cart
    # ═══════════════════════════════════════════════════════════════════════════

    async def cart(self, user_id: str) -> Result[CartView, CommerceError]:
        async def body(uow: UnitOfWork) -> Result[CartView, CommerceError]:
            return Ok(await self.carts.view(uow, user_id))

        return await self._unit(body)

    async def add_to_cart(
        self, user_id: str, variant_id: str, quantity: int = 1
    ) -> Result[CartView, CommerceError]:
        return await self._unit(lambda uow: self.carts.add(uow, user_id, variant_id, quantity))

    async def update_cart(
        self, user_id: str, variant_id: str, quantity: int
    ) -> Result[CartView, CommerceError]:
        return await self._unit(lambda uow: self.carts.update(uow, user_id, variant_id, quantity))

    async def remove_from_cart(self, user_id: str, variant_id: str) -> Result[CartView, CommerceError]:
        return await self._unit(lambda uow: self.carts.remove(uow, user_id, variant_id))

    # ═══════════════════════════════════════════════════════════════════════════
    # Checkout
    # ═══════════════════════════════════════════════════════════════════════════

    async def quote(
        self,
        user_id: str,
        address_id: str,
        payment_method: str,
        coupon_code: str | None = None,
    ) -> Result[Quote, CommerceError]:
        return await self.checkout_flow.quote(user_id, address_id, payment_method, coupon_code)

    async def checkout(
        self,
        user_id: str,
        address_id: str,
        payment_method: str,
        coupon_code: str | None = None,
    ) -> Result[Receipt, CommerceError]:
        return await self.checkout_flow.commit(user_id, address_id, payment_method, coupon_code)

    async def create_payment_intent(
        self,
        user_id: str,
        address_id: str,
        coupon_code: str | None = None,
    ) -> Result[PaymentIntent, CommerceError]:
        return await self.checkout_flow.create_payment_intent(user_id, address_id, coupon_code)

    async def verify_payment(
        self,
        intent_id: str,
        gateway_ref: str,
        payment_ref: str,
        signature: str,
    ) -> Result[Receipt, CommerceError]:
        return await self.checkout_flow.verify_payment(
            intent_id, gateway_ref, payment_ref, signature
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Orders
    # ═══════════════════════════════════════════════════════════════════════════

    async def order(self, order_id: str, user_id: str | None = None) -> Result[Order, CommerceError]:
        return await self._unit(lambda uow: self.orders.get(uow, order_id, user_id))

    async def orders_for(self, user_id: str) -> Result[list[Order], CommerceError]:
        async def body(uow: UnitOfWork) -> Result[list[Order], CommerceError]:
            return Ok(await self.orders.for_user(uow, user_id))

        return await self._unit(body)

    async def cancel_order(
        self,
        order_id: str,
        user_id: str | None = None,
        reason: str | None = None,
    ) -> Result[Order, CommerceError]:
        return await self._unit(lambda uow: self.orders.cancel(uow, order_id, user_id, reason))

    async def fail_payment(self, order_id: str) -> Result[Order, CommerceError]:
        return await self._unit(lambda uow: self.orders.fail_payment(uow, order_id))

    async def request_return(
        self,
        order_id: str,
        item_id: int,
        reason: ReturnReason,
        details: str | None = None,
        user_id: str | None = None,
    ) -> Result[Order, CommerceError]:
        return await self._unit(
            lambda uow: self.orders.request_return(uow, order_id, item_id, reason, details, user_id)
        )

    async def resolve_return(
        self,
        order_id: str,
        item_id: int,
        approve: bool,
        rejection_reason: str | None = None,
    ) -> Result[ReturnResolution, CommerceError]:
        return await self._unit(
            lambda uow: self.orders.resolve_return(uow, order_id, item_id, approve, rejection_reason)
        )

    async def update_order_status(
        self, order_id: str, status: OrderStatus
    ) -> Result[Order, CommerceError]:
        return await self._unit(lambda uow: self.orders.update_status(uow, order_id, status))

    async def update_item_status(
        self, order_id: str, item_id: int, status: ItemStatus
    ) -> Result[Order, CommerceError]:
        return await self._unit(lambda uow: self.orders.advance_item(uow, order_id, item_id, status))

    # ═══════════════════════════════════════════════════════════════════════════
    # Wallet
    # ═══════════════════════════════════════════════════════════════════════════

    async def wallet_balance(self, user_id: str) -> Result[Money, CommerceError]:
        async def body(uow: UnitOfWork) -> Result[Money, CommerceError]:
            return Ok(await self.wallet.balance(uow, user_id))

        return await self._unit(body)

    async def wallet_details(self, user_id: str, page: int = 1) -> Result[WalletPage, CommerceError]:
        async def body(uow: UnitOfWork) -> Result[WalletPage, CommerceError]:
            return Ok(await self.wallet.details(uow, user_id, page))

        return await self._unit(body)

    async def credit_wallet(
        self,
        user_id: str,
        amount: Money,
        description: str,
        reference: str | None = None,
    ) -> Result[WalletEntry, CommerceError]:
        return await self._unit(
            lambda uow: self.wallet.credit(uow, user_id, amount, description, reference)
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Coupons & offers
    # ═══════════════════════════════════════════════════════════════════════════

    async def available_coupons(self, user_id: str) -> Result[list[CouponView], CommerceError]:
        async def body(uow: UnitOfWork) -> Result[list[CouponView], CommerceError]:
            return Ok(await self.coupons.available_for(uow, user_id))

        return await self._unit(body)

    async def create_offer(self, spec: OfferSpec) -> Result[int, CommerceError]:
        return await self._unit(lambda uow: self.offers.create(uow, spec))

    async def update_offer(self, spec: OfferSpec) -> Result[int, CommerceError]:
        return await self._unit(lambda uow: self.offers.update(uow, spec))

    async def toggle_offer(self, offer_id: str) -> Result[int, CommerceError]:
        return await self._unit(lambda uow: self.offers.toggle(uow, offer_id))

    # ═══════════════════════════════════════════════════════════════════════════
    # Housekeeping
    # ═══════════════════════════════════════════════════════════════════════════

    async def expire_coupons(self, now: datetime | None = None) -> Result[int, CommerceError]:
        return await sweeps.expire_coupons(self._session_factory, self.coupons, now)

    async def expire_orphaned_intents(self, now: datetime | None = None) -> Result[int, CommerceError]:
        return await sweeps.expire_orphaned_intents(
            self._session_factory, self.config.intent_ttl, now
        )

    async def run_housekeeping(self) -> None:
        """Daily coupon expiry and hourly intent expiry, until cancelled."""
        async with asyncio.TaskGroup() as tg:
            tg.create_task(sweeps.run_every(sweeps.DAY, self.expire_coupons, name="coupon expiry"))
            tg.create_task(sweeps.run_every(
                self.config.intent_ttl, self.expire_orphaned_intents, name="intent expiry"
            ))


__all__ = ("Commerce",)
