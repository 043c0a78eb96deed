"""
Order service — applies state machine plans inside a unit of work.

Every method follows the same shape:

    1. load the order
    2. ask the state machine for the next state (pure)
    3. win the conditional UPDATE guarding the transition
    4. run side effects (stock, wallet) in the same unit
    5. persist the next state

Step 3 happens before step 4, so a retried or concurrent request that
loses the guard never reaches the wallet.
"""

from __future__ import annotations

import logging
from datetime import datetime

from kungfu import Error, Ok, Result

from ordercore._types import ItemStatus, OrderStatus, ReturnReason
from ordercore.config import CommerceConfig
from ordercore.db import UnitOfWork
from ordercore.errors import CommerceError, Errors
from ordercore.inventory import InventoryLedger
from ordercore.orders import _machine as M
from ordercore.orders._domain import Order
from ordercore.orders._repo import OrderRepository
from ordercore.wallet import WalletLedger

logger = logging.getLogger("ordercore.orders")


class OrderService:
    def __init__(
        self,
        repo: OrderRepository,
        inventory: InventoryLedger,
        wallet: WalletLedger,
        config: CommerceConfig,
    ) -> None:
        self._repo = repo
        self._inventory = inventory
        self._wallet = wallet
        self._config = config

    async def get(
        self,
        uow: UnitOfWork,
        order_id: str,
        user_id: str | None = None,
    ) -> Result[Order, CommerceError]:
        order = await self._repo.load(uow, order_id, user_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        return Ok(order)

    async def for_user(self, uow: UnitOfWork, user_id: str) -> list[Order]:
        return await self._repo.for_user(uow, user_id)

    # ═══════════════════════════════════════════════════════════════════════════
    # Cancel
    # ═══════════════════════════════════════════════════════════════════════════

    async def cancel(
        self,
        uow: UnitOfWork,
        order_id: str,
        user_id: str | None = None,
        reason: str | None = None,
    ) -> Result[Order, CommerceError]:
        match await self.get(uow, order_id, user_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        match M.cancel(order, reason):
            case Ok(plan):
                pass
            case Error(e):
                return Error(e)

        if not await self._repo.claim_status(uow, order.id, M.CANCELLABLE, OrderStatus.CANCELLED):
            return Error(Errors.invalid_transition(f"Order {order.id} changed while cancelling"))

        return await self._apply_cancellation(
            uow,
            order,
            plan,
            f"Refund for cancelled order #{order.id}",
            f"cancel:{order.id}",
        )

    async def fail_payment(self, uow: UnitOfWork, order_id: str) -> Result[Order, CommerceError]:
        """Online payment failed or was abandoned: cancel and restock."""
        match await self.get(uow, order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        match M.fail_payment(order):
            case Ok(plan):
                pass
            case Error(e):
                return Error(e)

        if not await self._repo.claim_status(uow, order.id, M.CANCELLABLE, OrderStatus.CANCELLED):
            return Error(Errors.invalid_transition(f"Order {order.id} changed while failing payment"))

        logger.warning("order %s: payment failed, cancelled", order.id)
        return await self._apply_cancellation(uow, order, plan, "", "")

    async def _apply_cancellation(
        self,
        uow: UnitOfWork,
        order: Order,
        plan: M.Cancellation,
        description: str,
        reference: str,
    ) -> Result[Order, CommerceError]:
        released = [i.id for i in plan.released]
        moved = await self._repo.claim_items(uow, released, M.CANCELLABLE_ITEMS, ItemStatus.CANCELLED)
        if moved != len(released):
            return Error(Errors.invalid_transition(f"Order {order.id} items changed while cancelling"))

        for item in plan.released:
            await self._inventory.release(uow, item.variant_id, item.quantity)

        if plan.refund > 0:
            credited = await self._wallet.credit(
                uow, plan.order.user_id, plan.refund, description, reference=reference
            )
            match credited:
                case Error(e):
                    return Error(e)
                case _:
                    pass

        await self._repo.save(uow, plan.order, order)
        logger.info(
            "order %s cancelled, %d lines restocked, %d refunded",
            plan.order.id, len(plan.released), plan.refund,
        )
        return Ok(plan.order)

    # ═══════════════════════════════════════════════════════════════════════════
    # Returns
    # ═══════════════════════════════════════════════════════════════════════════

    async def request_return(
        self,
        uow: UnitOfWork,
        order_id: str,
        item_id: int,
        reason: ReturnReason,
        details: str | None = None,
        user_id: str | None = None,
    ) -> Result[Order, CommerceError]:
        match await self.get(uow, order_id, user_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        match M.request_return(order, item_id, reason, details):
            case Ok(requested):
                pass
            case Error(e):
                return Error(e)

        if not await self._repo.claim_return_request(uow, item_id):
            return Error(Errors.return_already_requested())

        await self._repo.save(uow, requested, order)
        logger.info("order %s item %d: return requested (%s)", order.id, item_id, reason.value)
        return Ok(requested)

    async def resolve_return(
        self,
        uow: UnitOfWork,
        order_id: str,
        item_id: int,
        approve: bool,
        rejection_reason: str | None = None,
    ) -> Result[M.ReturnResolution, CommerceError]:
        """Approve (restock + wallet refund) or reject a pending return."""
        match await self.get(uow, order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        match M.resolve_return(
            order, item_id, approve, self._config.coupon_refund_policy, rejection_reason
        ):
            case Ok(resolution):
                pass
            case Error(e):
                return Error(e)

        if not await self._repo.claim_return_resolution(uow, item_id, approve):
            return Error(Errors.already_processed(f"Return for item {item_id} already resolved"))

        if resolution.approved and resolution.refund is not None:
            item = resolution.item
            await self._inventory.release(uow, item.variant_id, item.quantity)
            if resolution.refund.return_amount > 0:
                credited = await self._wallet.credit(
                    uow,
                    order.user_id,
                    resolution.refund.return_amount,
                    f"Refund for returned item from order #{order.id}",
                    reference=f"return:{order.id}:{item.id}",
                )
                match credited:
                    case Error(e):
                        return Error(e)
                    case _:
                        pass
            logger.info(
                "order %s item %d: return approved, refunded %d",
                order.id, item.id, resolution.refund.return_amount,
            )
        else:
            logger.info("order %s item %d: return rejected", order.id, item_id)

        await self._repo.save(uow, resolution.order, order)
        return Ok(resolution)

    # ═══════════════════════════════════════════════════════════════════════════
    # Fulfilment
    # ═══════════════════════════════════════════════════════════════════════════

    async def update_status(
        self,
        uow: UnitOfWork,
        order_id: str,
        status: OrderStatus,
    ) -> Result[Order, CommerceError]:
        if status == OrderStatus.CANCELLED:
            return await self.cancel(uow, order_id)

        match await self.get(uow, order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        match M.advance(order, status, datetime.now()):
            case Ok(advanced):
                pass
            case Error(e):
                return Error(e)

        if not await self._repo.claim_status(uow, order.id, (order.status,), status):
            return Error(Errors.invalid_transition(f"Order {order.id} changed concurrently"))

        skipped = await self._repo.save(uow, advanced, order)
        if skipped:
            logger.warning("order %s: %d items moved concurrently, left as they are", order.id, skipped)
        logger.info("order %s: %s → %s", order.id, order.status.value, status.value)
        return Ok(advanced)

    async def advance_item(
        self,
        uow: UnitOfWork,
        order_id: str,
        item_id: int,
        status: ItemStatus,
    ) -> Result[Order, CommerceError]:
        match await self.get(uow, order_id):
            case Ok(order):
                pass
            case Error(e):
                return Error(e)

        match M.advance_item(order, item_id, status):
            case Ok(advanced):
                pass
            case Error(e):
                return Error(e)

        current = next(i for i in order.items if i.id == item_id)
        if await self._repo.claim_items(uow, [item_id], (current.status,), status) != 1:
            return Error(Errors.invalid_transition(f"Item {item_id} changed concurrently"))

        logger.info("order %s item %d: %s → %s", order.id, item_id, current.status.value, status.value)
        return Ok(advanced)


__all__ = ("OrderService",)
