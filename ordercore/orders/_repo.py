"""
Order repository — rows in, immutable orders out.

The ``claim_*`` methods are the atomic check-and-set guards: a single
conditional UPDATE whose rowcount says whether this caller won.
"""

from __future__ import annotations

from sqlalchemy import select, update

from ordercore._types import (
    ItemStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReturnReason,
    ReturnStatus,
)
from ordercore.catalog import AddressSnapshot
from ordercore.db import OrderItemRow, OrderRow, UnitOfWork
from ordercore.orders._domain import Order, OrderItem, Payment, Shipping


class OrderRepository:
    async def insert(self, uow: UnitOfWork, order: Order) -> Order:
        address = order.shipping.address
        uow.add(OrderRow(
            id=order.id,
            user_id=order.user_id,
            ship_full_name=address.full_name,
            ship_phone=address.phone,
            ship_street=address.street,
            ship_city=address.city,
            ship_state=address.state,
            ship_country=address.country,
            ship_postal_code=address.postal_code,
            shipping_method=order.shipping.method,
            delivery_charge=order.shipping.delivery_charge,
            payment_method=order.payment.method.value,
            payment_status=order.payment.status.value,
            transaction_id=order.payment.transaction_id,
            payment_amount=order.payment.amount,
            payment_date=order.payment.paid_at,
            subtotal=order.subtotal,
            coupon_code=order.coupon_code,
            discount_amount=order.discount_amount,
            total_discount=order.total_discount,
            total_amount=order.total_amount,
            order_status=order.status.value,
            reason=order.reason,
            created_at=order.created_at,
        ))
        for item in order.items:
            uow.add(OrderItemRow(
                order_id=order.id,
                position=item.position,
                product_id=item.product_id,
                product_name=item.product_name,
                variant_id=item.variant_id,
                size=item.size,
                color=item.color,
                quantity=item.quantity,
                price=item.price,
                discount_price=item.discount_price,
                final_price=item.final_price,
                saved_amount=item.saved_amount,
                coupon_share=item.coupon_share,
                status=item.status.value,
            ))
        await uow.flush()

        stored = await self.load(uow, order.id)
        if stored is None:
            raise RuntimeError(f"order {order.id} missing right after insert")
        return stored

    async def load(self, uow: UnitOfWork, order_id: str, user_id: str | None = None) -> Order | None:
        """Load by id; with ``user_id`` only the owner's order resolves."""
        stmt = select(OrderRow).where(OrderRow.id == order_id)
        if user_id is not None:
            stmt = stmt.where(OrderRow.user_id == user_id)
        row = await uow.one(stmt)
        if row is None:
            return None
        items = await uow.rows(
            select(OrderItemRow)
            .where(OrderItemRow.order_id == order_id)
            .order_by(OrderItemRow.position)
        )
        return _to_order(row, items)

    async def for_user(self, uow: UnitOfWork, user_id: str) -> list[Order]:
        """Newest first."""
        ids = await uow.fetch(
            select(OrderRow.id)
            .where(OrderRow.user_id == user_id)
            .order_by(OrderRow.created_at.desc())
        )
        orders = [await self.load(uow, order_id) for (order_id,) in ids]
        return [o for o in orders if o is not None]

    # ── guards ────────────────────────────────────────────────────────────────

    async def claim_status(
        self,
        uow: UnitOfWork,
        order_id: str,
        expected: frozenset[OrderStatus] | tuple[OrderStatus, ...],
        new: OrderStatus,
    ) -> bool:
        changed = await uow.write(
            update(OrderRow)
            .where(
                OrderRow.id == order_id,
                OrderRow.order_status.in_([s.value for s in expected]),
            )
            .values(order_status=new.value)
        )
        return changed == 1

    async def claim_items(
        self,
        uow: UnitOfWork,
        item_ids: list[int],
        expected: frozenset[ItemStatus] | tuple[ItemStatus, ...],
        new: ItemStatus,
    ) -> int:
        """Move the items that are still in ``expected``; returns how many moved."""
        if not item_ids:
            return 0
        return await uow.write(
            update(OrderItemRow)
            .where(
                OrderItemRow.id.in_(item_ids),
                OrderItemRow.status.in_([s.value for s in expected]),
            )
            .values(status=new.value)
        )

    async def claim_return_request(self, uow: UnitOfWork, item_id: int) -> bool:
        changed = await uow.write(
            update(OrderItemRow)
            .where(
                OrderItemRow.id == item_id,
                OrderItemRow.return_requested.is_(False),
                OrderItemRow.status == ItemStatus.DELIVERED.value,
            )
            .values(return_requested=True)
        )
        return changed == 1

    async def claim_return_resolution(self, uow: UnitOfWork, item_id: int, approve: bool) -> bool:
        """Flip the item out of Return Pending; approval also sets returnProcessed."""
        values: dict[str, object] = (
            {"return_processed": True, "return_status": ReturnStatus.APPROVED.value}
            if approve
            else {"return_status": ReturnStatus.REJECTED.value}
        )
        changed = await uow.write(
            update(OrderItemRow)
            .where(
                OrderItemRow.id == item_id,
                OrderItemRow.return_processed.is_(False),
                OrderItemRow.return_status == ReturnStatus.PENDING.value,
            )
            .values(**values)
        )
        return changed == 1

    # ── persistence of a computed next state ──────────────────────────────────

    async def save(self, uow: UnitOfWork, order: Order, before: Order) -> int:
        """
        Write the order row and every item that differs from ``before``.

        An item is written only while its row still holds the status
        ``before`` saw (or the one a claim already moved it to); items moved
        concurrently are left alone. Returns how many were skipped.
        """
        await uow.write(
            update(OrderRow)
            .where(OrderRow.id == order.id)
            .values(
                order_status=order.status.value,
                reason=order.reason,
                payment_status=order.payment.status.value,
                payment_date=order.payment.paid_at,
                transaction_id=order.payment.transaction_id,
            )
        )
        skipped = 0
        for item in order.items:
            seen = before.item(item.id)
            if seen == item:
                continue
            statuses = {item.status.value} if seen is None else {seen.status.value, item.status.value}
            written = await uow.write(
                update(OrderItemRow)
                .where(OrderItemRow.id == item.id, OrderItemRow.status.in_(statuses))
                .values(
                    status=item.status.value,
                    cancellation_reason=item.cancellation_reason,
                    return_requested=item.return_requested,
                    return_processed=item.return_processed,
                    return_reason=item.return_reason.value if item.return_reason else None,
                    return_details=item.return_details,
                    return_status=item.return_status.value if item.return_status else None,
                    rejection_reason=item.rejection_reason,
                )
            )
            if written == 0:
                skipped += 1
        return skipped


def _to_order(row: OrderRow, items: list[OrderItemRow]) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        items=tuple(_to_item(i) for i in items),
        shipping=Shipping(
            address=AddressSnapshot(
                full_name=row.ship_full_name,
                phone=row.ship_phone,
                street=row.ship_street,
                city=row.ship_city,
                state=row.ship_state,
                country=row.ship_country,
                postal_code=row.ship_postal_code,
            ),
            method=row.shipping_method,
            delivery_charge=row.delivery_charge,
        ),
        payment=Payment(
            method=PaymentMethod(row.payment_method),
            status=PaymentStatus(row.payment_status),
            transaction_id=row.transaction_id,
            amount=row.payment_amount,
            paid_at=row.payment_date,
        ),
        subtotal=row.subtotal,
        coupon_code=row.coupon_code,
        discount_amount=row.discount_amount,
        total_discount=row.total_discount,
        total_amount=row.total_amount,
        status=OrderStatus(row.order_status),
        created_at=row.created_at,
        reason=row.reason,
    )


def _to_item(row: OrderItemRow) -> OrderItem:
    return OrderItem(
        id=row.id,
        position=row.position,
        product_id=row.product_id,
        product_name=row.product_name,
        variant_id=row.variant_id,
        size=row.size,
        color=row.color,
        quantity=row.quantity,
        price=row.price,
        discount_price=row.discount_price,
        final_price=row.final_price,
        saved_amount=row.saved_amount,
        coupon_share=row.coupon_share,
        status=ItemStatus(row.status),
        cancellation_reason=row.cancellation_reason,
        return_requested=row.return_requested,
        return_processed=row.return_processed,
        return_reason=ReturnReason(row.return_reason) if row.return_reason else None,
        return_details=row.return_details,
        return_status=ReturnStatus(row.return_status) if row.return_status else None,
        rejection_reason=row.rejection_reason,
    )


__all__ = ("OrderRepository",)
