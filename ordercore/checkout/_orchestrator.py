"""
Checkout orchestrator — the public face of the checkout graph.

    commit()                 cart → order, one unit of work
    quote()                  same graph up to totals, nothing written
    create_payment_intent()  unit 1 of an online payment
    verify_payment()         unit 2: claim intent, commit, or refund
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime

from kungfu import Error, Ok, Result
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ordercore import graph as G
from ordercore import saga as S
from ordercore._types import IntentStatus, PaymentMethod
from ordercore.checkout._types import (
    CheckoutRequest,
    Ledgers,
    PaymentCapture,
    PaymentIntent,
    Quote,
    Receipt,
)
from ordercore.checkout.nodes import CommitNode, TotalsNode
from ordercore.config import CommerceConfig
from ordercore.db import PaymentIntentRow, UnitOfWork, atomic
from ordercore.errors import CommerceError, CommerceFailure, Errors
from ordercore.gateway import PaymentGateway

logger = logging.getLogger("ordercore.checkout")


@dataclass(slots=True)
class _Attempt:
    """What the capture unit learned; decides the follow-up after it closes."""

    claimed: bool = False
    failed_after_claim: bool = False
    late: PaymentCapture | None = None  # Paid against an intent that had expired


class CheckoutOrchestrator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledgers: Ledgers,
        config: CommerceConfig,
        gateway: PaymentGateway,
    ) -> None:
        self._session_factory = session_factory
        self._ledgers = ledgers
        self._config = config
        self._gateway = gateway
        self._commit_graph = G.graph(CommitNode)
        self._quote_graph = G.graph(TotalsNode)

    # ═══════════════════════════════════════════════════════════════════════════
    # Cart → Order
    # ═══════════════════════════════════════════════════════════════════════════

    async def commit(
        self,
        user_id: str,
        address_id: str,
        payment_method: str,
        coupon_code: str | None = None,
    ) -> Result[Receipt, CommerceError]:
        request = CheckoutRequest(user_id, address_id, payment_method, coupon_code)
        return await atomic(self._session_factory, lambda uow: self.commit_in(uow, request))

    async def commit_in(
        self,
        uow: UnitOfWork,
        request: CheckoutRequest,
    ) -> Result[Receipt, CommerceError]:
        """Run the commit graph inside a caller-owned unit of work."""
        run = self._commit_graph.run().given(request, self._config, self._ledgers).inject_as(
            UnitOfWork, uow
        )
        match await G.settle(run, CommerceFailure):
            case Ok(node):
                return Ok(node.data)
            case Error(failure):
                return Error(failure.error)

    async def quote(
        self,
        user_id: str,
        address_id: str,
        payment_method: str,
        coupon_code: str | None = None,
    ) -> Result[Quote, CommerceError]:
        request = CheckoutRequest(user_id, address_id, payment_method, coupon_code)

        async def body(uow: UnitOfWork) -> Result[Quote, CommerceError]:
            run = self._quote_graph.run().given(request, self._config, self._ledgers).inject_as(
                UnitOfWork, uow
            )
            match await G.settle(run, CommerceFailure):
                case Ok(node):
                    return Ok(node.data)
                case Error(failure):
                    return Error(failure.error)

        return await atomic(self._session_factory, body)

    # ═══════════════════════════════════════════════════════════════════════════
    # Online payment
    # ═══════════════════════════════════════════════════════════════════════════

    async def create_payment_intent(
        self,
        user_id: str,
        address_id: str,
        coupon_code: str | None = None,
    ) -> Result[PaymentIntent, CommerceError]:
        """Quote, open a gateway intent, persist it as ``created``. No order yet."""
        match await self.quote(user_id, address_id, PaymentMethod.ONLINE.value, coupon_code):
            case Ok(quote):
                pass
            case Error(e):
                return Error(e)

        intent_id = f"pay_{uuid.uuid4().hex[:16]}"
        opened = await S.run(S.from_async(
            lambda: self._gateway.create_intent(quote.total, self._config.currency, intent_id),
            on_error=lambda e: Errors.storage(f"Payment gateway unavailable: {e}"),
            name="gateway-intent",
        ))
        match opened:
            case Ok(result):
                gateway_intent = result.value
            case Error(saga_error):
                logger.error("gateway intent failed for %s: %s", user_id, saga_error.error)
                return Error(saga_error.error)

        now = datetime.now()

        async def body(uow: UnitOfWork) -> Result[PaymentIntent, CommerceError]:
            uow.add(PaymentIntentRow(
                id=intent_id,
                user_id=user_id,
                gateway_ref=gateway_intent.ref,
                amount=quote.total,
                currency=self._config.currency,
                address_id=address_id,
                coupon_code=coupon_code if quote.coupon is not None else None,
                status=IntentStatus.CREATED.value,
                created_at=now,
                updated_at=now,
            ))
            await uow.flush()
            return Ok(PaymentIntent(
                id=intent_id,
                gateway_ref=gateway_intent.ref,
                amount=quote.total,
                currency=self._config.currency,
                status=IntentStatus.CREATED,
                created_at=now,
            ))

        return await atomic(self._session_factory, body)

    async def verify_payment(
        self,
        intent_id: str,
        gateway_ref: str,
        payment_ref: str,
        signature: str,
    ) -> Result[Receipt, CommerceError]:
        """
        Trust the signature, then claim the intent and commit in one unit.

        If the commit fails after the payment was captured, the gateway is
        asked to refund it and the intent is marked failed. A payment that
        arrives after the intent expired is refunded the same way.
        """
        if not self._gateway.verify_signature(gateway_ref, payment_ref, signature):
            logger.warning("signature mismatch for intent %s", intent_id)
            return Error(Errors.signature_mismatch())

        attempt = _Attempt()
        result = await atomic(
            self._session_factory,
            lambda uow: self._capture(uow, attempt, intent_id, gateway_ref, payment_ref),
        )

        match result:
            case Error(e) if attempt.failed_after_claim:
                await self._mark_failed(intent_id, payment_ref, e)
            case Error(_) if attempt.late is not None:
                await self._refund_late(intent_id, attempt.late)
        return result

    async def _capture(
        self,
        uow: UnitOfWork,
        attempt: _Attempt,
        intent_id: str,
        gateway_ref: str,
        payment_ref: str,
    ) -> Result[Receipt, CommerceError]:
        intent = await uow.one(select(PaymentIntentRow).where(PaymentIntentRow.id == intent_id))
        if intent is None or intent.gateway_ref != gateway_ref:
            return Error(Errors.not_found("Payment intent", intent_id))

        request = CheckoutRequest(
            user_id=intent.user_id,
            address_id=intent.address_id,
            payment_method=PaymentMethod.ONLINE.value,
            coupon_code=intent.coupon_code,
        )
        captured = PaymentCapture(payment_ref, intent.amount)

        async def claim() -> Result[PaymentCapture, CommerceError]:
            won = await uow.write(
                update(PaymentIntentRow)
                .where(
                    PaymentIntentRow.id == intent_id,
                    PaymentIntentRow.status == IntentStatus.CREATED.value,
                )
                .values(
                    status=IntentStatus.COMPLETED.value,
                    payment_ref=payment_ref,
                    updated_at=datetime.now(),
                )
            )
            if won == 0:
                status = await uow.scalar(
                    select(PaymentIntentRow.status).where(PaymentIntentRow.id == intent_id)
                )
                if status == IntentStatus.EXPIRED.value:
                    attempt.late = captured
                return Error(Errors.already_processed(f"Payment intent {intent_id} is {status}"))
            attempt.claimed = True
            return Ok(captured)

        async def refund(capture: PaymentCapture) -> None:
            await self._gateway.refund(capture.payment_ref, capture.amount)

        async def commit(capture: PaymentCapture) -> Result[Receipt, CommerceError]:
            return await self.commit_in(uow, replace(request, capture=capture))

        saga = S.from_result(claim, compensate=refund, name="claim-intent").then(
            lambda capture: S.from_result(lambda: commit(capture), name="commit")
        )

        match await S.run(saga):
            case Ok(done):
                receipt = done.value
            case Error(saga_error):
                attempt.failed_after_claim = attempt.claimed
                return Error(saga_error.error)

        await uow.write(
            update(PaymentIntentRow)
            .where(PaymentIntentRow.id == intent_id)
            .values(order_id=receipt.order_id)
        )
        logger.info("intent %s captured as order %s", intent_id, receipt.order_id)
        return Ok(receipt)

    async def _mark_failed(self, intent_id: str, payment_ref: str, error: CommerceError) -> None:
        async def body(uow: UnitOfWork) -> Result[None, CommerceError]:
            await uow.write(
                update(PaymentIntentRow)
                .where(
                    PaymentIntentRow.id == intent_id,
                    PaymentIntentRow.status == IntentStatus.CREATED.value,
                )
                .values(
                    status=IntentStatus.FAILED.value,
                    payment_ref=payment_ref,
                    failure=error.message,
                    updated_at=datetime.now(),
                )
            )
            return Ok(None)

        match await atomic(self._session_factory, body):
            case Error(e):
                logger.error("could not mark intent %s failed: %s", intent_id, e)
            case _:
                logger.warning("intent %s failed after capture: %s", intent_id, error)

    async def _refund_late(self, intent_id: str, capture: PaymentCapture) -> None:
        """
        Hand back a payment captured after its intent expired.

        The intent moves expired → failed in the same unit as the refund, so
        a replayed callback finds it failed and refunds nothing.
        """

        async def body(uow: UnitOfWork) -> Result[bool, CommerceError]:
            won = await uow.write(
                update(PaymentIntentRow)
                .where(
                    PaymentIntentRow.id == intent_id,
                    PaymentIntentRow.status == IntentStatus.EXPIRED.value,
                )
                .values(
                    status=IntentStatus.FAILED.value,
                    payment_ref=capture.payment_ref,
                    failure="Payment received after the intent expired",
                    updated_at=datetime.now(),
                )
            )
            if won == 0:
                return Ok(False)
            refunded = await S.run(S.from_async(
                lambda: self._gateway.refund(capture.payment_ref, capture.amount),
                on_error=lambda e: Errors.storage(f"Payment gateway unavailable: {e}"),
                name="late-refund",
            ))
            match refunded:
                case Ok(_):
                    return Ok(True)
                case Error(saga_error):
                    return Error(saga_error.error)

        match await atomic(self._session_factory, body):
            case Ok(True):
                logger.warning(
                    "intent %s paid after expiry, refunded %d for %s",
                    intent_id, capture.amount, capture.payment_ref,
                )
            case Ok(_):
                pass
            case Error(e):
                logger.error("could not refund late payment on intent %s: %s", intent_id, e)


__all__ = ("CheckoutOrchestrator",)
