"""
Payment gateway boundary.

The core never talks to a real provider. It needs three things: an
intent reference for an amount, a trust decision on a returned signature,
and a way to hand a captured payment back when the commit that followed
it failed.

``HmacGateway`` signs ``"<gateway_ref>|<payment_ref>"`` with HMAC-SHA256,
the scheme hosted checkouts use for their callback signatures.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

from ordercore._types import Money

logger = logging.getLogger("ordercore.gateway")


@dataclass(frozen=True, slots=True)
class GatewayIntent:
    ref: str
    amount: Money
    currency: str
    receipt: str


@dataclass(frozen=True, slots=True)
class GatewayRefund:
    payment_ref: str
    amount: Money


class PaymentGateway(Protocol):
    async def create_intent(self, amount: Money, currency: str, receipt: str) -> GatewayIntent: ...

    def verify_signature(self, gateway_ref: str, payment_ref: str, signature: str) -> bool: ...

    async def refund(self, payment_ref: str, amount: Money) -> GatewayRefund: ...


class HmacGateway:
    """Local stand-in: deterministic signatures, refunds kept in memory."""

    def __init__(self, secret: str) -> None:
        self._secret = secret.encode()
        self.refunds: list[GatewayRefund] = []

    def sign(self, gateway_ref: str, payment_ref: str) -> str:
        message = f"{gateway_ref}|{payment_ref}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def create_intent(self, amount: Money, currency: str, receipt: str) -> GatewayIntent:
        intent = GatewayIntent(f"order_{uuid.uuid4().hex[:14]}", amount, currency, receipt)
        logger.info("gateway intent %s for %d %s", intent.ref, amount, currency)
        return intent

    def verify_signature(self, gateway_ref: str, payment_ref: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign(gateway_ref, payment_ref), signature)

    async def refund(self, payment_ref: str, amount: Money) -> GatewayRefund:
        refund = GatewayRefund(payment_ref, amount)
        self.refunds.append(refund)
        logger.warning("gateway refund of %d for payment %s", amount, payment_ref)
        return refund


__all__ = ("GatewayIntent", "GatewayRefund", "PaymentGateway", "HmacGateway")
