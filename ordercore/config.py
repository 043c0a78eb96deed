"""
Commerce configuration — business constants in one immutable value.

Fluent builder pattern, same as every other policy object here:

    config = (
        CommerceConfig()
        .with_cod_limit(2000)
        .with_shipping(fee=40, free_above=999)
        .with_coupon_refund_policy(CouponRefundPolicy.FIRST_RETURN_ONLY)
    )

``CommerceConfig.from_env()`` reads the same knobs from ``ORDERCORE_*``
environment variables; anything unset keeps its default.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum, auto

from ordercore._types import Money


# ═══════════════════════════════════════════════════════════════════════════════
# Coupon Refund Policy
# ═══════════════════════════════════════════════════════════════════════════════


class CouponRefundPolicy(Enum):
    """
    How a returned line gives back its share of the order coupon.

    PROPORTIONAL: every returned line deducts its own proportional share,
                  independent of return order. Refunds always sum to what
                  was paid for the lines.

    FIRST_RETURN_ONLY: only the first return in an order deducts the share;
                       later returns are refunded without any coupon
                       deduction. Kept for parity with historical refunds.
    """

    PROPORTIONAL = auto()
    FIRST_RETURN_ONLY = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# Config
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CommerceConfig:
    database_url: str = "sqlite+aiosqlite:///:memory:"
    currency: str = "INR"
    cod_limit: Money = 1000
    shipping_fee: Money = 50
    free_shipping_threshold: Money = 500
    max_quantity_per_item: int = 5
    wallet_page_size: int = 5
    coupon_refund_policy: CouponRefundPolicy = CouponRefundPolicy.PROPORTIONAL
    intent_ttl: timedelta = timedelta(hours=1)
    payment_secret: str = "ordercore-dev-secret"

    def with_database(self, url: str) -> CommerceConfig:
        return replace(self, database_url=url)

    def with_cod_limit(self, limit: Money) -> CommerceConfig:
        return replace(self, cod_limit=limit)

    def with_shipping(self, *, fee: Money, free_above: Money) -> CommerceConfig:
        return replace(self, shipping_fee=fee, free_shipping_threshold=free_above)

    def with_max_quantity(self, quantity: int) -> CommerceConfig:
        return replace(self, max_quantity_per_item=quantity)

    def with_wallet_page_size(self, size: int) -> CommerceConfig:
        return replace(self, wallet_page_size=size)

    def with_coupon_refund_policy(self, policy: CouponRefundPolicy) -> CommerceConfig:
        return replace(self, coupon_refund_policy=policy)

    def with_intent_ttl(
        self,
        *,
        hours: float = 0,
        minutes: float = 0,
        seconds: float = 0,
    ) -> CommerceConfig:
        return replace(
            self,
            intent_ttl=timedelta(hours=hours, minutes=minutes, seconds=seconds),
        )

    def with_payment_secret(self, secret: str) -> CommerceConfig:
        return replace(self, payment_secret=secret)

    def shipping_for(self, subtotal: Money) -> Money:
        """Flat fee, waived strictly above the threshold."""
        return 0 if subtotal > self.free_shipping_threshold else self.shipping_fee

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CommerceConfig:
        env: Mapping[str, str] = os.environ if environ is None else environ
        base = cls()

        def _int(name: str, default: int) -> int:
            raw = env.get(f"ORDERCORE_{name}")
            return default if raw is None or raw == "" else int(raw)

        policy = env.get("ORDERCORE_COUPON_REFUND_POLICY")
        return cls(
            database_url=env.get("ORDERCORE_DATABASE_URL", base.database_url),
            currency=env.get("ORDERCORE_CURRENCY", base.currency),
            cod_limit=_int("COD_LIMIT", base.cod_limit),
            shipping_fee=_int("SHIPPING_FEE", base.shipping_fee),
            free_shipping_threshold=_int(
                "FREE_SHIPPING_THRESHOLD", base.free_shipping_threshold
            ),
            max_quantity_per_item=_int("MAX_QUANTITY_PER_ITEM", base.max_quantity_per_item),
            wallet_page_size=_int("WALLET_PAGE_SIZE", base.wallet_page_size),
            coupon_refund_policy=(
                CouponRefundPolicy[policy.upper()] if policy else base.coupon_refund_policy
            ),
            intent_ttl=timedelta(
                seconds=_int("INTENT_TTL_SECONDS", int(base.intent_ttl.total_seconds()))
            ),
            payment_secret=env.get("ORDERCORE_PAYMENT_SECRET", base.payment_secret),
        )


__all__ = ("CouponRefundPolicy", "CommerceConfig")
