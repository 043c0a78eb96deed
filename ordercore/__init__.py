"""
ordercore — order-commit core for a small storefront.

    from ordercore import Commerce, CommerceConfig

    commerce = await Commerce.open(CommerceConfig().with_cod_limit(1000))
    receipt = await commerce.checkout(user_id, address_id, "wallet", "FLAT100")
"""

from ordercore.app import Commerce
from ordercore.config import CommerceConfig, CouponRefundPolicy
from ordercore.errors import CommerceError, ErrorKind, Errors
from ordercore._types import (
    Money,
    PaymentMethod,
    PaymentStatus,
    IntentStatus,
    OrderStatus,
    ItemStatus,
    ReturnStatus,
    ReturnReason,
    DiscountType,
    OfferType,
    TransactionType,
)

__version__ = "0.1.0"

__all__ = (
    "Commerce",
    "CommerceConfig",
    "CouponRefundPolicy",
    "CommerceError",
    "ErrorKind",
    "Errors",
    "Money",
    "PaymentMethod",
    "PaymentStatus",
    "IntentStatus",
    "OrderStatus",
    "ItemStatus",
    "ReturnStatus",
    "ReturnReason",
    "DiscountType",
    "OfferType",
    "TransactionType",
)
