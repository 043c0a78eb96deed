"""
Storage — SQLAlchemy tables, engine setup and the unit of work.

    from ordercore import db

    session_factory, engine = await db.create_database("sqlite+aiosqlite:///shop.db")
    result = await db.atomic(session_factory, body)
"""

from ordercore.db._tables import (
    Base,
    CategoryRow,
    ProductRow,
    VariantRow,
    AddressRow,
    CartRow,
    CartItemRow,
    OrderRow,
    OrderItemRow,
    WalletRow,
    WalletTransactionRow,
    CouponRow,
    CouponRedemptionRow,
    OfferRow,
    OfferTargetRow,
    PaymentIntentRow,
)
from ordercore.db._engine import create_database
from ordercore.db._uow import UnitOfWork, UnitBody, atomic

__all__ = (
    "Base",
    "CategoryRow",
    "ProductRow",
    "VariantRow",
    "AddressRow",
    "CartRow",
    "CartItemRow",
    "OrderRow",
    "OrderItemRow",
    "WalletRow",
    "WalletTransactionRow",
    "CouponRow",
    "CouponRedemptionRow",
    "OfferRow",
    "OfferTargetRow",
    "PaymentIntentRow",
    "create_database",
    "UnitOfWork",
    "UnitBody",
    "atomic",
)
