"""
Tables — SQLAlchemy models for the whole commerce core.

Note: money columns are integers in whole currency units. Fractional
amounts only ever exist in memory, inside pricing, and are rounded once
when a row is written.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class CategoryRow(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)


class ProductRow(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category_id: Mapped[str | None] = mapped_column(
        ForeignKey("categories.id"), nullable=True, index=True
    )
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_listed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class VariantRow(Base):
    """
    Inventory unit: product + size + color.

    Note: stock and discount_price are never written directly by services.
    Stock moves through the inventory ledger, discount_price through the
    offer recompute pass.
    """

    __tablename__ = "variants"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_variants_stock"),)

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id"), nullable=False, index=True
    )
    size: Mapped[str | None] = mapped_column(String(20), nullable=True)
    color: Mapped[str | None] = mapped_column(String(40), nullable=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    active_offer_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class AddressRow(Base):
    __tablename__ = "addresses"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    street: Mapped[str] = mapped_column(String(300), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="India")
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class CartRow(Base):
    __tablename__ = "carts"

    user_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shipping: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class CartItemRow(Base):
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("user_id", "variant_id", name="uq_cart_items_line"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("carts.user_id"), nullable=False, index=True
    )
    variant_id: Mapped[str] = mapped_column(ForeignKey("variants.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total: Mapped[int] = mapped_column(Integer, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderRow(Base):
    """
    Order aggregate root. Never deleted.

    Shipping columns are a copy of the address at commit time, not a
    reference to it.
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Shipping snapshot
    ship_full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    ship_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    ship_street: Mapped[str] = mapped_column(String(300), nullable=False)
    ship_city: Mapped[str] = mapped_column(String(100), nullable=False)
    ship_state: Mapped[str] = mapped_column(String(100), nullable=False)
    ship_country: Mapped[str] = mapped_column(String(100), nullable=False)
    ship_postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    shipping_method: Mapped[str] = mapped_column(String(40), nullable=False)
    delivery_charge: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Payment
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Totals
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    coupon_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_discount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    order_status: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class OrderItemRow(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(50), nullable=False)
    size: Mapped[str | None] = mapped_column(String(20), nullable=True)
    color: Mapped[str | None] = mapped_column(String(40), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    price: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_price: Mapped[int] = mapped_column(Integer, nullable=False)
    saved_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    coupon_share: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    return_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    return_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    return_reason: Mapped[str | None] = mapped_column(String(40), nullable=True)
    return_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    return_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Wallet
# ═══════════════════════════════════════════════════════════════════════════════


class WalletRow(Base):
    __tablename__ = "wallets"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_wallets_balance"),)

    user_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class WalletTransactionRow(Base):
    """
    Append-only wallet log.

    Note: reference is the logical reason key ("return:ORD-..:3"). NULLs
    never collide, so unreferenced entries are unconstrained.
    """

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        UniqueConstraint("user_id", "reference", name="uq_wallet_transactions_reference"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("wallets.user_id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons / Offers
# ═══════════════════════════════════════════════════════════════════════════════


class CouponRow(Base):
    __tablename__ = "coupons"

    code: Mapped[str] = mapped_column(String(50), primary_key=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)
    min_order_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_expired: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class CouponRedemptionRow(Base):
    """The coupon's usedBy set: one row per (coupon, user)."""

    __tablename__ = "coupon_redemptions"

    coupon_code: Mapped[str] = mapped_column(ForeignKey("coupons.code"), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    order_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    redeemed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class OfferRow(Base):
    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    offer_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class OfferTargetRow(Base):
    """Product ids or category ids an offer applies to, by offer_type."""

    __tablename__ = "offer_targets"

    offer_id: Mapped[str] = mapped_column(ForeignKey("offers.id"), primary_key=True)
    target_id: Mapped[str] = mapped_column(String(50), primary_key=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Intents
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentIntentRow(Base):
    """
    Durable bridge between gateway order creation and verification.

    An intent left in "created" is an orphan until the expiry sweep runs.
    """

    __tablename__ = "payment_intents"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    gateway_ref: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    address_id: Mapped[str] = mapped_column(String(50), nullable=False)
    coupon_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    order_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    failure: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


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
)
