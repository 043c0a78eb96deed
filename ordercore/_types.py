"""
Core types for ordercore.

Re-exports from kungfu + the status vocabularies shared by every ledger.

Note: enum values are wire values. They are persisted as-is and read by
the reporting layer, including the historical "Shiped" order status.
"""

from __future__ import annotations

from enum import StrEnum

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = int
"""Amount in whole currency units, as persisted."""

# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentMethod(StrEnum):
    COD = "cod"
    ONLINE = "online"
    WALLET = "wallet"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    INITIATED = "initiated"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    RETRY_PENDING = "retry_pending"


class IntentStatus(StrEnum):
    CREATED = "created"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


# ═══════════════════════════════════════════════════════════════════════════════
# Order / Item Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "Processing"
    SHIPPED = "Shiped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class ItemStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"


class ReturnStatus(StrEnum):
    PENDING = "Return Pending"
    APPROVED = "Return Approved"
    REJECTED = "Return Rejected"
    REFUNDED = "Refunded"


class ReturnReason(StrEnum):
    DEFECTIVE = "Defective"
    NOT_AS_DESCRIBED = "Not as described"
    WRONG_SIZE = "Wrong size/fit"
    CHANGED_MIND = "Changed my mind"
    OTHER = "Other"


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts / Wallet
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountType(StrEnum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class OfferType(StrEnum):
    PRODUCT = "product"
    CATEGORY = "category"


class TransactionType(StrEnum):
    CREDIT = "credit"
    DEBIT = "debit"


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Money
    "Money",
    # Vocabularies
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
