"""
Error taxonomy — one value type for every business failure.

Every public operation returns ``Result[T, CommerceError]``. Inside graph
nodes, where returning is not an option, the error travels wrapped in
``CommerceFailure`` and is unwrapped again at the orchestrator boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Kinds
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """Kinds of commerce errors."""

    EMPTY_CART = auto()
    ITEM_UNAVAILABLE = auto()  # Blocked, unlisted or gone at checkout time
    OUT_OF_STOCK = auto()
    INSUFFICIENT_BALANCE = auto()
    INVALID_AMOUNT = auto()  # Caller contract violation
    COUPON_NOT_APPLICABLE = auto()
    PAYMENT_METHOD_NOT_ALLOWED = auto()
    INVALID_TRANSITION = auto()
    RETURN_ALREADY_REQUESTED = auto()
    ALREADY_PROCESSED = auto()
    ADDRESS_NOT_FOUND = auto()
    ORDER_NOT_FOUND = auto()
    NOT_FOUND = auto()  # Offers, payment intents
    SIGNATURE_MISMATCH = auto()  # Payment gateway trust failure
    STORAGE_ERROR = auto()  # Driver failure, detail stays in the log


@dataclass(frozen=True, slots=True)
class CommerceError:
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.name}: {self.message}"


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


class Errors:
    @staticmethod
    def empty_cart() -> CommerceError:
        return CommerceError(ErrorKind.EMPTY_CART, "Cart is empty")

    @staticmethod
    def item_unavailable(name: str) -> CommerceError:
        return CommerceError(ErrorKind.ITEM_UNAVAILABLE, f"{name} is no longer available")

    @staticmethod
    def insufficient_stock(name: str) -> CommerceError:
        return CommerceError(ErrorKind.ITEM_UNAVAILABLE, f"Insufficient stock for {name}")

    @staticmethod
    def out_of_stock(name: str) -> CommerceError:
        return CommerceError(ErrorKind.OUT_OF_STOCK, f"Insufficient stock for {name}")

    @staticmethod
    def insufficient_balance(balance: int, amount: int) -> CommerceError:
        return CommerceError(
            ErrorKind.INSUFFICIENT_BALANCE,
            f"Insufficient wallet balance: {balance} available, {amount} required",
        )

    @staticmethod
    def invalid_amount(msg: str) -> CommerceError:
        return CommerceError(ErrorKind.INVALID_AMOUNT, msg)

    @staticmethod
    def coupon_not_applicable(msg: str) -> CommerceError:
        return CommerceError(ErrorKind.COUPON_NOT_APPLICABLE, msg)

    @staticmethod
    def payment_method_not_allowed(msg: str) -> CommerceError:
        return CommerceError(ErrorKind.PAYMENT_METHOD_NOT_ALLOWED, msg)

    @staticmethod
    def invalid_transition(msg: str) -> CommerceError:
        return CommerceError(ErrorKind.INVALID_TRANSITION, msg)

    @staticmethod
    def return_already_requested() -> CommerceError:
        return CommerceError(
            ErrorKind.RETURN_ALREADY_REQUESTED,
            "Return already requested for this item",
        )

    @staticmethod
    def already_processed(msg: str) -> CommerceError:
        return CommerceError(ErrorKind.ALREADY_PROCESSED, msg)

    @staticmethod
    def address_not_found() -> CommerceError:
        return CommerceError(ErrorKind.ADDRESS_NOT_FOUND, "Delivery address not found")

    @staticmethod
    def order_not_found(order_id: str) -> CommerceError:
        return CommerceError(ErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found")

    @staticmethod
    def not_found(what: str, key: str) -> CommerceError:
        return CommerceError(ErrorKind.NOT_FOUND, f"{what} {key} not found")

    @staticmethod
    def signature_mismatch() -> CommerceError:
        return CommerceError(ErrorKind.SIGNATURE_MISMATCH, "Invalid payment signature")

    @staticmethod
    def storage(msg: str = "Storage unavailable") -> CommerceError:
        return CommerceError(ErrorKind.STORAGE_ERROR, msg)


# ═══════════════════════════════════════════════════════════════════════════════
# Exception carrier (graph nodes)
# ═══════════════════════════════════════════════════════════════════════════════


class CommerceFailure(Exception):
    """Raised inside graph nodes; converted back to ``Error`` at the boundary."""

    def __init__(self, error: CommerceError) -> None:
        super().__init__(error.message)
        self.error = error


__all__ = (
    "ErrorKind",
    "CommerceError",
    "Errors",
    "CommerceFailure",
)
