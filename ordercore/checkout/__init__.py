"""
Checkout — cart to order in one unit of work.

    from ordercore.checkout import CheckoutOrchestrator

    receipt = await orchestrator.commit(user_id, address_id, "wallet", "FLAT100")
"""

from ordercore.checkout._types import (
    PaymentCapture,
    CheckoutRequest,
    Ledgers,
    QuotedLine,
    Quote,
    Receipt,
    PaymentIntent,
)
from ordercore.checkout._orchestrator import CheckoutOrchestrator

__all__ = (
    "PaymentCapture",
    "CheckoutRequest",
    "Ledgers",
    "QuotedLine",
    "Quote",
    "Receipt",
    "PaymentIntent",
    "CheckoutOrchestrator",
)
