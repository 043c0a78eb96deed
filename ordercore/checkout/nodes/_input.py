"""
Input — request, cart and address nodes (entry points to the graph).
"""

from ordercore import graph as G
from ordercore._types import PaymentMethod
from ordercore.cart import CartView
from ordercore.catalog import AddressSnapshot
from ordercore.checkout._types import CheckoutRequest, Ledgers
from ordercore.db import UnitOfWork
from ordercore.errors import CommerceFailure, Errors


@G.node
class RequestNode:
    """Entry point: the request, with its payment method parsed."""

    def __init__(self, data: CheckoutRequest, method: PaymentMethod) -> None:
        self.data = data
        self.method = method

    @classmethod
    def __compose__(cls, request: CheckoutRequest) -> "RequestNode":
        try:
            method = PaymentMethod(request.payment_method)
        except ValueError:
            raise CommerceFailure(Errors.payment_method_not_allowed(
                f"Unknown payment method {request.payment_method!r}"
            )) from None
        return cls(request, method)


@G.node
class CartNode:
    """The shopper's cart; an empty one ends checkout here."""

    def __init__(self, data: CartView) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        uow: UnitOfWork,
        ledgers: Ledgers,
    ) -> "CartNode":
        cart = await ledgers.carts.view(uow, request.data.user_id)
        if cart.is_empty:
            raise CommerceFailure(Errors.empty_cart())
        return cls(cart)


@G.node
class AddressNode:
    """Snapshot of the delivery address, scoped to the shopper."""

    def __init__(self, data: AddressSnapshot) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        cart: CartNode,  # Empty cart is reported before a bad address
        uow: UnitOfWork,
        ledgers: Ledgers,
    ) -> "AddressNode":
        _ = cart
        address = await ledgers.catalog.address(
            uow, request.data.user_id, request.data.address_id
        )
        if address is None:
            raise CommerceFailure(Errors.address_not_found())
        return cls(address)


__all__ = ("RequestNode", "CartNode", "AddressNode")
