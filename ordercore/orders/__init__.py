"""
Orders — aggregate, state machine, repository and service.

    from ordercore.orders import OrderService, machine

    plan = machine.cancel(order, "Changed my mind")    # pure
    result = await service.cancel(uow, order_id)       # applied
"""

from ordercore.orders._domain import Shipping, Payment, OrderItem, Order
from ordercore.orders import _machine as machine
from ordercore.orders._machine import Cancellation, ReturnResolution
from ordercore.orders._repo import OrderRepository
from ordercore.orders._service import OrderService

__all__ = (
    "Shipping",
    "Payment",
    "OrderItem",
    "Order",
    "machine",
    "Cancellation",
    "ReturnResolution",
    "OrderRepository",
    "OrderService",
)
