"""
Checkout graph nodes, in dependency order:

    RequestNode → CartNode → AddressNode → LinesNode → CouponNode → TotalsNode → CommitNode

The chain is strictly sequential: every node shares one database session,
which cannot serve two statements at once.
"""

from ordercore.checkout.nodes._input import RequestNode, CartNode, AddressNode
from ordercore.checkout.nodes._lines import LinesNode
from ordercore.checkout.nodes._totals import CouponNode, TotalsNode
from ordercore.checkout.nodes._commit import CommitNode, new_order_id

__all__ = (
    "RequestNode",
    "CartNode",
    "AddressNode",
    "LinesNode",
    "CouponNode",
    "TotalsNode",
    "CommitNode",
    "new_order_id",
)
