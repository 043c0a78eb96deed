"""
Graph — computation graphs over nodnod.

    from ordercore import graph as G

    @G.node
    class CartNode:
        @classmethod
        async def __compose__(cls, request: RequestNode, uow: UnitOfWork) -> "CartNode":
            return cls(await carts.view(uow, request.data.user_id))

    pipeline = G.graph(CartNode)
    result = await G.settle(pipeline.run().given(request, uow), CommerceFailure)
"""

from nodnod import scalar_node as node

from ordercore.graph._run import (
    TypedScope,
    Run,
    Compiled,
    graph,
    settle,
)

__all__ = (
    "node",
    "TypedScope",
    "Run",
    "Compiled",
    "graph",
    "settle",
)
