"""
Server cart gateway — the remote cart API behind a Protocol.

    from cartsync import gateway as G

    api = G.HttpGateway(Policy().with_api("https://shop.example/api", token=t))

    match await api.add_item("P1", 2, [Attribute("Size", "M")]):
        case Ok(cart):
            cart.find_identity(...)
        case Error(e) if e.is_not_found:
            ...
        case Error(e):
            logger.warning("sync failed: %s", e.message)

Implementations:

    HttpGateway     → urllib in a worker thread, bearer token, fixed timeout
    MemoryGateway   → in-process server with catalog, pricing, fault injection
"""

from cartsync.gateway._types import (
    ServerCartItem,
    AppliedCoupon,
    ShippingEstimate,
    ServerCart,
    GatewayErrorKind,
    GatewayError,
)
from cartsync.gateway._protocol import CartGateway
from cartsync.gateway._wire import (
    ServerCartItemDoc,
    AppliedCouponDoc,
    ShippingEstimateDoc,
    ServerCartDoc,
    unwrap_data,
)
from cartsync.gateway._http import Endpoints, HttpGateway
from cartsync.gateway._memory import CatalogProduct, Call, MemoryGateway

__all__ = (
    # Types
    "ServerCartItem",
    "AppliedCoupon",
    "ShippingEstimate",
    "ServerCart",
    "GatewayErrorKind",
    "GatewayError",
    # Protocol
    "CartGateway",
    # Wire
    "ServerCartItemDoc",
    "AppliedCouponDoc",
    "ShippingEstimateDoc",
    "ServerCartDoc",
    "unwrap_data",
    # Implementations
    "Endpoints",
    "HttpGateway",
    "CatalogProduct",
    "Call",
    "MemoryGateway",
)
