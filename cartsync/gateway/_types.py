"""
Server cart types — what the authoritative cart API returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from cartsync._types import Attributes, IdentityKey, identity_key
from cartsync.pricing._types import PricingTierSnapshot
from cartsync.store._types import ProductDetails, ProductSnapshot

# ═══════════════════════════════════════════════════════════════════════════════
# Server Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ServerCartItem:
    """
    Server line item. id is the server's own item id.

    product_details is None when the product no longer exists.
    """

    id: str
    product_id: str
    quantity: int
    attributes: Attributes
    unit_price: float
    total_price: float
    added_at: datetime | None = None
    sale: str | None = None
    sale_variant_index: int | None = None
    applied_discount_percent: float | None = None
    discount_amount: float | None = None
    pricing_tier: PricingTierSnapshot | None = None
    product_snapshot: ProductSnapshot | None = None
    product_details: ProductDetails | None = None

    @property
    def identity(self) -> IdentityKey:
        return identity_key(self.product_id, self.attributes)


@dataclass(frozen=True, slots=True)
class AppliedCoupon:
    coupon: str
    code: str
    discount_amount: float = 0
    applied_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ShippingEstimate:
    cost: float
    days: int


@dataclass(frozen=True, slots=True)
class ServerCart:
    """Authoritative cart of an authenticated customer."""

    id: str | None
    items: tuple[ServerCartItem, ...] = ()
    subtotal: float = 0
    total_discount: float = 0
    coupon_discount: float = 0
    total: float = 0
    applied_coupons: tuple[AppliedCoupon, ...] = ()
    status: str = "active"
    estimated_shipping: ShippingEstimate | None = None
    last_activity: datetime | None = None

    def find(self, server_item_id: str) -> ServerCartItem | None:
        return next((i for i in self.items if i.id == server_item_id), None)

    def find_identity(self, key: IdentityKey) -> ServerCartItem | None:
        return next((i for i in self.items if i.identity == key), None)


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Error
# ═══════════════════════════════════════════════════════════════════════════════


class GatewayErrorKind(StrEnum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP = "http"
    NOT_FOUND = "not_found"
    DECODE = "decode"


@dataclass(frozen=True, slots=True)
class GatewayError:
    """
    Cart API call failure.

    Note: NOT_FOUND is the one kind callers treat as benign
    (the server cart or item is already gone).
    """

    kind: GatewayErrorKind
    message: str
    status: int | None = None
    cause: Exception | None = None

    @property
    def is_not_found(self) -> bool:
        return self.kind is GatewayErrorKind.NOT_FOUND


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ServerCartItem",
    "AppliedCoupon",
    "ShippingEstimate",
    "ServerCart",
    "GatewayErrorKind",
    "GatewayError",
)
