"""
Wire models — server cart JSON → domain.

Field names follow the API (camelCase, `_id`). Optional fields may be
missing; unknown fields are ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from cartsync._types import parse_iso
from cartsync.gateway._types import (
    AppliedCoupon,
    ServerCart,
    ServerCartItem,
    ShippingEstimate,
)
from cartsync.store._codec import (
    AttributeDoc,
    Doc,
    PricingTierDoc,
    ProductDetailsDoc,
    ProductSnapshotDoc,
)


class ServerCartItemDoc(Doc):
    id: str = Field(alias="_id")
    product: str
    qty: int
    selected_attributes: list[AttributeDoc] = []
    unit_price: float = 0
    total_price: float | None = None
    added_at: str | None = None
    sale: str | None = None
    sale_variant_index: int | None = None
    applied_discount: float | None = None
    discount_amount: float | None = None
    pricing_tier: PricingTierDoc | None = None
    product_snapshot: ProductSnapshotDoc | None = None
    product_details: ProductDetailsDoc | None = None

    def to_domain(self) -> ServerCartItem:
        return ServerCartItem(
            id=self.id,
            product_id=self.product,
            quantity=self.qty,
            attributes=tuple(a.to_domain() for a in self.selected_attributes),
            unit_price=self.unit_price,
            total_price=(
                self.total_price if self.total_price is not None else self.unit_price * self.qty
            ),
            added_at=parse_iso(self.added_at),
            sale=self.sale,
            sale_variant_index=self.sale_variant_index,
            applied_discount_percent=self.applied_discount,
            discount_amount=self.discount_amount,
            pricing_tier=self.pricing_tier.to_snapshot() if self.pricing_tier else None,
            product_snapshot=self.product_snapshot.to_domain() if self.product_snapshot else None,
            product_details=self.product_details.to_domain() if self.product_details else None,
        )


class AppliedCouponDoc(Doc):
    coupon: str = ""
    code: str
    discount_amount: float = 0
    applied_at: str | None = None

    def to_domain(self) -> AppliedCoupon:
        return AppliedCoupon(
            coupon=self.coupon,
            code=self.code,
            discount_amount=self.discount_amount,
            applied_at=parse_iso(self.applied_at),
        )


class ShippingEstimateDoc(Doc):
    cost: float = 0
    days: int = 0


class ServerCartDoc(Doc):
    id: str | None = Field(default=None, alias="_id")
    items: list[ServerCartItemDoc] = []
    subtotal: float = 0
    total_discount: float = 0
    coupon_discount: float = 0
    total: float = 0
    applied_coupons: list[AppliedCouponDoc] = []
    status: str = "active"
    estimated_shipping: ShippingEstimateDoc | None = None
    last_activity: str | None = None

    def to_domain(self) -> ServerCart:
        shipping = self.estimated_shipping
        return ServerCart(
            id=self.id,
            items=tuple(i.to_domain() for i in self.items),
            subtotal=self.subtotal,
            total_discount=self.total_discount,
            coupon_discount=self.coupon_discount,
            total=self.total,
            applied_coupons=tuple(c.to_domain() for c in self.applied_coupons),
            status=self.status,
            estimated_shipping=(
                ShippingEstimate(cost=shipping.cost, days=shipping.days) if shipping else None
            ),
            last_activity=parse_iso(self.last_activity),
        )


def unwrap_data(body: Any) -> Any:
    """Strip a {"data": ...} envelope if present."""
    if isinstance(body, dict) and "data" in body and "items" not in body:
        return body["data"]
    return body


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ServerCartItemDoc",
    "AppliedCouponDoc",
    "ShippingEstimateDoc",
    "ServerCartDoc",
    "unwrap_data",
)
