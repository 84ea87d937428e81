"""
Matching and folding — server items onto local line items.

Server wins on price, discount, tier and availability. Identity
(product and attributes) and the local quantity are never touched.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import fields, replace
from datetime import datetime

from cartsync._types import Attribute, attributes_of
from cartsync.engine._availability import compute_availability
from cartsync.gateway._types import ServerCart, ServerCartItem
from cartsync.pricing._tiers import quote
from cartsync.store._types import LineItem, PriceSnapshot, ProductDetails, ProductSnapshot

# ═══════════════════════════════════════════════════════════════════════════════
# Matching
# ═══════════════════════════════════════════════════════════════════════════════


def find_matching(server: ServerCart, item: LineItem) -> ServerCartItem | None:
    """Server counterpart of a local item: by server id first, then identity."""
    if item.server_item_id is not None:
        by_id = server.find(item.server_item_id)
        if by_id is not None:
            return by_id
    return server.find_identity(item.identity)


# ═══════════════════════════════════════════════════════════════════════════════
# Folding
# ═══════════════════════════════════════════════════════════════════════════════


def fold_server_fields(item: LineItem, server: ServerCartItem) -> LineItem:
    """
    Fold server truth into a local item, keeping the local quantity.

    total_price is the server total when quantities agree, otherwise the
    server unit price times the local quantity.
    """
    available, reason = compute_availability(
        server.product_details, item.attributes, item.quantity
    )
    if server.quantity == item.quantity:
        total = server.total_price
    else:
        total = round(server.unit_price * item.quantity, 2)

    return replace(
        item,
        unit_price=server.unit_price,
        total_price=total,
        sale=server.sale,
        sale_variant_index=server.sale_variant_index,
        applied_discount_percent=server.applied_discount_percent,
        discount_amount=server.discount_amount,
        pricing_tier=server.pricing_tier,
        server_item_id=server.id,
        added_at=server.added_at or item.added_at,
        product_snapshot=server.product_snapshot or item.product_snapshot,
        product_details=server.product_details or item.product_details,
        is_available=available,
        unavailable_reason=reason,
    )


def server_to_local(
    server: ServerCartItem,
    *,
    now: datetime,
    item_id: str | None = None,
) -> LineItem:
    """A local item mirroring a server item (used when adopting a server cart)."""
    available, reason = compute_availability(
        server.product_details, server.attributes, server.quantity
    )
    return LineItem(
        id=item_id or server.id,
        product_id=server.product_id,
        quantity=server.quantity,
        attributes=server.attributes,
        unit_price=server.unit_price,
        total_price=server.total_price,
        added_at=server.added_at or now,
        server_item_id=server.id,
        sale=server.sale,
        sale_variant_index=server.sale_variant_index,
        applied_discount_percent=server.applied_discount_percent,
        discount_amount=server.discount_amount,
        pricing_tier=server.pricing_tier,
        product_snapshot=server.product_snapshot,
        product_details=server.product_details,
        is_available=available,
        unavailable_reason=reason,
    )


def changed_fields(before: LineItem, after: LineItem) -> tuple[str, ...]:
    """Names of fields whose values differ. Empty means the write can be skipped."""
    return tuple(
        f.name for f in fields(LineItem) if getattr(before, f.name) != getattr(after, f.name)
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Add-time price snapshot
# ═══════════════════════════════════════════════════════════════════════════════


def price_snapshot(
    product: ProductDetails,
    quantity: int,
    attributes: Iterable[Attribute | tuple[str, str]] = (),
    *,
    image: str | None = None,
    now: datetime | None = None,
) -> PriceSnapshot:
    """
    Provisional price of an add, resolved locally from product data.

    Good enough for a guest cart; the server reprices on sync.
    """
    attrs: Sequence[Attribute] = attributes_of(attributes)
    base = product.price or 0
    q = quote(
        base,
        quantity,
        sale=product.sale,
        tiers=product.pricing_tiers,
        attributes=attrs,
        now=now,
    )
    on_sale = q.tier is None and q.sale.has_active_sale
    return PriceSnapshot(
        unit_price=q.unit_price,
        sale=product.sale.id if on_sale and product.sale else None,
        sale_variant_index=q.sale.best_variant_index if on_sale else None,
        pricing_tier=q.tier,
        product=ProductSnapshot(
            name=product.name or product.id,
            price=base,
            sku=product.sku or product.id,
            image=image,
        ),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "find_matching",
    "fold_server_fields",
    "server_to_local",
    "changed_fields",
    "price_snapshot",
)
