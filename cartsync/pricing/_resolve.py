"""
Line item pricing — resolve sales against a cart entry.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from cartsync._types import Attribute
from cartsync.pricing._sale import active_attribute_for, calculate_best_sale
from cartsync.pricing._tiers import quote
from cartsync.pricing._types import Sale, SaleCalculation

if TYPE_CHECKING:
    from cartsync.store._types import LineItem

# Unit prices closer than this are considered equal.
PRICE_EPSILON = 0.005


def base_price_of(item: LineItem) -> float:
    """List price of the item's product, falling back to what was paid."""
    if item.product_details is not None and item.product_details.price is not None:
        return item.product_details.price
    if item.product_snapshot is not None:
        return item.product_snapshot.price
    return item.unit_price


def resolve(
    item: LineItem,
    sale: Sale | None = None,
    active_attribute: Attribute | None = None,
    *,
    now: datetime | None = None,
) -> SaleCalculation:
    """
    Resolve the best sale for a line item.

    sale defaults to the sale carried in the item's product details.
    active_attribute defaults to the item's own selection of the
    dimension the sale is scoped to.
    """
    if sale is None and item.product_details is not None:
        sale = item.product_details.sale
    if active_attribute is None:
        active_attribute = active_attribute_for(sale, item.attributes)
    return calculate_best_sale(sale, base_price_of(item), active_attribute, now=now)


def expected_unit_price(item: LineItem, *, now: datetime | None = None) -> float | None:
    """
    Unit price the server should charge, from the last product snapshot.

    None when the item carries no product details to price with.
    """
    details = item.product_details
    if details is None or details.price is None:
        return None
    return quote(
        details.price,
        item.quantity,
        sale=details.sale,
        tiers=details.pricing_tiers,
        attributes=item.attributes,
        now=now,
    ).unit_price


def needs_refresh(item: LineItem, *, now: datetime | None = None) -> bool:
    """
    True when the stored unit price disagrees with the locally resolved one.

    Only a hint for triggering a server sync; the server remains the
    price authority.
    """
    expected = expected_unit_price(item, now=now)
    if expected is None:
        return False
    return abs(expected - item.unit_price) > PRICE_EPSILON


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "PRICE_EPSILON",
    "base_price_of",
    "resolve",
    "expected_unit_price",
    "needs_refresh",
)
