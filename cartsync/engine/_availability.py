"""
Availability — recomputed from the latest server product details.
"""

from __future__ import annotations

from collections.abc import Sequence

from cartsync._types import Attribute
from cartsync.store._types import ProductDetails, UnavailableReason


def check_variant_stock(
    details: ProductDetails,
    attributes: Sequence[Attribute],
) -> int | None:
    """
    Stock of the selected variant.

    A product without attribute definitions reports its base stock.
    Otherwise the first product attribute the selection names, whose
    value exists among its children, decides. None when no variant matches.
    """
    if not details.attributes:
        return details.stock or 0

    for attr in details.attributes:
        selected = next((a for a in attributes if a.name == attr.name), None)
        if selected is None:
            continue
        variant = next((c for c in attr.children if c.name == selected.value), None)
        if variant is not None:
            return variant.stock

    return None


def compute_availability(
    details: ProductDetails | None,
    attributes: Sequence[Attribute],
    quantity: int,
) -> tuple[bool, UnavailableReason | None]:
    """
    (is_available, reason) for a requested quantity.

    Example:
        compute_availability(None, (), 1)
        # → (False, UnavailableReason.PRODUCT_DELETED)
    """
    if details is None:
        return False, UnavailableReason.PRODUCT_DELETED

    if attributes:
        stock = check_variant_stock(details, attributes)
        if stock is None:
            return False, UnavailableReason.VARIANT_UNAVAILABLE
        if stock < quantity:
            return False, UnavailableReason.OUT_OF_STOCK
        return True, None

    if (details.stock or 0) < quantity:
        return False, UnavailableReason.OUT_OF_STOCK
    return True, None


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "check_variant_stock",
    "compute_availability",
)
