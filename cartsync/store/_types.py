"""
Cart types — line items and the cart aggregate.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, StrEnum, auto
from typing import Literal, TypeAlias, TypeVar, Union

from cartsync._types import Attribute, Attributes, IdentityKey, identity_key
from cartsync.pricing._types import PricingTier, PricingTierSnapshot, Sale

T = TypeVar("T")

# ═══════════════════════════════════════════════════════════════════════════════
# Availability
# ═══════════════════════════════════════════════════════════════════════════════


class UnavailableReason(StrEnum):
    OUT_OF_STOCK = "out_of_stock"
    VARIANT_UNAVAILABLE = "variant_unavailable"
    PRODUCT_DELETED = "product_deleted"


# ═══════════════════════════════════════════════════════════════════════════════
# Product Data: snapshots carried on line items
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ProductSnapshot:
    """Display data captured when the item was added."""

    name: str
    price: float
    sku: str
    image: str | None = None


@dataclass(frozen=True, slots=True)
class VariantOption:
    """One value of a product attribute, with its own stock."""

    name: str
    stock: int = 0


@dataclass(frozen=True, slots=True)
class ProductAttribute:
    name: str
    children: tuple[VariantOption, ...] = ()


@dataclass(frozen=True, slots=True)
class ProductDetails:
    """
    Server-side product summary attached to a server cart item.

    A server item without details means the product was deleted.
    """

    id: str
    name: str | None = None
    price: float | None = None
    sku: str | None = None
    stock: int | None = None
    attributes: tuple[ProductAttribute, ...] = ()
    pricing_tiers: tuple[PricingTier, ...] = ()
    sale: Sale | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Line Item: the core entity
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineItem:
    """
    One cart entry.

    id is the client-local identity; server_item_id appears once the item
    exists in the server cart. product_id and attributes form the identity
    key; reconciliation never changes them.

    unit_price/total_price are the price snapshot of the last sync.
    added_at doubles as "last touched" and the expiry basis.
    """

    id: str
    product_id: str
    quantity: int
    attributes: Attributes
    unit_price: float
    total_price: float
    added_at: datetime
    server_item_id: str | None = None
    sale: str | None = None
    sale_variant_index: int | None = None
    applied_discount_percent: float | None = None
    discount_amount: float | None = None
    pricing_tier: PricingTierSnapshot | None = None
    product_snapshot: ProductSnapshot | None = None
    product_details: ProductDetails | None = None
    is_available: bool = True
    unavailable_reason: UnavailableReason | None = None

    @property
    def identity(self) -> IdentityKey:
        return identity_key(self.product_id, self.attributes)

    @property
    def display_reason(self) -> UnavailableReason | None:
        """Reason shown to shoppers: deleted products read as out of stock."""
        if self.unavailable_reason is UnavailableReason.PRODUCT_DELETED:
            return UnavailableReason.OUT_OF_STOCK
        return self.unavailable_reason


# ═══════════════════════════════════════════════════════════════════════════════
# Cart: ordered line items
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Cart:
    """Insertion-ordered line items plus the last write time."""

    items: tuple[LineItem, ...]
    last_updated: datetime

    def find(self, item_id: str) -> LineItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def find_identity(self, key: IdentityKey) -> LineItem | None:
        return next((i for i in self.items if i.identity == key), None)

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True, slots=True)
class CartTotals:
    item_count: int
    subtotal: float
    total_discount: float
    total: float


# ═══════════════════════════════════════════════════════════════════════════════
# Mutation Inputs
# ═══════════════════════════════════════════════════════════════════════════════


class _Unset(Enum):
    UNSET = auto()


UNSET = _Unset.UNSET
"""Marker for "field not supplied" in partial updates."""

Maybe: TypeAlias = Union[T, Literal[_Unset.UNSET]]


@dataclass(frozen=True, slots=True)
class PriceSnapshot:
    """Price information known at add time."""

    unit_price: float
    sale: str | None = None
    sale_variant_index: int | None = None
    pricing_tier: PricingTierSnapshot | None = None
    product: ProductSnapshot | None = None


@dataclass(frozen=True, slots=True)
class ItemOverrides:
    """Server-provided values that take precedence on add."""

    id: str | None = None
    server_item_id: str | None = None
    unit_price: float | None = None
    total_price: float | None = None
    applied_discount_percent: float | None = None
    discount_amount: float | None = None
    pricing_tier: PricingTierSnapshot | None = None
    added_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ItemChanges:
    """
    Partial update of a line item. Unset fields are left alone.

    Note: server_item_id=None clears the server link; UNSET keeps it.
    """

    quantity: Maybe[int] = UNSET
    attributes: Maybe[Attributes] = UNSET
    unit_price: Maybe[float] = UNSET
    total_price: Maybe[float] = UNSET
    sale: Maybe[str | None] = UNSET
    sale_variant_index: Maybe[int | None] = UNSET
    applied_discount_percent: Maybe[float | None] = UNSET
    discount_amount: Maybe[float | None] = UNSET
    pricing_tier: Maybe[PricingTierSnapshot | None] = UNSET
    product_snapshot: Maybe[ProductSnapshot | None] = UNSET
    product_details: Maybe[ProductDetails | None] = UNSET
    server_item_id: Maybe[str | None] = UNSET
    is_available: Maybe[bool] = UNSET
    unavailable_reason: Maybe[UnavailableReason | None] = UNSET
    added_at: Maybe[datetime] = UNSET


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshot: authoritative cart contents from the server
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SnapshotItem:
    """
    Item of a server-provided cart snapshot.

    Optional fields follow the server payload; missing ids are generated
    when the snapshot is applied.
    """

    product_id: str
    quantity: int
    unit_price: float
    id: str | None = None
    total_price: float | None = None
    attributes: Attributes = ()
    product_snapshot: ProductSnapshot | None = None
    sale: str | None = None
    sale_variant_index: int | None = None
    applied_discount_percent: float | None = None
    discount_amount: float | None = None
    pricing_tier: PricingTierSnapshot | None = None
    server_item_id: str | None = None
    added_at: datetime | None = None
    product_details: ProductDetails | None = None


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    items: tuple[SnapshotItem, ...] = ()
    subtotal: float | None = None
    total: float | None = None
    total_discount: float | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Attribute",
    "UnavailableReason",
    "ProductSnapshot",
    "VariantOption",
    "ProductAttribute",
    "ProductDetails",
    "LineItem",
    "Cart",
    "CartTotals",
    "UNSET",
    "Maybe",
    "PriceSnapshot",
    "ItemOverrides",
    "ItemChanges",
    "SnapshotItem",
    "CartSnapshot",
)
