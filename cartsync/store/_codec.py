"""
Cart codec — the persisted JSON document.

Layout (camelCase, one storage key):

    {"items": [{"_id", "product", "qty", "selectedAttributes", ...}],
     "lastUpdated": "2024-01-01T00:00:00.000Z"}

No schema version exists: documents written by older releases must keep
decoding, so every field beyond identity and quantity is optional and
unknown keys are ignored. A malformed item is dropped on its own; a
malformed document raises CartDecodeError.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from cartsync._types import Attribute, parse_iso, to_iso
from cartsync.pricing._types import PricingTier, PricingTierSnapshot, Sale, SaleVariant
from cartsync.store._types import (
    Cart,
    LineItem,
    ProductAttribute,
    ProductDetails,
    ProductSnapshot,
    UnavailableReason,
    VariantOption,
)

logger = logging.getLogger(__name__)


class CartDecodeError(ValueError):
    """Persisted cart document could not be decoded."""


# ═══════════════════════════════════════════════════════════════════════════════
# Documents: shared with the gateway wire models
# ═══════════════════════════════════════════════════════════════════════════════


class Doc(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AttributeDoc(Doc):
    name: str
    value: str

    def to_domain(self) -> Attribute:
        return Attribute(self.name, self.value)

    @classmethod
    def from_domain(cls, attr: Attribute) -> AttributeDoc:
        return cls(name=attr.name, value=attr.value)


class PricingTierDoc(Doc):
    min_qty: int
    strategy: str
    value: float
    max_qty: int | None = None
    applied_price: float | None = None

    def to_domain(self) -> PricingTier:
        return PricingTier(
            min_qty=self.min_qty,
            strategy=self.strategy,
            value=self.value,
            max_qty=self.max_qty,
            applied_price=self.applied_price,
        )

    def to_snapshot(self) -> PricingTierSnapshot:
        return PricingTierSnapshot(
            min_qty=self.min_qty,
            strategy=self.strategy,
            value=self.value,
            applied_price=self.applied_price if self.applied_price is not None else 0,
            max_qty=self.max_qty,
        )

    @classmethod
    def from_snapshot(cls, tier: PricingTierSnapshot) -> PricingTierDoc:
        return cls(
            min_qty=tier.min_qty,
            strategy=tier.strategy,
            value=tier.value,
            max_qty=tier.max_qty,
            applied_price=tier.applied_price,
        )


class SaleVariantDoc(Doc):
    discount: float = 0
    amount_off: float = 0
    attribute_name: str | None = None
    attribute_value: str | None = None
    max_buys: int = 0
    bought_count: int = 0

    def to_domain(self) -> SaleVariant:
        return SaleVariant(
            discount=self.discount,
            amount_off=self.amount_off,
            attribute_name=self.attribute_name,
            attribute_value=self.attribute_value,
            max_buys=self.max_buys,
            bought_count=self.bought_count,
        )


class SaleDoc(Doc):
    id: str | None = Field(default=None, alias="_id")
    is_active: bool = True
    variants: list[SaleVariantDoc] = []
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_hot: bool = False

    @field_validator("start_date", "end_date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_domain(self) -> Sale:
        return Sale(
            id=self.id,
            is_active=self.is_active,
            variants=tuple(v.to_domain() for v in self.variants),
            start_date=self.start_date,
            end_date=self.end_date,
            is_hot=self.is_hot,
        )


class VariantOptionDoc(Doc):
    name: str
    stock: int = 0


class ProductAttributeDoc(Doc):
    name: str
    children: list[VariantOptionDoc] = []


class ProductSnapshotDoc(Doc):
    name: str
    price: float
    sku: str
    image: str | None = None

    def to_domain(self) -> ProductSnapshot:
        return ProductSnapshot(name=self.name, price=self.price, sku=self.sku, image=self.image)

    @classmethod
    def from_domain(cls, snap: ProductSnapshot) -> ProductSnapshotDoc:
        return cls(name=snap.name, price=snap.price, sku=snap.sku, image=snap.image)


class ProductDetailsDoc(Doc):
    id: str = Field(alias="_id")
    name: str | None = None
    price: float | None = None
    sku: str | None = None
    stock: int | None = None
    attributes: list[ProductAttributeDoc] = []
    pricing_tiers: list[PricingTierDoc] = []
    sale: SaleDoc | None = None

    def to_domain(self) -> ProductDetails:
        return ProductDetails(
            id=self.id,
            name=self.name,
            price=self.price,
            sku=self.sku,
            stock=self.stock,
            attributes=tuple(
                ProductAttribute(
                    name=a.name,
                    children=tuple(VariantOption(c.name, c.stock) for c in a.children),
                )
                for a in self.attributes
            ),
            pricing_tiers=tuple(t.to_domain() for t in self.pricing_tiers),
            sale=self.sale.to_domain() if self.sale is not None else None,
        )

    @classmethod
    def from_domain(cls, details: ProductDetails) -> ProductDetailsDoc:
        sale = details.sale
        return cls(
            id=details.id,
            name=details.name,
            price=details.price,
            sku=details.sku,
            stock=details.stock,
            attributes=[
                ProductAttributeDoc(
                    name=a.name,
                    children=[VariantOptionDoc(name=c.name, stock=c.stock) for c in a.children],
                )
                for a in details.attributes
            ],
            pricing_tiers=[
                PricingTierDoc(
                    min_qty=t.min_qty,
                    strategy=t.strategy,
                    value=t.value,
                    max_qty=t.max_qty,
                    applied_price=t.applied_price,
                )
                for t in details.pricing_tiers
            ],
            sale=None if sale is None else SaleDoc(
                id=sale.id,
                is_active=sale.is_active,
                variants=[
                    SaleVariantDoc(
                        discount=v.discount,
                        amount_off=v.amount_off,
                        attribute_name=v.attribute_name,
                        attribute_value=v.attribute_value,
                        max_buys=v.max_buys,
                        bought_count=v.bought_count,
                    )
                    for v in sale.variants
                ],
                start_date=sale.start_date,
                end_date=sale.end_date,
                is_hot=sale.is_hot,
            ),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Line Item Document
# ═══════════════════════════════════════════════════════════════════════════════


class LineItemDoc(Doc):
    id: str = Field(alias="_id")
    product: str
    qty: int = Field(gt=0)
    selected_attributes: list[AttributeDoc] = []
    unit_price: float = 0
    total_price: float | None = None
    sale: str | None = None
    sale_variant_index: int | None = None
    applied_discount: float | None = None
    discount_amount: float | None = None
    pricing_tier: PricingTierDoc | None = None
    server_item_id: str | None = None
    added_at: str | None = None
    product_snapshot: ProductSnapshotDoc | None = None
    product_details: ProductDetailsDoc | None = None
    is_available: bool | None = None
    unavailable_reason: UnavailableReason | None = None

    def to_domain(self, fallback_added_at: datetime) -> LineItem:
        return LineItem(
            id=self.id,
            product_id=self.product,
            quantity=self.qty,
            attributes=tuple(a.to_domain() for a in self.selected_attributes),
            unit_price=self.unit_price,
            total_price=(
                self.total_price if self.total_price is not None else self.unit_price * self.qty
            ),
            added_at=parse_iso(self.added_at) or fallback_added_at,
            server_item_id=self.server_item_id,
            sale=self.sale,
            sale_variant_index=self.sale_variant_index,
            applied_discount_percent=self.applied_discount,
            discount_amount=self.discount_amount,
            pricing_tier=self.pricing_tier.to_snapshot() if self.pricing_tier else None,
            product_snapshot=self.product_snapshot.to_domain() if self.product_snapshot else None,
            product_details=self.product_details.to_domain() if self.product_details else None,
            is_available=self.is_available if self.is_available is not None else True,
            unavailable_reason=self.unavailable_reason,
        )

    @classmethod
    def from_domain(cls, item: LineItem) -> LineItemDoc:
        return cls(
            id=item.id,
            product=item.product_id,
            qty=item.quantity,
            selected_attributes=[AttributeDoc.from_domain(a) for a in item.attributes],
            unit_price=item.unit_price,
            total_price=item.total_price,
            sale=item.sale,
            sale_variant_index=item.sale_variant_index,
            applied_discount=item.applied_discount_percent,
            discount_amount=item.discount_amount,
            pricing_tier=PricingTierDoc.from_snapshot(item.pricing_tier) if item.pricing_tier else None,
            server_item_id=item.server_item_id,
            added_at=to_iso(item.added_at),
            product_snapshot=(
                ProductSnapshotDoc.from_domain(item.product_snapshot) if item.product_snapshot else None
            ),
            product_details=(
                ProductDetailsDoc.from_domain(item.product_details) if item.product_details else None
            ),
            is_available=item.is_available,
            unavailable_reason=item.unavailable_reason,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Document
# ═══════════════════════════════════════════════════════════════════════════════


def encode_cart(cart: Cart) -> str:
    document = {
        "items": [LineItemDoc.from_domain(item).dump() for item in cart.items],
        "lastUpdated": to_iso(cart.last_updated),
    }
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"))


def decode_cart(blob: str, *, now: datetime) -> Cart:
    """
    Decode a persisted cart.

    Items missing addedAt inherit the document's lastUpdated (or now).
    """
    try:
        document = json.loads(blob)
    except json.JSONDecodeError as e:
        raise CartDecodeError(f"Cart document is not JSON: {e}") from e

    if not isinstance(document, dict):
        raise CartDecodeError("Cart document must be a JSON object")

    raw_items = document.get("items", [])
    if not isinstance(raw_items, list):
        raise CartDecodeError("Cart document 'items' must be a list")

    last_updated = parse_iso(document.get("lastUpdated")) or now
    items: list[LineItem] = []

    for index, raw in enumerate(raw_items):
        try:
            doc = LineItemDoc.model_validate(raw)
        except ValidationError as e:
            logger.warning("Dropping malformed cart item #%d: %s", index, e)
            continue
        items.append(doc.to_domain(fallback_added_at=last_updated))

    return Cart(items=tuple(items), last_updated=last_updated)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CartDecodeError",
    "Doc",
    "AttributeDoc",
    "PricingTierDoc",
    "SaleVariantDoc",
    "SaleDoc",
    "VariantOptionDoc",
    "ProductAttributeDoc",
    "ProductSnapshotDoc",
    "ProductDetailsDoc",
    "LineItemDoc",
    "encode_cart",
    "decode_cart",
)
