"""
MemoryGateway — an in-process authoritative cart server.

Prices every item with the pricing resolver against its own catalog, so
tests can change prices, stock or sales "on the server" and watch the
engine reconcile. Not thread-safe; one event loop only.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from kungfu import Error, Ok, Result

from cartsync._types import Attribute, Clock, attributes_of, identity_key, utc_now
from cartsync.gateway._types import (
    GatewayError,
    GatewayErrorKind,
    ServerCart,
    ServerCartItem,
    ShippingEstimate,
)
from cartsync.pricing._tiers import quote
from cartsync.pricing._types import PricingTier, Sale
from cartsync.store._types import (
    ProductAttribute,
    ProductDetails,
    ProductSnapshot,
    VariantOption,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CatalogProduct:
    """
    A product as the server knows it.

    Example:
        CatalogProduct(
            id="P1", name="Tee", price=10, stock=50,
            attributes=(ProductAttribute("Size", (VariantOption("M", 5),)),),
        )
    """

    id: str
    name: str
    price: float
    stock: int = 0
    sku: str | None = None
    image: str | None = None
    attributes: tuple[ProductAttribute, ...] = ()
    pricing_tiers: tuple[PricingTier, ...] = ()
    sale: Sale | None = None

    def details(self) -> ProductDetails:
        return ProductDetails(
            id=self.id,
            name=self.name,
            price=self.price,
            sku=self.sku or self.id,
            stock=self.stock,
            attributes=self.attributes,
            pricing_tiers=self.pricing_tiers,
            sale=self.sale,
        )

    def snapshot(self) -> ProductSnapshot:
        return ProductSnapshot(name=self.name, price=self.price, sku=self.sku or self.id, image=self.image)


@dataclass(slots=True)
class _Line:
    id: str
    product_id: str
    quantity: int
    attributes: tuple[Attribute, ...]
    added_at: datetime


@dataclass(slots=True)
class Call:
    """One recorded gateway call."""

    method: str
    args: tuple[Any, ...] = ()
    failed: GatewayErrorKind | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Gateway
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryGateway:
    """
    In-memory CartGateway.

    Example:
        gateway = MemoryGateway([CatalogProduct(id="P1", name="Tee", price=10, stock=5)])
        gateway.fail_next(GatewayErrorKind.TIMEOUT)   # next call fails
        gateway.set_stock("P1", 1)                    # oversell existing lines
        gateway.queue_checkout_response({"needsUpdate": True, ...})
    """

    def __init__(
        self,
        catalog: Iterable[CatalogProduct] = (),
        *,
        now: Clock = utc_now,
        shipping: ShippingEstimate | None = None,
    ) -> None:
        self._catalog: dict[str, CatalogProduct] = {p.id: p for p in catalog}
        self._now = now
        self._shipping = shipping
        self._lines: list[_Line] = []
        self._seq = 0
        self._failures: deque[GatewayErrorKind] = deque()
        self._checkout_responses: deque[dict[str, Any]] = deque()
        self.calls: list[Call] = []

    # ───────────────────────────────────────────────────────────────────────────
    # Server-side controls
    # ───────────────────────────────────────────────────────────────────────────

    def put_product(self, product: CatalogProduct) -> None:
        self._catalog[product.id] = product

    def product(self, product_id: str) -> CatalogProduct | None:
        return self._catalog.get(product_id)

    def delete_product(self, product_id: str) -> None:
        """Remove from the catalog; cart lines stay but lose their details."""
        self._catalog.pop(product_id, None)

    def set_price(self, product_id: str, price: float) -> None:
        self._catalog[product_id] = replace(self._catalog[product_id], price=price)

    def set_sale(self, product_id: str, sale: Sale | None) -> None:
        self._catalog[product_id] = replace(self._catalog[product_id], sale=sale)

    def set_stock(self, product_id: str, stock: int, *, variant: Attribute | None = None) -> None:
        """Set base stock, or the stock of one variant value."""
        product = self._catalog[product_id]
        if variant is None:
            self._catalog[product_id] = replace(product, stock=stock)
            return
        attributes = tuple(
            ProductAttribute(
                name=attr.name,
                children=tuple(
                    VariantOption(child.name, stock)
                    if attr.name == variant.name and child.name == variant.value
                    else child
                    for child in attr.children
                ),
            )
            for attr in product.attributes
        )
        self._catalog[product_id] = replace(product, attributes=attributes)

    def seed(
        self,
        product_id: str,
        quantity: int,
        attributes: Iterable[Attribute | tuple[str, str]] = (),
    ) -> str:
        """Put a line in the server cart without recording a call. Returns its id."""
        return self._upsert(product_id, quantity, attributes_of(attributes)).id

    def fail_next(self, kind: GatewayErrorKind, times: int = 1) -> None:
        """Make the next `times` calls fail with kind."""
        self._failures.extend([kind] * times)

    def queue_checkout_response(self, payload: Mapping[str, Any]) -> None:
        """Return payload from the next submit_checkout instead of placing an order."""
        self._checkout_responses.append(dict(payload))

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c.method == method and c.failed is None)

    @property
    def cart(self) -> ServerCart:
        return self._render()

    # ───────────────────────────────────────────────────────────────────────────
    # CartGateway
    # ───────────────────────────────────────────────────────────────────────────

    async def get_cart(self) -> Result[ServerCart, GatewayError]:
        if failure := self._record("get_cart"):
            return Error(failure)
        return Ok(self._render())

    async def add_item(
        self,
        product_id: str,
        quantity: int,
        attributes: Sequence[Attribute],
    ) -> Result[ServerCart, GatewayError]:
        if failure := self._record("add_item", product_id, quantity, tuple(attributes)):
            return Error(failure)
        if product_id not in self._catalog:
            return Error(_http(400, f"Unknown product {product_id}"))
        if quantity <= 0:
            return Error(_http(400, "qty must be positive"))
        self._upsert(product_id, quantity, tuple(attributes))
        return Ok(self._render())

    async def update_item(
        self,
        server_item_id: str,
        *,
        quantity: int | None = None,
        attributes: Sequence[Attribute] | None = None,
    ) -> Result[ServerCart, GatewayError]:
        if failure := self._record("update_item", server_item_id, quantity, attributes):
            return Error(failure)
        line = self._line(server_item_id)
        if line is None:
            return Error(_not_found(f"Cart item {server_item_id} not found"))
        if quantity is not None:
            if quantity <= 0:
                return Error(_http(400, "qty must be positive"))
            line.quantity = quantity
        if attributes is not None:
            line.attributes = tuple(attributes)
        line.added_at = self._now()
        return Ok(self._render())

    async def remove_item(self, server_item_id: str) -> Result[None, GatewayError]:
        if failure := self._record("remove_item", server_item_id):
            return Error(failure)
        line = self._line(server_item_id)
        if line is None:
            return Error(_not_found(f"Cart item {server_item_id} not found"))
        self._lines.remove(line)
        return Ok(None)

    async def clear_cart(self) -> Result[None, GatewayError]:
        if failure := self._record("clear_cart"):
            return Error(failure)
        self._lines.clear()
        return Ok(None)

    async def submit_checkout(
        self,
        payload: Mapping[str, Any],
    ) -> Result[dict[str, Any], GatewayError]:
        if failure := self._record("submit_checkout", dict(payload)):
            return Error(failure)
        if self._checkout_responses:
            return Ok(self._checkout_responses.popleft())

        cart = self._render()
        self._seq += 1
        order_id = f"order_{self._seq}"
        self._lines.clear()
        shipping = cart.estimated_shipping.cost if cart.estimated_shipping else 0
        reference = f"ref_{self._seq}"
        return Ok(
            {
                "orderId": order_id,
                "order": {
                    "_id": order_id,
                    "subtotal": cart.subtotal,
                    "total": round(cart.total + shipping, 2),
                },
                "payment": {
                    "paymentUrl": f"https://pay.example/{reference}",
                    "reference": reference,
                },
            }
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Internals
    # ───────────────────────────────────────────────────────────────────────────

    def _record(self, method: str, *args: Any) -> GatewayError | None:
        kind = self._failures.popleft() if self._failures else None
        self.calls.append(Call(method=method, args=args, failed=kind))
        if kind is None:
            return None
        logger.debug("Injected %s failure for %s", kind, method)
        status = {GatewayErrorKind.NOT_FOUND: 404, GatewayErrorKind.HTTP: 500}.get(kind)
        return GatewayError(kind, f"Injected {kind} failure", status=status)

    def _line(self, server_item_id: str) -> _Line | None:
        return next((line for line in self._lines if line.id == server_item_id), None)

    def _upsert(self, product_id: str, quantity: int, attributes: tuple[Attribute, ...]) -> _Line:
        key = identity_key(product_id, attributes)
        for line in self._lines:
            if identity_key(line.product_id, line.attributes) == key:
                line.quantity += quantity
                line.added_at = self._now()
                return line
        self._seq += 1
        line = _Line(
            id=f"srv_{self._seq}",
            product_id=product_id,
            quantity=quantity,
            attributes=attributes,
            added_at=self._now(),
        )
        self._lines.append(line)
        return line

    def _render(self) -> ServerCart:
        items = tuple(self._price(line) for line in self._lines)
        subtotal = round(sum(i.total_price for i in items), 2)
        total_discount = round(sum(i.discount_amount or 0 for i in items), 2)
        return ServerCart(
            id="server-cart",
            items=items,
            subtotal=subtotal,
            total_discount=total_discount,
            total=subtotal,
            estimated_shipping=self._shipping,
            last_activity=self._now(),
        )

    def _price(self, line: _Line) -> ServerCartItem:
        product = self._catalog.get(line.product_id)
        if product is None:
            # Deleted product: no details and nothing to charge.
            return ServerCartItem(
                id=line.id,
                product_id=line.product_id,
                quantity=line.quantity,
                attributes=line.attributes,
                unit_price=0,
                total_price=0,
                added_at=line.added_at,
            )

        q = quote(
            product.price,
            line.quantity,
            sale=product.sale,
            tiers=product.pricing_tiers,
            attributes=line.attributes,
            now=self._now(),
        )
        on_sale = q.tier is None and q.sale.has_active_sale
        return ServerCartItem(
            id=line.id,
            product_id=line.product_id,
            quantity=line.quantity,
            attributes=line.attributes,
            unit_price=q.unit_price,
            total_price=round(q.unit_price * line.quantity, 2),
            added_at=line.added_at,
            sale=product.sale.id if on_sale and product.sale else None,
            sale_variant_index=q.sale.best_variant_index if on_sale else None,
            applied_discount_percent=q.sale.percent_off if on_sale else None,
            discount_amount=round(q.discount_amount * line.quantity, 2) if on_sale else None,
            pricing_tier=q.tier,
            product_snapshot=product.snapshot(),
            product_details=product.details(),
        )


def _http(status: int, message: str) -> GatewayError:
    return GatewayError(GatewayErrorKind.HTTP, message, status=status)


def _not_found(message: str) -> GatewayError:
    return GatewayError(GatewayErrorKind.NOT_FOUND, message, status=404)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CatalogProduct",
    "Call",
    "MemoryGateway",
)
