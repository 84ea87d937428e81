"""
CartStore — the local cart behind a Storage port.

All mutation goes through read-modify-write of the whole cart blob.
Storage faults never reach the caller: reads degrade to an empty cart,
failed writes are logged and leave subscribers un-notified.
"""

from __future__ import annotations

import logging
import random
import string
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime

from cartsync._types import Attribute, Clock, attributes_of, identity_key, utc_now
from cartsync.config import Policy
from cartsync.store._codec import CartDecodeError, decode_cart, encode_cart
from cartsync.store._storage import Storage, StorageError
from cartsync.store._types import (
    UNSET,
    Cart,
    CartTotals,
    ItemChanges,
    ItemOverrides,
    LineItem,
    PriceSnapshot,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[Cart], None]
IdFactory = Callable[[datetime], str]

_BASE36 = string.digits + string.ascii_lowercase


def local_id(moment: datetime) -> str:
    """local_<epoch-ms>_<9 random base36 chars>."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"local_{int(moment.timestamp() * 1000)}_{suffix}"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if value == 0:
            return "".join(reversed(digits))


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Store
# ═══════════════════════════════════════════════════════════════════════════════


class CartStore:
    """
    Local cart store.

    Example:
        store = CartStore(MemoryStorage())
        item = store.add("P1", 2, [Attribute("Size", "M")], PriceSnapshot(unit_price=10))
        store.add("P1", 1, [Attribute("Size", "M")], PriceSnapshot(unit_price=10))
        assert store.find(item.id).quantity == 3

        unsubscribe = store.subscribe(lambda cart: render(cart))
    """

    def __init__(
        self,
        storage: Storage,
        policy: Policy | None = None,
        *,
        now: Clock = utc_now,
        id_factory: IdFactory | None = None,
    ) -> None:
        self._storage = storage
        self._policy = policy or Policy()
        self._now = now
        self._id_factory = id_factory or local_id
        self._subscribers: list[Subscriber] = []

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def key(self) -> str:
        return self._policy.storage_key

    def now(self) -> datetime:
        return self._now()

    # ───────────────────────────────────────────────────────────────────────────
    # Read / Write
    # ───────────────────────────────────────────────────────────────────────────

    def read(self) -> Cart:
        """
        Current cart with expired items purged.

        Never raises: absent, unreadable or corrupted state reads as empty.
        If expiry dropped anything, the purged cart is persisted.
        """
        now = self._now()
        try:
            blob = self._storage.read(self.key)
        except StorageError as e:
            logger.warning("Cart storage read failed for %r: %s", self.key, e.message)
            return Cart(items=(), last_updated=now)

        if blob is None:
            return Cart(items=(), last_updated=now)

        try:
            cart = decode_cart(blob, now=now)
        except CartDecodeError as e:
            logger.warning("Corrupted cart under %r, treating as empty: %s", self.key, e)
            return Cart(items=(), last_updated=now)

        fresh = tuple(i for i in cart.items if now - i.added_at <= self._policy.item_ttl)
        if len(fresh) == len(cart.items):
            return cart

        logger.info("Purged %d expired cart item(s)", len(cart.items) - len(fresh))
        purged = Cart(items=fresh, last_updated=now)
        self._persist(purged)
        return purged

    def write(self, cart: Cart) -> bool:
        """Replace the stored cart and notify subscribers. False if persisting failed."""
        if not self._persist(cart):
            return False
        self._publish(cart)
        return True

    def _persist(self, cart: Cart) -> bool:
        try:
            self._storage.write(self.key, encode_cart(cart))
        except StorageError as e:
            logger.error("Cart storage write failed for %r: %s", self.key, e.message)
            return False
        return True

    # ───────────────────────────────────────────────────────────────────────────
    # Mutations
    # ───────────────────────────────────────────────────────────────────────────

    def add(
        self,
        product_id: str,
        quantity: int,
        attributes: Iterable[Attribute | tuple[str, str]],
        price: PriceSnapshot,
        overrides: ItemOverrides | None = None,
    ) -> LineItem:
        """
        Add quantity of a variant.

        An item with the same identity absorbs the quantity and has its
        TTL renewed; otherwise a new item is appended.
        """
        if quantity <= 0:
            raise ValueError(f"quantity must be positive, got {quantity}")

        attrs = attributes_of(attributes)
        ov = overrides or ItemOverrides()
        cart = self.read()
        moment = ov.added_at or self._now()
        unit_price = ov.unit_price if ov.unit_price is not None else price.unit_price

        existing = cart.find_identity(identity_key(product_id, attrs))
        if existing is not None:
            qty = existing.quantity + quantity
            item = replace(
                existing,
                quantity=qty,
                unit_price=unit_price,
                total_price=ov.total_price if ov.total_price is not None else unit_price * qty,
                sale=price.sale,
                sale_variant_index=price.sale_variant_index,
                applied_discount_percent=_first(
                    ov.applied_discount_percent, existing.applied_discount_percent
                ),
                discount_amount=_first(ov.discount_amount, existing.discount_amount),
                pricing_tier=_first(ov.pricing_tier, existing.pricing_tier),
                server_item_id=_first(ov.server_item_id, existing.server_item_id),
                added_at=moment,
            )
            items = tuple(item if i.id == existing.id else i for i in cart.items)
        else:
            item = LineItem(
                id=ov.id or self._id_factory(moment),
                product_id=product_id,
                quantity=quantity,
                attributes=attrs,
                unit_price=unit_price,
                total_price=ov.total_price if ov.total_price is not None else unit_price * quantity,
                added_at=moment,
                server_item_id=ov.server_item_id,
                sale=price.sale,
                sale_variant_index=price.sale_variant_index,
                applied_discount_percent=ov.applied_discount_percent,
                discount_amount=ov.discount_amount,
                pricing_tier=ov.pricing_tier if ov.pricing_tier is not None else price.pricing_tier,
                product_snapshot=price.product,
            )
            items = (*cart.items, item)

        self.write(Cart(items=items, last_updated=moment))
        return item

    def update(self, item_id: str, changes: ItemChanges) -> LineItem | None:
        """
        Apply a partial update.

        total_price is recomputed as unit_price * quantity when either
        changed and no explicit total was given. added_at is refreshed
        unless supplied. Returns None (and logs) for an unknown id.

        An attribute change that collides with another item's identity
        folds this item into the other one, summing quantities.
        """
        if changes.quantity is not UNSET and changes.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {changes.quantity}")

        cart = self.read()
        current = cart.find(item_id)
        if current is None:
            logger.warning("Cart item not found: %s", item_id)
            return None

        fields = {
            name: value
            for name, value in (
                ("quantity", changes.quantity),
                ("attributes", changes.attributes),
                ("unit_price", changes.unit_price),
                ("sale", changes.sale),
                ("sale_variant_index", changes.sale_variant_index),
                ("applied_discount_percent", changes.applied_discount_percent),
                ("discount_amount", changes.discount_amount),
                ("pricing_tier", changes.pricing_tier),
                ("product_snapshot", changes.product_snapshot),
                ("product_details", changes.product_details),
                ("server_item_id", changes.server_item_id),
                ("is_available", changes.is_available),
                ("unavailable_reason", changes.unavailable_reason),
            )
            if value is not UNSET
        }
        if "attributes" in fields:
            fields["attributes"] = attributes_of(fields["attributes"])

        moment = self._now()
        item = replace(current, **fields)

        if changes.total_price is not UNSET:
            item = replace(item, total_price=changes.total_price)
        elif changes.quantity is not UNSET or changes.unit_price is not UNSET:
            item = replace(item, total_price=item.unit_price * item.quantity)

        item = replace(item, added_at=changes.added_at if changes.added_at is not UNSET else moment)

        collision = next(
            (i for i in cart.items if i.id != item.id and i.identity == item.identity),
            None,
        )
        if collision is not None:
            qty = collision.quantity + item.quantity
            item = replace(
                collision,
                quantity=qty,
                total_price=collision.unit_price * qty,
                added_at=item.added_at,
            )
            items = tuple(
                item if i.id == collision.id else i for i in cart.items if i.id != current.id
            )
        else:
            items = tuple(item if i.id == current.id else i for i in cart.items)

        self.write(Cart(items=items, last_updated=moment))
        return item

    def remove(self, item_id: str) -> bool:
        cart = self.read()
        items = tuple(i for i in cart.items if i.id != item_id)
        if len(items) == len(cart.items):
            return False
        self.write(Cart(items=items, last_updated=self._now()))
        return True

    def clear(self) -> None:
        """Drop the stored cart entirely and publish an empty cart."""
        try:
            self._storage.remove(self.key)
        except StorageError as e:
            logger.error("Cart storage clear failed for %r: %s", self.key, e.message)
            return
        self._publish(Cart(items=(), last_updated=self._now()))

    # ───────────────────────────────────────────────────────────────────────────
    # Queries
    # ───────────────────────────────────────────────────────────────────────────

    def items(self) -> tuple[LineItem, ...]:
        return self.read().items

    def find(self, item_id: str) -> LineItem | None:
        return self.read().find(item_id)

    def item_count(self) -> int:
        return sum(i.quantity for i in self.read().items)

    def has_items(self) -> bool:
        return not self.read().is_empty

    def totals(self) -> CartTotals:
        return totals_of(self.read().items)

    # ───────────────────────────────────────────────────────────────────────────
    # Observers
    # ───────────────────────────────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call callback with the new cart after every write. Returns unsubscribe."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, cart: Cart) -> None:
        for callback in list(self._subscribers):
            try:
                callback(cart)
            except Exception:
                logger.exception("Cart subscriber %r failed", callback)


def totals_of(items: Iterable[LineItem]) -> CartTotals:
    """Totals of local items. No shipping or tax: total equals subtotal."""
    items = tuple(items)
    subtotal = sum(i.total_price for i in items)
    return CartTotals(
        item_count=sum(i.quantity for i in items),
        subtotal=subtotal,
        total_discount=sum(i.discount_amount or 0 for i in items),
        total=subtotal,
    )


def _first(*values):
    return next((v for v in values if v is not None), None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Subscriber",
    "IdFactory",
    "local_id",
    "to_base36",
    "CartStore",
    "totals_of",
)
