"""
ReconciliationEngine — local cart store ⇄ server cart gateway.

The local store is the user-visible truth. For an authenticated session
every structural change is mirrored to the server and the server's
pricing and availability are folded back. Network faults are logged and
never roll back the local mutation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from kungfu import Error, Ok

from cartsync._types import Attribute, Clock, attributes_of
from cartsync.engine._match import (
    changed_fields,
    find_matching,
    fold_server_fields,
    server_to_local,
)
from cartsync.engine._session import CartSession
from cartsync.engine._types import (
    CartView,
    MergeOutcome,
    MergeStatus,
    PushReport,
    SyncOutcome,
)
from cartsync.gateway._protocol import CartGateway
from cartsync.gateway._types import GatewayError, ServerCart, ServerCartItem
from cartsync.store._store import CartStore, to_base36, totals_of
from cartsync.store._types import (
    UNSET,
    Cart,
    CartSnapshot,
    ItemChanges,
    LineItem,
    PriceSnapshot,
)

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Cart reconciliation.

    Example:
        session = CartSession()
        engine = ReconciliationEngine(CartStore(storage), HttpGateway(policy), session)

        await engine.add_item("P1", 2, [Attribute("Size", "M")], price)   # guest: local only

        session.login()
        outcome = await engine.merge_guest_cart()    # once per session
        await engine.sync_from_server()              # fold server pricing/stock back
    """

    def __init__(
        self,
        store: CartStore,
        gateway: CartGateway,
        session: CartSession | None = None,
        *,
        now: Clock | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._session = session or CartSession()
        self._now = now or store.now

    @property
    def store(self) -> CartStore:
        return self._store

    @property
    def gateway(self) -> CartGateway:
        return self._gateway

    @property
    def session(self) -> CartSession:
        return self._session

    # ═══════════════════════════════════════════════════════════════════════════
    # Structural changes
    # ═══════════════════════════════════════════════════════════════════════════

    async def add_item(
        self,
        product_id: str,
        quantity: int,
        attributes: Iterable[Attribute | tuple[str, str]],
        price: PriceSnapshot,
    ) -> LineItem:
        """Add locally, then mirror to the server and fold its pricing back."""
        attrs = attributes_of(attributes)
        item = self._store.add(product_id, quantity, attrs, price)
        if self._session.is_guest:
            return item

        match await self._gateway.add_item(product_id, quantity, attrs):
            case Ok(server):
                return self._fold_one(item.id, server) or item
            case Error(e):
                logger.warning("Add of %s not mirrored to server: %s", product_id, e.message)
                return item

    async def update_item(
        self,
        item_id: str,
        *,
        quantity: int | None = None,
        attributes: Iterable[Attribute | tuple[str, str]] | None = None,
    ) -> LineItem | None:
        """
        Change quantity and/or attributes.

        Items never synced to the server, and failures other than
        NOT_FOUND, fall back to a full resync.
        """
        attrs = attributes_of(attributes) if attributes is not None else None
        item = self._store.update(
            item_id,
            ItemChanges(
                quantity=quantity if quantity is not None else UNSET,
                attributes=attrs if attrs is not None else UNSET,
            ),
        )
        if item is None or self._session.is_guest:
            return item

        if item.id != item_id:
            logger.info("Item %s folded into %s, resyncing cart", item_id, item.id)
            await self.resync()
            return self._store.find(item.id)

        if item.server_item_id is None:
            logger.info("Item %s has no server id, resyncing cart", item.id)
            await self.resync()
            return self._store.find(item.id)

        match await self._gateway.update_item(
            item.server_item_id, quantity=quantity, attributes=attrs
        ):
            case Ok(server):
                return self._fold_one(item.id, server) or item
            case Error(e) if e.is_not_found:
                logger.warning("Server item %s not found on update", item.server_item_id)
            case Error(e):
                logger.warning("Update of %s failed (%s), resyncing cart", item.id, e.message)
                await self.resync()
        return self._store.find(item.id)

    async def remove_item(self, item_id: str) -> bool:
        target = self._store.find(item_id)
        removed = self._store.remove(item_id)
        if not removed or self._session.is_guest or target is None:
            return removed

        if target.server_item_id is None:
            await self.resync()
            return removed

        match await self._gateway.remove_item(target.server_item_id):
            case Ok(_):
                pass
            case Error(e) if e.is_not_found:
                logger.info("Server item %s already gone", target.server_item_id)
            case Error(e):
                logger.warning("Remove of %s failed (%s), resyncing cart", item_id, e.message)
                await self.resync()
        return removed

    async def clear(self) -> None:
        self._store.clear()
        if self._session.is_guest:
            return
        match await self._gateway.clear_cart():
            case Ok(_):
                pass
            case Error(e) if e.is_not_found:
                pass
            case Error(e):
                logger.warning("Server cart clear failed: %s", e.message)

    # ═══════════════════════════════════════════════════════════════════════════
    # Merge: guest cart into the server cart, once per session
    # ═══════════════════════════════════════════════════════════════════════════

    async def merge_guest_cart(self) -> MergeOutcome:
        """
        Union the guest cart with the server cart and push it.

        Shared identities keep the local quantity and take the server's
        pricing. An empty local cart loads the server cart instead
        (LOADED). A failure leaves the local cart as it was
        and is not retried in this session.
        """
        if self._session.is_guest:
            return MergeOutcome(MergeStatus.NOT_AUTHENTICATED)
        if not self._session.begin_merge():
            return MergeOutcome(MergeStatus.ALREADY_MERGED)

        try:
            local = self._store.read()
            if local.is_empty:
                return await self._load_server_cart()

            logger.info("Merging %d guest cart item(s) with server cart", len(local.items))
            match await self._gateway.get_cart():
                case Ok(server):
                    pass
                case Error(e):
                    logger.error("Cart merge failed fetching server cart: %s", e.message)
                    return MergeOutcome(MergeStatus.FAILED, error=e)

            union = self._union(local, server)
            self._store.write(union)
            report = await self._push(union)
            logger.info(
                "Cart merge complete: %d item(s), %d pushed, %d failed",
                len(union.items), report.pushed, report.failed,
            )
            return MergeOutcome(MergeStatus.MERGED, items=len(union.items), push=report)
        finally:
            self._session.finish_merge()

    async def _load_server_cart(self) -> MergeOutcome:
        match await self._gateway.get_cart():
            case Ok(server):
                pass
            case Error(e):
                logger.error("Loading server cart failed: %s", e.message)
                return MergeOutcome(MergeStatus.FAILED, error=e)

        if not server.items:
            return MergeOutcome(MergeStatus.EMPTY)
        now = self._now()
        loaded = tuple(server_to_local(i, now=now) for i in server.items)
        self._store.write(Cart(items=loaded, last_updated=now))
        logger.info("Loaded %d item(s) from server cart", len(loaded))
        return MergeOutcome(MergeStatus.LOADED, items=len(loaded))

    def _union(self, local: Cart, server: ServerCart) -> Cart:
        now = self._now()
        items: list[LineItem] = []
        seen = set()
        for item in local.items:
            counterpart = server.find_identity(item.identity)
            items.append(fold_server_fields(item, counterpart) if counterpart else item)
            seen.add(item.identity)
        for server_item in server.items:
            if server_item.identity not in seen:
                items.append(server_to_local(server_item, now=now))
                seen.add(server_item.identity)
        return Cart(items=tuple(items), last_updated=now)

    # ═══════════════════════════════════════════════════════════════════════════
    # Resync: server cart rebuilt from the local cart
    # ═══════════════════════════════════════════════════════════════════════════

    async def resync(self) -> PushReport:
        """Clear the server cart, re-add every local item, re-fetch and backfill."""
        if self._session.is_guest:
            return PushReport()
        return await self._push(self._store.read())

    async def _push(self, cart: Cart) -> PushReport:
        errors: list[GatewayError] = []

        match await self._gateway.clear_cart():
            case Error(e) if not e.is_not_found:
                logger.warning("Unable to clear server cart before push: %s", e.message)
            case _:
                pass

        pushed = failed = 0
        for item in cart.items:
            match await self._gateway.add_item(item.product_id, item.quantity, item.attributes):
                case Ok(_):
                    pushed += 1
                case Error(e):
                    failed += 1
                    errors.append(e)
                    logger.error("Failed to push %s to server cart: %s", item.id, e.message)

        match await self._gateway.get_cart():
            case Ok(server):
                pass
            case Error(e):
                logger.error("Failed to refresh server cart after push: %s", e.message)
                errors.append(e)
                return PushReport(pushed, failed, refreshed=False, errors=tuple(errors))

        # Old server ids died with the clear; only identity matches count now.
        current = self._store.read()
        unmatched: list[str] = []
        items: list[LineItem] = []
        for item in current.items:
            counterpart = server.find_identity(item.identity)
            if counterpart is None:
                unmatched.append(item.id)
                items.append(item if item.server_item_id is None else _unlink(item))
            else:
                items.append(fold_server_fields(item, counterpart))

        if tuple(items) != current.items:
            self._store.write(Cart(items=tuple(items), last_updated=self._now()))

        return PushReport(
            pushed=pushed,
            failed=failed,
            unmatched=tuple(unmatched),
            refreshed=True,
            errors=tuple(errors),
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Steady-state sync: server pricing and availability into the local cart
    # ═══════════════════════════════════════════════════════════════════════════

    async def sync_from_server(self) -> SyncOutcome:
        """
        Fold the server cart into local items.

        Server-only items are never re-introduced, not even into an empty
        local cart. Nothing is written when no field changed.
        """
        if self._session.is_guest:
            return SyncOutcome()

        match await self._gateway.get_cart():
            case Ok(server):
                pass
            case Error(e):
                logger.warning("Cart sync failed: %s", e.message)
                return SyncOutcome(error=e)

        local = self._store.read()
        now = self._now()

        items: list[LineItem] = []
        updated = 0
        for item in local.items:
            server_item = find_matching(server, item)
            if server_item is None:
                items.append(item)
                continue
            folded = fold_server_fields(item, server_item)
            if changed_fields(item, folded):
                updated += 1
            items.append(folded)

        local_keys = {i.identity for i in local.items}
        server_only = sum(1 for s in server.items if s.identity not in local_keys)

        written = False
        if updated:
            written = self._store.write(Cart(items=tuple(items), last_updated=now))
        return SyncOutcome(updated=updated, skipped_server_only=server_only, written=written)

    # ═══════════════════════════════════════════════════════════════════════════
    # Snapshot: authoritative replacement of the local cart
    # ═══════════════════════════════════════════════════════════════════════════

    async def apply_snapshot(self, snapshot: CartSnapshot) -> Cart:
        """
        Replace the local cart with a server-provided snapshot.

        No merge logic: the snapshot is taken as-is. Authenticated
        sessions then push it to the server.
        """
        now = self._now()
        millis = int(now.timestamp() * 1000)
        items = tuple(
            LineItem(
                id=s.id or s.server_item_id or f"snapshot_{millis}_{to_base36(index)}",
                product_id=s.product_id,
                quantity=s.quantity,
                attributes=s.attributes,
                unit_price=s.unit_price,
                total_price=s.total_price if s.total_price is not None else s.unit_price * s.quantity,
                added_at=s.added_at or now,
                server_item_id=s.server_item_id,
                sale=s.sale,
                sale_variant_index=s.sale_variant_index,
                applied_discount_percent=s.applied_discount_percent,
                discount_amount=s.discount_amount,
                pricing_tier=s.pricing_tier,
                product_snapshot=s.product_snapshot,
                product_details=s.product_details,
            )
            for index, s in enumerate(snapshot.items)
        )
        cart = Cart(items=items, last_updated=now)
        self._store.write(cart)
        logger.info("Applied cart snapshot with %d item(s)", len(items))

        if self._session.is_authenticated:
            await self._push(cart)
            return self._store.read()
        return cart

    # ═══════════════════════════════════════════════════════════════════════════
    # View
    # ═══════════════════════════════════════════════════════════════════════════

    def cart_view(self) -> CartView:
        items = self._store.items()
        totals = totals_of(items)
        return CartView(
            items=items,
            subtotal=totals.subtotal,
            total_discount=totals.total_discount,
            total=totals.total,
            item_count=totals.item_count,
            has_items=bool(items),
            is_guest=self._session.is_guest,
        )

    # ───────────────────────────────────────────────────────────────────────────

    def _fold_one(self, item_id: str, server: ServerCart) -> LineItem | None:
        cart = self._store.read()
        item = cart.find(item_id)
        if item is None:
            return None
        server_item: ServerCartItem | None = find_matching(server, item)
        if server_item is None:
            logger.warning("No server item matches %s", item_id)
            return item
        folded = fold_server_fields(item, server_item)
        if changed_fields(item, folded):
            items = tuple(folded if i.id == item_id else i for i in cart.items)
            self._store.write(Cart(items=items, last_updated=self._now()))
        return folded


def _unlink(item: LineItem) -> LineItem:
    return replace(item, server_item_id=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("ReconciliationEngine",)
