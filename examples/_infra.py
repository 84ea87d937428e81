"""Shared infrastructure for examples."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass

from cartsync import engine as E
from cartsync import gateway as G
from cartsync import store as S
from cartsync.config import Policy


# Catalog
TEE = G.CatalogProduct(
    id="P1",
    name="Tee",
    price=10,
    stock=50,
    attributes=(
        S.ProductAttribute("Size", (S.VariantOption("M", 5), S.VariantOption("L", 5))),
    ),
)
MUG = G.CatalogProduct(id="P2", name="Mug", price=4, stock=20)


# Wiring
@dataclass(frozen=True, slots=True)
class Shop:
    store: S.CartStore
    gateway: G.MemoryGateway
    session: E.CartSession
    engine: E.ReconciliationEngine


def shop(policy: Policy | None = None) -> Shop:
    store = S.CartStore(S.MemoryStorage(), policy=policy)
    gateway = G.MemoryGateway([TEE, MUG])
    session = E.CartSession()
    return Shop(store, gateway, session, E.ReconciliationEngine(store, gateway, session))


# Helpers
def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def show(view: E.CartView) -> None:
    for item in view.items:
        attrs = ", ".join(f"{a.name}={a.value}" for a in item.attributes) or "-"
        flag = "" if item.is_available else f"  [{item.display_reason}]"
        print(f"   {item.product_id} ({attrs}) x{item.quantity} @ {item.unit_price:.2f}{flag}")
    print(f"   subtotal={view.subtotal:.2f} total={view.total:.2f} guest={view.is_guest}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    logging.basicConfig(level=logging.INFO, format="   %(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
