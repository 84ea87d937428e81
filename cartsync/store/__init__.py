"""
Local cart store — line items persisted behind a Storage port.

    from cartsync import store as S

    cart = S.CartStore(S.MemoryStorage())
    item = cart.add("P1", 2, [("Size", "M")], S.PriceSnapshot(unit_price=10))
    cart.update(item.id, S.ItemChanges(quantity=5))
    cart.totals().subtotal  # 50

Storage backends:

    MemoryStorage       → tests, single process (optional byte quota)
    FileStorage         → one JSON file per key
    SQLAlchemyStorage   → key/blob table via CartBlobMixin

Invariants:

    identity    → (product_id, attribute set); never two items per identity
    expiry      → items untouched longer than Policy.item_ttl vanish on read
    faults      → storage and decode errors read as an empty cart
"""

from cartsync.store._types import (
    UnavailableReason,
    ProductSnapshot,
    VariantOption,
    ProductAttribute,
    ProductDetails,
    LineItem,
    Cart,
    CartTotals,
    UNSET,
    Maybe,
    PriceSnapshot,
    ItemOverrides,
    ItemChanges,
    SnapshotItem,
    CartSnapshot,
)
from cartsync.store._codec import (
    CartDecodeError,
    encode_cart,
    decode_cart,
)
from cartsync.store._storage import (
    StorageError,
    QuotaExceededError,
    Storage,
    MemoryStorage,
    FileStorage,
)
from cartsync.store._sqlalchemy import (
    CartBlobMixin,
    SQLAlchemyStorage,
)
from cartsync.store._store import (
    Subscriber,
    local_id,
    to_base36,
    CartStore,
    totals_of,
)

__all__ = (
    # Types
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
    # Codec
    "CartDecodeError",
    "encode_cart",
    "decode_cart",
    # Storage
    "StorageError",
    "QuotaExceededError",
    "Storage",
    "MemoryStorage",
    "FileStorage",
    "CartBlobMixin",
    "SQLAlchemyStorage",
    # Store
    "Subscriber",
    "local_id",
    "to_base36",
    "CartStore",
    "totals_of",
)
