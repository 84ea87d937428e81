"""
Reconciliation engine — keep the local cart consistent with the server.

    from cartsync import engine as E

    session = E.CartSession()
    engine = E.ReconciliationEngine(store, gateway, session)

    session.login()
    await engine.merge_guest_cart()      # once per session; union, server wins on price
                                         # (an empty local cart loads the server cart)
    await engine.sync_from_server()      # fold pricing/stock, never re-add server-only items

    editor = E.QuantityEditor(engine)    # optimistic +/- with debounced commits

States:

    GUEST         → local store only, no server calls
    MERGING       → guest cart being pushed to the server (one-shot)
    SYNCHRONIZED  → every change mirrored; failures trigger a resync
"""

from cartsync.engine._availability import check_variant_stock, compute_availability
from cartsync.engine._match import (
    find_matching,
    fold_server_fields,
    server_to_local,
    changed_fields,
    price_snapshot,
)
from cartsync.engine._session import SessionState, CartSession
from cartsync.engine._types import (
    MergeStatus,
    PushReport,
    MergeOutcome,
    SyncOutcome,
    CartView,
)
from cartsync.engine._debounce import KeyedDebouncer
from cartsync.engine._engine import ReconciliationEngine
from cartsync.engine._optimistic import MIN_QUANTITY, QuantityState, QuantityEditor

__all__ = (
    # Availability
    "check_variant_stock",
    "compute_availability",
    # Matching
    "find_matching",
    "fold_server_fields",
    "server_to_local",
    "changed_fields",
    "price_snapshot",
    # Session
    "SessionState",
    "CartSession",
    # Outcomes
    "MergeStatus",
    "PushReport",
    "MergeOutcome",
    "SyncOutcome",
    "CartView",
    # Engine
    "KeyedDebouncer",
    "ReconciliationEngine",
    "MIN_QUANTITY",
    "QuantityState",
    "QuantityEditor",
)
