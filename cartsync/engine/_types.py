"""
Engine result types — what an operation did.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from cartsync.gateway._types import GatewayError
from cartsync.store._types import LineItem


class MergeStatus(StrEnum):
    MERGED = "merged"
    LOADED = "loaded"
    EMPTY = "empty"
    ALREADY_MERGED = "already_merged"
    NOT_AUTHENTICATED = "not_authenticated"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PushReport:
    """
    Outcome of pushing the local cart to the server.

    unmatched: local item ids with no server counterpart afterwards;
    they are left without a server id so their next edit resyncs.
    """

    pushed: int = 0
    failed: int = 0
    unmatched: tuple[str, ...] = ()
    refreshed: bool = False
    errors: tuple[GatewayError, ...] = ()

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.refreshed


@dataclass(frozen=True, slots=True)
class MergeOutcome:
    status: MergeStatus
    items: int = 0
    push: PushReport | None = None
    error: GatewayError | None = None

    @property
    def merged(self) -> bool:
        return self.status is MergeStatus.MERGED


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """
    Outcome of folding the server cart into the local cart.

    written is False when nothing changed (or the sync failed).
    """

    updated: int = 0
    skipped_server_only: int = 0
    written: bool = False
    error: GatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class CartView:
    """Unified cart as the UI renders it."""

    items: tuple[LineItem, ...]
    subtotal: float
    total_discount: float
    total: float
    item_count: int
    has_items: bool
    is_guest: bool

    @property
    def unavailable(self) -> tuple[LineItem, ...]:
        return tuple(i for i in self.items if not i.is_available)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "MergeStatus",
    "PushReport",
    "MergeOutcome",
    "SyncOutcome",
    "CartView",
)
