"""
QuantityEditor — optimistic quantity edits with debounced commits.

Each edited item has two layers: `displayed` (what the shopper sees,
updated at once) and `committed` (what the store holds). Rapid edits of
one item collapse into a single engine update after the window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from cartsync.engine._debounce import KeyedDebouncer
from cartsync.engine._engine import ReconciliationEngine

logger = logging.getLogger(__name__)

MIN_QUANTITY = 1


@dataclass(slots=True)
class QuantityState:
    displayed: int
    committed: int

    @property
    def dirty(self) -> bool:
        return self.displayed != self.committed


class QuantityEditor:
    """
    Example:
        editor = QuantityEditor(engine)
        editor.increment(item.id)       # displayed 3, committed 2
        editor.increment(item.id)       # displayed 4, one commit pending
        await editor.flush()            # engine.update_item(item.id, quantity=4)
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        *,
        window: timedelta | None = None,
    ) -> None:
        self._engine = engine
        self._states: dict[str, QuantityState] = {}
        self._debouncer: KeyedDebouncer[str, int] = KeyedDebouncer(
            self._commit,
            window=window if window is not None else engine.store.policy.debounce_window,
        )

    @property
    def debouncer(self) -> KeyedDebouncer[str, int]:
        return self._debouncer

    def state(self, item_id: str) -> QuantityState | None:
        """Current two-layer state, seeded from the store for untouched items."""
        if item_id in self._states:
            return self._states[item_id]
        item = self._engine.store.find(item_id)
        if item is None:
            return None
        return QuantityState(displayed=item.quantity, committed=item.quantity)

    def displayed(self, item_id: str) -> int | None:
        state = self.state(item_id)
        return state.displayed if state is not None else None

    def set_quantity(self, item_id: str, quantity: int) -> QuantityState | None:
        """
        Show quantity immediately and schedule its commit.

        Quantities below 1 are raised to 1. Unavailable items are not
        editable. Returning to the committed value cancels the commit.
        """
        item = self._engine.store.find(item_id)
        if item is None:
            self._drop(item_id)
            return None
        if not item.is_available:
            logger.debug("Ignoring quantity edit of unavailable item %s", item_id)
            return self.state(item_id)

        quantity = max(MIN_QUANTITY, quantity)
        state = self._states.setdefault(
            item_id, QuantityState(displayed=item.quantity, committed=item.quantity)
        )
        state.committed = item.quantity
        state.displayed = quantity

        if not state.dirty:
            self._debouncer.cancel(item_id)
            del self._states[item_id]
            return QuantityState(displayed=quantity, committed=quantity)

        self._debouncer.submit(item_id, quantity)
        return state

    def increment(self, item_id: str, step: int = 1) -> QuantityState | None:
        current = self.displayed(item_id)
        if current is None:
            return None
        return self.set_quantity(item_id, current + step)

    def decrement(self, item_id: str, step: int = 1) -> QuantityState | None:
        current = self.displayed(item_id)
        if current is None:
            return None
        return self.set_quantity(item_id, current - step)

    def optimistic_subtotal(self) -> float:
        """Subtotal as displayed: stored unit price times displayed quantity."""
        total = 0.0
        for item in self._engine.store.items():
            state = self._states.get(item.id)
            if state is None:
                total += item.total_price
            else:
                total += item.unit_price * state.displayed
        return round(total, 2)

    async def flush(self) -> None:
        await self._debouncer.flush()

    async def close(self) -> None:
        await self._debouncer.close()
        self._states.clear()

    async def _commit(self, item_id: str, quantity: int) -> None:
        updated = await self._engine.update_item(item_id, quantity=quantity)
        state = self._states.get(item_id)
        if updated is None or updated.id != item_id:
            self._drop(item_id)
            return
        if state is None:
            return
        state.committed = updated.quantity
        if not state.dirty and not self._debouncer.is_pending(item_id):
            del self._states[item_id]

    def _drop(self, item_id: str) -> None:
        self._debouncer.cancel(item_id)
        self._states.pop(item_id, None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "MIN_QUANTITY",
    "QuantityState",
    "QuantityEditor",
)
