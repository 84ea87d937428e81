"""
KeyedDebouncer — per-key quiescence timers on asyncio.

A submit for a key replaces that key's pending payload and restarts its
timer. Once a timer fires, the action is in flight and a later submit
starts a new timer instead of cancelling it. Keys are independent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from datetime import timedelta
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
P = TypeVar("P")

Action = Callable[[K, P], Awaitable[None]]


class KeyedDebouncer(Generic[K, P]):
    """
    Debounce async actions per key.

    Example:
        debouncer = KeyedDebouncer(commit_quantity, window=timedelta(milliseconds=400))
        debouncer.submit("item-1", 2)
        debouncer.submit("item-1", 3)     # replaces 2; one commit with 3
        await debouncer.flush()           # or wait for the window to pass

    Note: submit() must be called from inside a running event loop.
    """

    def __init__(
        self,
        action: Action[K, P],
        *,
        window: timedelta | float = timedelta(milliseconds=400),
    ) -> None:
        self._action = action
        self._window = window.total_seconds() if isinstance(window, timedelta) else float(window)
        self._timers: dict[K, asyncio.Task[None]] = {}
        self._payloads: dict[K, P] = {}
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def window(self) -> float:
        return self._window

    def submit(self, key: K, payload: P) -> None:
        """Schedule action(key, payload) after the window, replacing any pending one."""
        previous = self._timers.pop(key, None)
        if previous is not None:
            previous.cancel()
        self._payloads[key] = payload
        self._timers[key] = asyncio.get_running_loop().create_task(self._fire(key))

    def cancel(self, key: K) -> bool:
        """Drop the pending action for key. True if one was pending."""
        timer = self._timers.pop(key, None)
        self._payloads.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def pending(self) -> dict[K, P]:
        """Payloads waiting for their window, by key."""
        return dict(self._payloads)

    def is_pending(self, key: K) -> bool:
        return key in self._timers

    async def flush(self) -> None:
        """Run every pending action now and wait for all in-flight actions."""
        runs = []
        for key in list(self._timers):
            self._timers.pop(key).cancel()
            runs.append(self._run(key, self._payloads.pop(key)))
        if runs:
            await asyncio.gather(*runs)
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait until no action is running. Pending timers are left alone."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def close(self) -> None:
        """Cancel pending actions and wait for in-flight ones."""
        for key in list(self._timers):
            self.cancel(key)
        await self.wait_idle()

    async def _fire(self, key: K) -> None:
        await asyncio.sleep(self._window)
        task = self._timers.pop(key)
        payload = self._payloads.pop(key)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        await self._run(key, payload)

    async def _run(self, key: K, payload: P) -> None:
        try:
            await self._action(key, payload)
        except Exception:
            logger.exception("Debounced action for %r failed", key)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("KeyedDebouncer",)
