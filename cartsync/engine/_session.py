"""
CartSession — authentication state and the one-shot merge guard.
"""

from __future__ import annotations

import logging
from enum import StrEnum

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    GUEST = "guest"
    MERGING = "merging"
    SYNCHRONIZED = "synchronized"


class CartSession:
    """
    Per-session cart state, owned by the caller and handed to the engine.

    Merge runs at most once per authenticated session: begin_merge()
    claims the slot and it stays claimed even if the merge fails.

    Example:
        session = CartSession()
        session.login()
        assert session.begin_merge()
        assert not session.begin_merge()     # re-triggered effect: no-op
        session.finish_merge()
        session.logout()                     # back to guest, carts untouched
    """

    def __init__(self, *, authenticated: bool = False) -> None:
        self._authenticated = authenticated
        self._merge_claimed = False
        self._merging = False
        self._generation = 0

    @property
    def state(self) -> SessionState:
        if not self._authenticated:
            return SessionState.GUEST
        if self._merging:
            return SessionState.MERGING
        return SessionState.SYNCHRONIZED

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @property
    def is_guest(self) -> bool:
        return not self._authenticated

    @property
    def merge_pending(self) -> bool:
        """Authenticated and the merge has not run in this session yet."""
        return self._authenticated and not self._merge_claimed

    @property
    def generation(self) -> int:
        """Incremented on every login; distinguishes authenticated sessions."""
        return self._generation

    def login(self) -> None:
        """Start a fresh authenticated session (re-arms the merge)."""
        self._authenticated = True
        self._merge_claimed = False
        self._merging = False
        self._generation += 1
        logger.info("Cart session %d authenticated", self._generation)

    def logout(self) -> None:
        self._authenticated = False
        self._merging = False
        self._merge_claimed = False
        logger.info("Cart session %d ended, back to guest", self._generation)

    def begin_merge(self) -> bool:
        """Claim the session's merge. False if not authenticated or already claimed."""
        if not self.merge_pending:
            return False
        self._merge_claimed = True
        self._merging = True
        return True

    def finish_merge(self) -> None:
        self._merging = False


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "SessionState",
    "CartSession",
)
