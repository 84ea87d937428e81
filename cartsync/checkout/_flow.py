"""
CorrectionFlow — checkout submission gated on server corrections.

A checkout the server adjusts comes back as a correction. It stays pending
until the shopper accepts it; while it is pending, and while any item is
unavailable, checkout does not proceed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from kungfu import Error, Ok, Result

from cartsync.checkout._types import CheckoutSuccess, PendingCorrection
from cartsync.checkout._wire import CheckoutDecodeError, parse_checkout_response
from cartsync.engine._engine import ReconciliationEngine
from cartsync.gateway._types import GatewayError, GatewayErrorKind
from cartsync.store._types import Cart, LineItem

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Gate
# ═══════════════════════════════════════════════════════════════════════════════


class BlockReason(StrEnum):
    PENDING_CORRECTION = "pending_correction"
    UNAVAILABLE_ITEMS = "unavailable_items"
    EMPTY_CART = "empty_cart"
    NOT_AUTHENTICATED = "not_authenticated"


_BLOCK_MESSAGES = {
    BlockReason.PENDING_CORRECTION: "Review and accept the updated cart before checking out",
    BlockReason.UNAVAILABLE_ITEMS: "Remove unavailable items before checking out",
    BlockReason.EMPTY_CART: "Your cart is empty",
    BlockReason.NOT_AUTHENTICATED: "Sign in to check out",
}


@dataclass(frozen=True, slots=True)
class CheckoutBlocked:
    """Why checkout cannot proceed right now."""

    reasons: tuple[BlockReason, ...]
    unavailable_items: tuple[LineItem, ...] = ()

    @property
    def message(self) -> str:
        return "; ".join(_BLOCK_MESSAGES[r] for r in self.reasons)


# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    shipping_method: str = "normal"
    delivery_type: str = "shipping"
    address: dict[str, Any] | None = None
    coupon_codes: tuple[str, ...] = ()
    notes: str | None = None

    def to_payload(self, items: Sequence[LineItem]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "items": [
                {
                    "productId": i.product_id,
                    "qty": i.quantity,
                    "selectedAttributes": [
                        {"name": a.name, "value": a.value} for a in i.attributes
                    ],
                    "unitPrice": i.unit_price,
                }
                for i in items
            ],
            "shippingMethod": self.shipping_method,
            "deliveryType": self.delivery_type,
            "couponCodes": list(self.coupon_codes),
        }
        if self.address is not None:
            payload["address"] = self.address
        if self.notes:
            payload["notes"] = self.notes
        return payload


# ═══════════════════════════════════════════════════════════════════════════════
# Flow
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class _State:
    pending: PendingCorrection | None = None
    history: list[PendingCorrection] = field(default_factory=list)


class CorrectionFlow:
    """
    Example:
        flow = CorrectionFlow(engine)

        match await flow.submit(CheckoutRequest(shipping_method="express")):
            case Ok(CheckoutSuccess() as order):
                redirect(order.payment.payment_url)
            case Ok(PendingCorrection()):
                show(flow.messages())
                await flow.accept()          # corrected cart replaces the local one
            case Error(CheckoutBlocked() as blocked):
                show(blocked.message)
            case Error(GatewayError() as e):
                show(e.message)
    """

    def __init__(self, engine: ReconciliationEngine) -> None:
        self._engine = engine
        self._state = _State()

    @property
    def pending(self) -> PendingCorrection | None:
        return self._state.pending

    @property
    def history(self) -> tuple[PendingCorrection, ...]:
        """Every correction received, accepted or not."""
        return tuple(self._state.history)

    def blockers(self) -> CheckoutBlocked | None:
        items = self._engine.store.items()
        reasons: list[BlockReason] = []
        if self._engine.session.is_guest:
            reasons.append(BlockReason.NOT_AUTHENTICATED)
        if not items:
            reasons.append(BlockReason.EMPTY_CART)
        if self._state.pending is not None:
            reasons.append(BlockReason.PENDING_CORRECTION)
        unavailable = tuple(i for i in items if not i.is_available)
        if unavailable:
            reasons.append(BlockReason.UNAVAILABLE_ITEMS)
        if not reasons:
            return None
        return CheckoutBlocked(reasons=tuple(reasons), unavailable_items=unavailable)

    def can_checkout(self) -> bool:
        return self.blockers() is None

    async def submit(
        self, request: CheckoutRequest | None = None
    ) -> Result[CheckoutSuccess | PendingCorrection, CheckoutBlocked | GatewayError]:
        """
        Submit the current cart.

        A correction is stored as pending and returned as Ok; the local
        cart is cleared only on success.
        """
        blocked = self.blockers()
        if blocked is not None:
            logger.info("Checkout blocked: %s", ", ".join(blocked.reasons))
            return Error(blocked)

        request = request or CheckoutRequest()
        payload = request.to_payload(self._engine.store.items())

        match await self._engine.gateway.submit_checkout(payload):
            case Ok(body):
                pass
            case Error(e):
                logger.warning("Checkout submission failed: %s", e.message)
                return Error(e)

        try:
            response = parse_checkout_response(body)
        except CheckoutDecodeError as e:
            logger.error("Undecodable checkout response: %s", e)
            return Error(GatewayError(GatewayErrorKind.DECODE, str(e), cause=e))

        match response:
            case PendingCorrection():
                self._state.pending = response
                self._state.history.append(response)
                logger.info(
                    "Checkout needs correction: %d change(s)",
                    len(response.change_details) or len(response.changes),
                )
            case CheckoutSuccess():
                logger.info("Checkout placed order %s", response.order_id)
                self._engine.store.clear()
        return Ok(response)

    def messages(self) -> tuple[str, ...]:
        """Human-readable lines for the pending correction."""
        pending = self._state.pending
        if pending is None:
            return ()
        if pending.change_details:
            return tuple(f"{d.label}: {d.message}" for d in pending.change_details)
        return pending.changes

    async def accept(self) -> Cart:
        """
        Replace the local cart with the corrected one and resolve the correction.

        Corrections without an item snapshot (coupon or shipping only)
        refresh the local cart from the server instead.
        """
        pending = self._state.pending
        if pending is None:
            raise ValueError("No pending correction to accept")

        snapshot = pending.corrected_cart.snapshot
        if snapshot is not None:
            cart = await self._engine.apply_snapshot(snapshot)
        else:
            await self._engine.sync_from_server()
            cart = self._engine.store.read()

        self._state.pending = None
        logger.info("Checkout correction accepted, %d item(s) in cart", len(cart.items))
        return cart


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "BlockReason",
    "CheckoutBlocked",
    "CheckoutRequest",
    "CorrectionFlow",
)
