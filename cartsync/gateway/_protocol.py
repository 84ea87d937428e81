"""
CartGateway — the remote cart API as a port.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from kungfu import Result

from cartsync._types import Attribute
from cartsync.gateway._types import GatewayError, ServerCart


@runtime_checkable
class CartGateway(Protocol):
    """
    Server cart API.

    Note: Transport faults come back as Error(GatewayError), never raised.

    Example — wrapping an existing client:

        class ShopGateway:
            def __init__(self, client: ShopClient):
                self.client = client

            async def get_cart(self) -> Result[ServerCart, GatewayError]:
                try:
                    return Ok(to_server_cart(await self.client.cart()))
                except ShopClientError as e:
                    return Error(GatewayError(GatewayErrorKind.HTTP, str(e), cause=e))

            # ... other methods
    """

    async def get_cart(self) -> Result[ServerCart, GatewayError]:
        """Current server cart."""
        ...

    async def add_item(
        self,
        product_id: str,
        quantity: int,
        attributes: Sequence[Attribute],
    ) -> Result[ServerCart, GatewayError]:
        """Add quantity of a variant. Returns the updated cart."""
        ...

    async def update_item(
        self,
        server_item_id: str,
        *,
        quantity: int | None = None,
        attributes: Sequence[Attribute] | None = None,
    ) -> Result[ServerCart, GatewayError]:
        """Change quantity and/or attributes of a server item."""
        ...

    async def remove_item(self, server_item_id: str) -> Result[None, GatewayError]:
        ...

    async def clear_cart(self) -> Result[None, GatewayError]:
        ...

    async def submit_checkout(
        self,
        payload: Mapping[str, Any],
    ) -> Result[dict[str, Any], GatewayError]:
        """
        Submit checkout. Returns the raw response body.

        Success and correction payloads both arrive here; the checkout
        flow tells them apart by their content, not the status code.
        """
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("CartGateway",)
