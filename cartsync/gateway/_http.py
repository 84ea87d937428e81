"""
HttpGateway — JSON over HTTP against the cart API.

Blocking urllib calls run in a worker thread so the event loop stays free.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from kungfu import Error, Ok, Result
from pydantic import ValidationError

from cartsync._types import Attribute
from cartsync.config import Policy
from cartsync.gateway._types import GatewayError, GatewayErrorKind, ServerCart
from cartsync.gateway._wire import AttributeDoc, ServerCartDoc, unwrap_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Endpoints:
    """Cart API paths, relative to Policy.api_base_url."""

    cart: str = "/cart"
    items: str = "/cart/items"
    item: str = "/cart/items/{id}"
    clear: str = "/cart/clear"
    checkout: str = "/checkout"

    def item_path(self, server_item_id: str) -> str:
        return self.item.format(id=quote(server_item_id, safe=""))


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP Gateway
# ═══════════════════════════════════════════════════════════════════════════════


class HttpGateway:
    """
    CartGateway over HTTP.

    Example:
        policy = Policy().with_api("https://shop.example/api", token=session_token)
        gateway = HttpGateway(policy)

        match await gateway.get_cart():
            case Ok(cart):
                ...
            case Error(e):
                logger.warning("cart fetch failed: %s", e.message)
    """

    def __init__(
        self,
        policy: Policy | None = None,
        *,
        endpoints: Endpoints | None = None,
    ) -> None:
        self._policy = policy or Policy()
        self._endpoints = endpoints or Endpoints()

    # ───────────────────────────────────────────────────────────────────────────
    # CartGateway
    # ───────────────────────────────────────────────────────────────────────────

    async def get_cart(self) -> Result[ServerCart, GatewayError]:
        match await self._call("GET", self._endpoints.cart):
            case Ok(body):
                return _decode_cart(body)
            case Error(e):
                return Error(e)

    async def add_item(
        self,
        product_id: str,
        quantity: int,
        attributes: Sequence[Attribute],
    ) -> Result[ServerCart, GatewayError]:
        body = {
            "productId": product_id,
            "qty": quantity,
            "attributes": [AttributeDoc.from_domain(a).dump() for a in attributes],
        }
        match await self._call("POST", self._endpoints.items, body):
            case Ok(None):
                return await self.get_cart()
            case Ok(payload):
                return _decode_cart(payload)
            case Error(e):
                return Error(e)

    async def update_item(
        self,
        server_item_id: str,
        *,
        quantity: int | None = None,
        attributes: Sequence[Attribute] | None = None,
    ) -> Result[ServerCart, GatewayError]:
        body: dict[str, Any] = {}
        if quantity is not None:
            body["qty"] = quantity
        if attributes is not None:
            body["selectedAttributes"] = [AttributeDoc.from_domain(a).dump() for a in attributes]

        match await self._call("PUT", self._endpoints.item_path(server_item_id), body):
            case Ok(None):
                return await self.get_cart()
            case Ok(payload):
                return _decode_cart(payload)
            case Error(e):
                return Error(e)

    async def remove_item(self, server_item_id: str) -> Result[None, GatewayError]:
        match await self._call("DELETE", self._endpoints.item_path(server_item_id)):
            case Ok(_):
                return Ok(None)
            case Error(e):
                return Error(e)

    async def clear_cart(self) -> Result[None, GatewayError]:
        match await self._call("DELETE", self._endpoints.clear):
            case Ok(_):
                return Ok(None)
            case Error(e):
                return Error(e)

    async def submit_checkout(
        self,
        payload: Mapping[str, Any],
    ) -> Result[dict[str, Any], GatewayError]:
        match await self._call("POST", self._endpoints.checkout, dict(payload)):
            case Ok(body) if isinstance(body, dict):
                return Ok(body)
            case Ok(body):
                return Error(
                    GatewayError(
                        GatewayErrorKind.DECODE,
                        f"Checkout response must be an object, got {type(body).__name__}",
                    )
                )
            case Error(e):
                return Error(e)

    # ───────────────────────────────────────────────────────────────────────────
    # Transport
    # ───────────────────────────────────────────────────────────────────────────

    async def _call(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> Result[Any, GatewayError]:
        return await asyncio.to_thread(self._request_json, method, path, body)

    def _request_json(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
    ) -> Result[Any, GatewayError]:
        url = f"{self._policy.api_base_url}{path}"
        data = None
        headers = {"Accept": "application/json"}
        if body is not None:
            data = json.dumps(body, ensure_ascii=False).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self._policy.api_token:
            headers["Authorization"] = f"Bearer {self._policy.api_token}"

        request = Request(url, data=data, headers=headers, method=method)
        timeout = self._policy.request_timeout.total_seconds()

        try:
            with urlopen(request, timeout=timeout) as response:
                raw = response.read().decode("utf-8", errors="replace")
        except HTTPError as e:
            e.close()
            kind = GatewayErrorKind.NOT_FOUND if e.code == 404 else GatewayErrorKind.HTTP
            logger.warning("%s %s failed with HTTP %d", method, path, e.code)
            return Error(GatewayError(kind, f"{method} {path}: HTTP {e.code}", status=e.code, cause=e))
        except TimeoutError as e:
            logger.warning("%s %s timed out after %.1fs", method, path, timeout)
            return Error(GatewayError(GatewayErrorKind.TIMEOUT, f"{method} {path}: timed out", cause=e))
        except URLError as e:
            kind = (
                GatewayErrorKind.TIMEOUT
                if isinstance(e.reason, TimeoutError)
                else GatewayErrorKind.NETWORK
            )
            logger.warning("%s %s failed: %s", method, path, e.reason)
            return Error(GatewayError(kind, f"{method} {path}: {e.reason}", cause=e))
        except OSError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            return Error(GatewayError(GatewayErrorKind.NETWORK, f"{method} {path}: {e}", cause=e))

        if not raw.strip():
            return Ok(None)
        try:
            return Ok(unwrap_data(json.loads(raw)))
        except json.JSONDecodeError as e:
            return Error(
                GatewayError(GatewayErrorKind.DECODE, f"{method} {path}: invalid JSON", cause=e)
            )


def _decode_cart(body: Any) -> Result[ServerCart, GatewayError]:
    try:
        return Ok(ServerCartDoc.model_validate(body or {}).to_domain())
    except ValidationError as e:
        return Error(GatewayError(GatewayErrorKind.DECODE, "Malformed server cart", cause=e))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Endpoints",
    "HttpGateway",
)
