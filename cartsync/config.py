"""
Cart policy — behavior configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_STORAGE_KEY = "oep-cart-1"


# ═══════════════════════════════════════════════════════════════════════════════
# Policy: Full Configuration
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Cart policy configuration.

    Fluent builder pattern — chain methods to configure.

    Example:
        policy = (
            Policy()
            .with_storage_key("shop-cart")
            .with_item_ttl(hours=12)
            .with_request_timeout(seconds=20)
            .with_debounce(milliseconds=250)
            .with_api("https://shop.example/api", token="...")
        )

    Note: Immutable — each method returns new Policy.
    """

    storage_key: str = DEFAULT_STORAGE_KEY
    item_ttl: timedelta = timedelta(hours=24)
    request_timeout: timedelta = timedelta(seconds=30)
    debounce_window: timedelta = timedelta(milliseconds=400)
    api_base_url: str = "http://localhost:8000/api"
    api_token: str | None = None

    def with_storage_key(self, key: str) -> Policy:
        """Set the persisted storage key for the local cart."""
        if not key:
            raise ValueError("storage key must not be empty")
        return replace(self, storage_key=key)

    def with_item_ttl(
        self,
        *,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        """
        Set line item lifetime.

        Items untouched for longer than the TTL are purged on the next read.

        Example:
            .with_item_ttl(hours=24)
            .with_item_ttl(delta=timedelta(days=2))
        """
        ttl = delta if delta is not None else timedelta(hours=24 if hours is None else hours)
        return replace(self, item_ttl=ttl)

    def with_request_timeout(
        self,
        *,
        seconds: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        """Set the HTTP request timeout for the server cart gateway."""
        timeout = delta if delta is not None else timedelta(seconds=30 if seconds is None else seconds)
        return replace(self, request_timeout=timeout)

    def with_debounce(
        self,
        *,
        milliseconds: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        """
        Set the quiescence window for debounced quantity commits.

        Example:
            .with_debounce(milliseconds=400)
        """
        if delta is not None:
            window = delta
        else:
            window = timedelta(milliseconds=400 if milliseconds is None else milliseconds)
        return replace(self, debounce_window=window)

    def with_api(self, base_url: str, *, token: str | None = None) -> Policy:
        """Set the cart API base URL and optional bearer token."""
        return replace(self, api_base_url=base_url.rstrip("/"), api_token=token)

    @classmethod
    def from_env(cls, path: str | Path | None = None) -> Policy:
        """
        Build a policy from environment variables.

        Loads a .env file first (existing variables win). Recognized:
        CARTSYNC_STORAGE_KEY, CARTSYNC_ITEM_TTL_HOURS, CARTSYNC_REQUEST_TIMEOUT,
        CARTSYNC_DEBOUNCE_MS, CARTSYNC_API_BASE_URL, CARTSYNC_API_TOKEN.
        """
        load_dotenv(dotenv_path=path)
        policy = cls()

        if key := _env("CARTSYNC_STORAGE_KEY"):
            policy = policy.with_storage_key(key)
        if (hours := _env_float("CARTSYNC_ITEM_TTL_HOURS")) is not None:
            policy = policy.with_item_ttl(hours=hours)
        if (seconds := _env_float("CARTSYNC_REQUEST_TIMEOUT")) is not None:
            policy = policy.with_request_timeout(seconds=seconds)
        if (ms := _env_float("CARTSYNC_DEBOUNCE_MS")) is not None:
            policy = policy.with_debounce(milliseconds=ms)
        if base_url := _env("CARTSYNC_API_BASE_URL"):
            policy = policy.with_api(base_url, token=_env("CARTSYNC_API_TOKEN"))
        elif token := _env("CARTSYNC_API_TOKEN"):
            policy = policy.with_api(policy.api_base_url, token=token)

        return policy


def _env(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_float(key: str) -> float | None:
    value = _env(key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {value!r}") from e


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "DEFAULT_STORAGE_KEY",
    "Policy",
)
