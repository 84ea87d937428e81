from __future__ import annotations

import os
from datetime import timedelta

import pytest

from cartsync.config import DEFAULT_STORAGE_KEY, Policy

ENV_KEYS = (
    "CARTSYNC_STORAGE_KEY",
    "CARTSYNC_ITEM_TTL_HOURS",
    "CARTSYNC_REQUEST_TIMEOUT",
    "CARTSYNC_DEBOUNCE_MS",
    "CARTSYNC_API_BASE_URL",
    "CARTSYNC_API_TOKEN",
)


@pytest.fixture(autouse=True)
def clean_env():
    # load_dotenv writes into os.environ directly
    for key in ENV_KEYS:
        os.environ.pop(key, None)
    yield
    for key in ENV_KEYS:
        os.environ.pop(key, None)


class TestPolicy:
    def test_defaults(self):
        policy = Policy()
        assert policy.storage_key == DEFAULT_STORAGE_KEY == "oep-cart-1"
        assert policy.item_ttl == timedelta(hours=24)
        assert policy.request_timeout == timedelta(seconds=30)
        assert policy.debounce_window == timedelta(milliseconds=400)

    def test_fluent_methods_return_new_policy(self):
        base = Policy()
        tuned = base.with_storage_key("shop").with_item_ttl(hours=2).with_api("https://x/api/", token="t")
        assert base.storage_key == DEFAULT_STORAGE_KEY
        assert tuned.storage_key == "shop"
        assert tuned.item_ttl == timedelta(hours=2)
        assert tuned.api_base_url == "https://x/api"
        assert tuned.api_token == "t"

    def test_zero_debounce_is_allowed(self):
        assert Policy().with_debounce(milliseconds=0).debounce_window == timedelta(0)

    def test_explicit_zero_is_kept(self):
        assert Policy().with_item_ttl(hours=0).item_ttl == timedelta(0)
        assert Policy().with_request_timeout(seconds=0).request_timeout == timedelta(0)
        assert Policy().with_item_ttl().item_ttl == timedelta(hours=24)
        assert Policy().with_request_timeout().request_timeout == timedelta(seconds=30)

    def test_empty_storage_key_rejected(self):
        with pytest.raises(ValueError):
            Policy().with_storage_key("")


class TestFromEnv:
    def test_reads_dotenv_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text(
            "CARTSYNC_STORAGE_KEY=cart-test\n"
            "CARTSYNC_ITEM_TTL_HOURS=12\n"
            "CARTSYNC_REQUEST_TIMEOUT=5\n"
            "CARTSYNC_DEBOUNCE_MS=250\n"
            "CARTSYNC_API_BASE_URL=https://shop.example/api\n"
            "CARTSYNC_API_TOKEN=secret\n"
        )
        policy = Policy.from_env(env)
        assert policy.storage_key == "cart-test"
        assert policy.item_ttl == timedelta(hours=12)
        assert policy.request_timeout == timedelta(seconds=5)
        assert policy.debounce_window == timedelta(milliseconds=250)
        assert policy.api_base_url == "https://shop.example/api"
        assert policy.api_token == "secret"

    def test_environment_wins_over_file(self, tmp_path, monkeypatch):
        env = tmp_path / ".env"
        env.write_text("CARTSYNC_STORAGE_KEY=from-file\n")
        monkeypatch.setenv("CARTSYNC_STORAGE_KEY", "from-env")
        assert Policy.from_env(env).storage_key == "from-env"

    def test_bad_number(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CARTSYNC_REQUEST_TIMEOUT", "soon")
        with pytest.raises(ValueError):
            Policy.from_env(tmp_path / "missing.env")
