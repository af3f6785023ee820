"""Tests for settings parsing."""

import pytest

from scentbox_cart.config import DEFAULT_API_BASE_URL, CartSettings
from scentbox_cart.errors import ConfigError
from scentbox_cart.pipeline import BusyPolicy


class TestCartSettings:
    def test_defaults(self) -> None:
        settings = CartSettings.from_env({})
        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings.auth_token is None
        assert settings.request_timeout == 30.0
        assert settings.snapshot_path is None
        assert settings.busy_policy is BusyPolicy.REJECT

    def test_overrides(self) -> None:
        settings = CartSettings.from_env(
            {
                "CART_API_BASE_URL": "https://shop.example/api",
                "CART_AUTH_TOKEN": "abc123",
                "CART_REQUEST_TIMEOUT": "5",
                "CART_SNAPSHOT_PATH": "/tmp/cart.json",
                "CART_BUSY_POLICY": " Queue ",
            }
        )
        assert settings.api_base_url == "https://shop.example/api"
        assert settings.auth_token == "abc123"
        assert settings.request_timeout == 5.0
        assert settings.snapshot_path == "/tmp/cart.json"
        assert settings.busy_policy is BusyPolicy.QUEUE

    def test_empty_token_is_none(self) -> None:
        assert CartSettings.from_env({"CART_AUTH_TOKEN": ""}).auth_token is None

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_bad_timeout(self, value) -> None:
        with pytest.raises(ConfigError, match="CART_REQUEST_TIMEOUT"):
            CartSettings.from_env({"CART_REQUEST_TIMEOUT": value})

    def test_bad_policy(self) -> None:
        with pytest.raises(ConfigError, match="invalid configuration"):
            CartSettings.from_env({"CART_BUSY_POLICY": "drop"})

    def test_reads_process_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("CART_AUTH_TOKEN", "from-env")
        assert CartSettings.from_env().auth_token == "from-env"
