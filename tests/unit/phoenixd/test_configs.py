"""Tests for phoenixd.configs module."""

import pytest
from pydantic import ValidationError

from phoenixd_dashboard.phoenixd import PhoenixdConfig


class TestPhoenixdConfig:
    """PhoenixdConfig defaults, URL and password handling."""

    def test_defaults(self):
        config = PhoenixdConfig()
        assert config.url == "http://localhost:9740"
        assert config.password.get_secret_value() == ""
        assert config.heartbeat == 30.0

    def test_password_from_env(self, monkeypatch):
        monkeypatch.setenv("PHOENIXD_PASSWORD", "from-env")
        assert PhoenixdConfig().password.get_secret_value() == "from-env"

    def test_custom_password_env(self, monkeypatch):
        monkeypatch.setenv("NODE_PW", "other")
        config = PhoenixdConfig(password_env="NODE_PW")
        assert config.password.get_secret_value() == "other"

    def test_password_not_in_repr(self, monkeypatch):
        monkeypatch.setenv("PHOENIXD_PASSWORD", "hunter2")
        assert "hunter2" not in repr(PhoenixdConfig())

    def test_trailing_slash_stripped(self):
        assert PhoenixdConfig(url="http://node:9740/").url == "http://node:9740"

    @pytest.mark.parametrize("url", ["ws://node:9740", "node:9740", "ftp://node"])
    def test_invalid_scheme(self, url):
        with pytest.raises(ValidationError, match="http"):
            PhoenixdConfig(url=url)

    def test_heartbeat_disabled(self):
        assert PhoenixdConfig(heartbeat=None).heartbeat is None
