import pytest
from pydantic import ValidationError

from sockets.settings import SocketSettings

_ENV_VARS = (
    "WS_LOG_CAPACITY",
    "WS_CONNECT_TIMEOUT_SECONDS",
    "WS_LISTEN_POLL_INTERVAL_SECONDS",
    "WS_LISTEN_DEFAULT_SECONDS",
    "WS_LISTEN_DEFAULT_MAX_MESSAGES",
    "WS_DEFAULT_PROTOCOLS",
    "WS_KEEPALIVE_INTERVAL_SECONDS",
    "WS_HANDSHAKE_TIMEOUT_SECONDS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSocketSettings:
    def test_defaults(self, clean_env):
        settings = SocketSettings()
        assert settings.log_capacity == 1000
        assert settings.connect_timeout_seconds == 10.0
        assert settings.listen_poll_interval_seconds == 0.1
        assert settings.listen_default_seconds == 30.0
        assert settings.listen_default_max_messages == 100
        assert settings.keepalive_interval_seconds == 20.0
        assert settings.handshake_timeout_seconds == 60.0
        assert settings.default_protocols == []

    def test_env_override(self, clean_env):
        clean_env.setenv("WS_LOG_CAPACITY", "50")
        clean_env.setenv("WS_CONNECT_TIMEOUT_SECONDS", "2.5")
        clean_env.setenv("WS_HANDSHAKE_TIMEOUT_SECONDS", "15")
        settings = SocketSettings()
        assert settings.log_capacity == 50
        assert settings.connect_timeout_seconds == 2.5
        assert settings.handshake_timeout_seconds == 15.0

    def test_log_capacity_below_two_rejected(self, clean_env):
        clean_env.setenv("WS_LOG_CAPACITY", "1")
        with pytest.raises(ValidationError, match="log_capacity"):
            SocketSettings()

    def test_non_positive_timeout_rejected(self, clean_env):
        with pytest.raises(ValidationError, match="connect_timeout_seconds"):
            SocketSettings(connect_timeout_seconds=0)

    def test_keepalive_can_be_disabled(self, clean_env):
        assert SocketSettings(keepalive_interval_seconds=None).keepalive_interval_seconds is None

    def test_default_protocols_json_array(self, clean_env):
        clean_env.setenv("WS_DEFAULT_PROTOCOLS", '["graphql-ws","chat"]')
        assert SocketSettings().default_protocols == ["graphql-ws", "chat"]

    def test_default_protocols_csv(self, clean_env):
        clean_env.setenv("WS_DEFAULT_PROTOCOLS", "graphql-ws, chat")
        assert SocketSettings().default_protocols == ["graphql-ws", "chat"]

    def test_default_protocols_empty(self, clean_env):
        clean_env.setenv("WS_DEFAULT_PROTOCOLS", "")
        assert SocketSettings().default_protocols == []

    def test_default_protocols_invalid_name(self, clean_env):
        clean_env.setenv("WS_DEFAULT_PROTOCOLS", "chat,bad name")
        with pytest.raises(ValidationError, match="default_protocols"):
            SocketSettings()

    def test_default_protocols_duplicate(self, clean_env):
        with pytest.raises(ValidationError, match="Duplicate subprotocol"):
            SocketSettings(default_protocols=["chat", "chat"])
