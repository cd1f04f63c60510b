"""
Tests for the pydantic-settings configuration models.
"""

import pytest
from pydantic import ValidationError

from journal_server.config import get_config, reset_config
from journal_server.config.models import (
    AppConfig,
    CORSConfig,
    LoggingConfig,
    RealtimeConfig,
    SecurityConfig,
    ServerConfig,
)


class TestServerConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SERVER_PORT", raising=False)
        monkeypatch.delenv("SERVER_HOST", raising=False)
        config = ServerConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 3000

    def test_port_from_env(self, monkeypatch):
        monkeypatch.setenv("SERVER_PORT", "8080")
        assert ServerConfig().port == 8080

    @pytest.mark.parametrize("port", [0, 70000])
    def test_invalid_port(self, port):
        with pytest.raises(ValidationError):
            ServerConfig(port=port)


class TestSecurityConfig:
    def test_secret_from_env(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "from-env")
        assert SecurityConfig().secret == "from-env"

    def test_missing_secret_fails(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(ValidationError):
            SecurityConfig(_env_file=None)

    def test_blank_secret_fails(self):
        with pytest.raises(ValidationError):
            SecurityConfig(secret="   ")

    def test_algorithm_normalized(self):
        assert SecurityConfig(secret="s", algorithm="hs512").algorithm == "HS512"

    def test_asymmetric_algorithm_rejected(self):
        with pytest.raises(ValidationError):
            SecurityConfig(secret="s", algorithm="RS256")


class TestRealtimeConfig:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("REALTIME_WS_PATH", "/socket")
        monkeypatch.setenv("REALTIME_SPIN_DURATION_MS", "1500")
        monkeypatch.setenv("REALTIME_ALLOW_QUERY_TOKEN", "false")

        config = RealtimeConfig()

        assert config.ws_path == "/socket"
        assert config.spin_duration_ms == 1500
        assert config.allow_query_token is False

    def test_relative_ws_path_rejected(self):
        with pytest.raises(ValidationError):
            RealtimeConfig(ws_path="ws")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"idle_timeout_seconds": 0},
            {"send_timeout_seconds": -1},
            {"spin_duration_ms": -5},
            {"messages_per_minute": 0},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            RealtimeConfig(**overrides)


class TestLoggingConfig:
    def test_level_upper_cased(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            LoggingConfig(environment="moon")

    def test_invalid_format(self):
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")


class TestCORSConfig:
    def test_csv_env(self, monkeypatch):
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example")
        assert CORSConfig().allow_origins == ["https://a.example", "https://b.example"]

    def test_json_env(self, monkeypatch):
        monkeypatch.setenv("CORS_ALLOW_METHODS", '["GET", "PUT"]')
        assert CORSConfig().allow_methods == ["GET", "PUT"]


class TestAppConfig:
    def test_legacy_dict(self):
        config = AppConfig()
        legacy = config.to_legacy_dict()
        assert legacy["ws_path"] == config.realtime.ws_path
        assert legacy["logging"]["environment"] == "test"

    def test_get_config_fresh_in_tests(self):
        first = get_config()
        reset_config()
        second = get_config()
        assert first is not second
        assert isinstance(first, AppConfig)
