import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rowpost.config.provider import (
    BridgeConfig,
    EnvConfigProvider,
    FileConfigProvider,
    build_bridge_config,
    env_overrides,
    get_config_provider,
    parse_headers,
)
from rowpost.logging_config import TruncateFilter, get_logging_config
from rowpost.modules.api import ConfigError


class TestEnvConfigProvider:
    """Test environment-based configuration"""

    def test_defaults(self):
        provider = EnvConfigProvider({"ROWPOST_ENDPOINT_URL": "https://api.example.com/ingest"})

        config = provider.get_bridge_config()

        assert config.endpoint_url == "https://api.example.com/ingest"
        assert config.content_type == "application/json"
        assert config.request_timeout == 30.0
        assert config.max_in_flight == 32
        assert config.verify_ssl is True
        assert config.retry.max_attempts == 1
        assert config.retry.retry_on_status == (502, 503, 504)

    def test_all_variables(self):
        environ = {
            "ROWPOST_ENDPOINT_URL": "https://api.example.com/ingest",
            "ROWPOST_CONTENT_TYPE": "text/plain",
            "ROWPOST_HEADERS": "X-Source:spark, X-Team:data",
            "ROWPOST_REQUEST_TIMEOUT": "2.5",
            "ROWPOST_CONNECT_TIMEOUT": "1",
            "ROWPOST_MAX_IN_FLIGHT": "4",
            "ROWPOST_MAX_CONNECTIONS": "8",
            "ROWPOST_SSL_VERIFY": "false",
            "ROWPOST_TOKEN": "secret",
            "ROWPOST_RETRY_MAX_ATTEMPTS": "3",
            "ROWPOST_RETRY_ON_STATUS": "429,503",
        }

        config = EnvConfigProvider(environ).get_bridge_config()

        assert config.content_type == "text/plain"
        assert config.headers == {"X-Source": "spark", "X-Team": "data"}
        assert config.request_timeout == 2.5
        assert config.connect_timeout == 1.0
        assert config.max_in_flight == 4
        assert config.max_connections == 8
        assert config.verify_ssl is False
        assert config.auth_token == "secret"
        assert config.retry.max_attempts == 3
        assert config.retry.retry_on_status == (429, 503)

    def test_missing_endpoint(self):
        with pytest.raises(ConfigError) as exc_info:
            EnvConfigProvider({}).get_bridge_config()
        assert "ROWPOST_ENDPOINT_URL is required" in str(exc_info.value)

    def test_empty_variables_ignored(self):
        assert env_overrides({"ROWPOST_TOKEN": "", "OTHER": "x"}) == {}


@pytest.mark.parametrize(
    "values,message",
    [
        ({"endpoint_url": "ftp://example.com"}, "http(s) URL"),
        ({"endpoint_url": "https://x", "request_timeout": "0"}, "Timeouts must be positive"),
        ({"endpoint_url": "https://x", "max_in_flight": "0"}, "at least 1"),
        ({"endpoint_url": "https://x", "retry": {"max_attempts": 0}}, "max_attempts"),
        ({"endpoint_url": "https://x", "request_timeout": "soon"}, "Invalid configuration value"),
        ({"endpoint_url": "https://x", "headers": "no-colon"}, "Invalid header"),
        ({"endpoint_url": "https://x", "retry": {"backoff_initial": "-0.5"}}, "must not be negative"),
        ({"endpoint_url": "https://x", "retry": {"backoff_factor": -1}}, "must not be negative"),
        ({"endpoint_url": "https://x", "retry": {"backoff_max": -1}}, "must not be negative"),
        ({"endpoint_url": "https://x", "retry": {"retry_on_status": "503,42"}}, "100-599"),
    ],
)
def test_invalid_values(values, message):
    with pytest.raises(ConfigError) as exc_info:
        build_bridge_config(values)
    assert message in str(exc_info.value)


def test_plain_http_warns(caplog):
    logger = logging.getLogger("rowpost.config")
    logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.WARNING, logger="rowpost.config"):
            build_bridge_config({"endpoint_url": "http://localhost:8080/ingest"})
    finally:
        logger.removeHandler(caplog.handler)
    assert "without TLS" in caplog.text


class TestFileConfigProvider:
    """Test YAML file configuration"""

    def test_file_values(self, tmp_path):
        path = tmp_path / "rowpost.yaml"
        path.write_text(
            "endpoint_url: https://api.example.com/ingest\n"
            "request_timeout: 10\n"
            "headers:\n"
            "  X-Source: spark\n"
            "retry:\n"
            "  max_attempts: 2\n"
            "  retry_on_status: [503]\n"
        )

        config = FileConfigProvider(str(path), environ={}).get_bridge_config()

        assert config.request_timeout == 10.0
        assert config.headers == {"X-Source": "spark"}
        assert config.retry.max_attempts == 2
        assert config.retry.retry_on_status == (503,)

    def test_environment_wins(self, tmp_path):
        path = tmp_path / "rowpost.yaml"
        path.write_text(
            "endpoint_url: https://file.example.com\n"
            "retry:\n"
            "  max_attempts: 2\n"
            "  backoff_initial: 0.5\n"
        )
        environ = {
            "ROWPOST_ENDPOINT_URL": "https://env.example.com",
            "ROWPOST_RETRY_MAX_ATTEMPTS": "5",
        }

        config = FileConfigProvider(str(path), environ).get_bridge_config()

        assert config.endpoint_url == "https://env.example.com"
        assert config.retry.max_attempts == 5
        assert config.retry.backoff_initial == 0.5

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            FileConfigProvider(str(tmp_path / "absent.yaml"), {}).get_bridge_config()

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            FileConfigProvider(str(path), {}).get_bridge_config()


def test_provider_selection(tmp_path):
    path = tmp_path / "rowpost.yaml"
    path.write_text("endpoint_url: https://file.example.com\n")

    assert isinstance(get_config_provider({"ROWPOST_CONFIG": str(path)}), FileConfigProvider)
    assert isinstance(get_config_provider({}), EnvConfigProvider)


def test_request_headers_and_masking():
    config = BridgeConfig(
        endpoint_url="https://x", auth_token="secret", headers={"Content-Type": "text/csv"}
    )

    assert config.request_headers == {"Content-Type": "text/csv", "Authorization": "Bearer secret"}

    display = config.to_display_dict()
    assert display["auth_token"] == "***"
    assert display["retry"]["retry_on_status"] == [502, 503, 504]


def test_cache_key_ignores_endpoint():
    a = BridgeConfig(endpoint_url="https://a")
    b = BridgeConfig(endpoint_url="https://b", headers={"X-Other": "1"})
    c = BridgeConfig(endpoint_url="https://a", max_in_flight=2)

    assert a.cache_key() == b.cache_key()
    assert a.cache_key() != c.cache_key()


def test_parse_headers_mapping():
    assert parse_headers({"X-Num": 1}) == {"X-Num": "1"}


class TestLogging:
    """Test logging configuration"""

    def test_level_from_argument(self):
        config = get_logging_config("debug")
        assert config["loggers"]["rowpost"]["level"] == "DEBUG"

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert get_logging_config()["loggers"]["rowpost"]["level"] == "WARNING"

    def test_truncate_filter(self):
        record = logging.LogRecord("rowpost", logging.INFO, __file__, 1, "payload %s", ("x" * 50,), None)

        assert TruncateFilter(max_length=20).filter(record) is True
        assert record.getMessage().startswith("payload xxxxxxxxxxxx...")
        assert "38 chars truncated" in record.getMessage()

    def test_short_messages_untouched(self):
        record = logging.LogRecord("rowpost", logging.INFO, __file__, 1, "ok %s", ("row",), None)

        TruncateFilter(max_length=20).filter(record)

        assert record.getMessage() == "ok row"
